"""Cloudflare Turnstile verification.

Uses Turnstile's siteverify REST endpoint directly via httpx.
"""

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


@dataclass
class CaptchaResult:
    success: bool
    error: str | None = None


class TurnstileVerifier:
    """Verify Turnstile tokens submitted by the sign-in and feedback forms."""

    def __init__(
        self,
        secret_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.secret_key)

    async def verify(self, token: str | None, remote_ip: str | None = None) -> CaptchaResult:
        """
        Verify a token with Cloudflare.

        Never raises: network and HTTP failures count as a failed check.
        With no secret configured the check is skipped (local development).
        """
        if not self.enabled:
            logger.warning("[turnstile] Skipped (TURNSTILE_SECRET_KEY not configured)")
            return CaptchaResult(success=True)

        if not token:
            return CaptchaResult(success=False, error="CAPTCHA token is required")

        form = {"secret": self.secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(TURNSTILE_VERIFY_URL, data=form)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[turnstile] HTTP {e.response.status_code}: {e.response.text}")
            return CaptchaResult(success=False, error="CAPTCHA verification failed")
        except httpx.RequestError as e:
            logger.error(f"[turnstile] Request failed: {e}")
            return CaptchaResult(success=False, error="CAPTCHA verification failed")

        if not data.get("success"):
            codes = data.get("error-codes", [])
            logger.info(f"[turnstile] Token rejected: {codes}")
            return CaptchaResult(success=False, error="CAPTCHA verification failed")

        return CaptchaResult(success=True)
