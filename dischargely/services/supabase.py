"""Supabase clients and the phone OTP sign-in service."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from supabase import Client, create_client

from dischargely.config.settings import settings

logger = logging.getLogger(__name__)

# Supabase messages meaning "no account for this phone yet"
USER_NOT_FOUND_PATTERNS = (
    "signups not allowed",
    "user not found",
    "invalid login credentials",
    "user does not exist",
)

GENERIC_OTP_ERROR = "An unexpected error occurred. Please try again."


def get_supabase_admin_client() -> Client:
    """
    Get Supabase client with service role key for admin operations.

    Only used server-side for deleting auth users.
    IMPORTANT: Never expose this client to frontend or use anon key here.
    """
    if not settings.supabase_service_role_key:
        raise ValueError(
            "SUPABASE_SERVICE_ROLE_KEY not configured. "
            "Set it in .env for account deletion."
        )

    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )


def get_supabase_auth_client() -> Client:
    """Get Supabase client with the anon key for OTP sign-in and verification."""
    if not settings.supabase_anon_key:
        raise ValueError("SUPABASE_ANON_KEY not configured")

    return create_client(settings.supabase_url, settings.supabase_anon_key)


def is_user_not_found_error(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(pattern in lowered for pattern in USER_NOT_FOUND_PATTERNS)


@dataclass
class AuthResult:
    """Outcome of an OTP request or verification."""

    success: bool
    error: str | None = None
    session: dict[str, Any] | None = None
    user: dict[str, Any] = field(default_factory=dict)
    is_new_user: bool = False


class OtpService:
    """
    Sends and verifies SMS one-time codes through Supabase Auth.

    Supabase's Python client is synchronous, so every call runs in a
    worker thread to keep the event loop free.
    """

    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_auth_client()
        return self._client

    async def _send(self, phone: str, create_user: bool) -> AuthResult:
        try:
            await asyncio.to_thread(
                self.client.auth.sign_in_with_otp,
                {"phone": phone, "options": {"should_create_user": create_user}},
            )
        except Exception as e:
            logger.warning(f"Supabase OTP send failed for {phone[-4:]}: {e}")
            return AuthResult(success=False, error=str(e) or GENERIC_OTP_ERROR)
        return AuthResult(success=True, is_new_user=create_user)

    async def sign_in_or_sign_up(self, phone: str) -> AuthResult:
        """
        Send a code to an existing account, creating the account if needed.

        Tries sign-in first; a "user not found" style error falls through to
        sign-up. Any other error is returned as-is.
        """
        result = await self._send(phone, create_user=False)
        if not result.success and is_user_not_found_error(result.error):
            logger.info("No account for phone, sending sign-up code")
            return await self._send(phone, create_user=True)
        return result

    async def resend(self, phone: str) -> AuthResult:
        return await self.sign_in_or_sign_up(phone)

    async def verify(self, phone: str, code: str) -> AuthResult:
        """Verify an SMS code and return the new session."""
        try:
            response = await asyncio.to_thread(
                self.client.auth.verify_otp,
                {"phone": phone, "token": code, "type": "sms"},
            )
        except Exception as e:
            logger.warning(f"Supabase OTP verification failed for {phone[-4:]}: {e}")
            return AuthResult(success=False, error=str(e) or GENERIC_OTP_ERROR)

        session = getattr(response, "session", None)
        if session is None:
            return AuthResult(success=False, error="Verification failed")

        user = getattr(response, "user", None)
        return AuthResult(
            success=True,
            session={
                "access_token": session.access_token,
                "refresh_token": session.refresh_token,
                "expires_in": session.expires_in,
                "expires_at": session.expires_at,
                "token_type": session.token_type,
            },
            user={"id": str(user.id), "phone": user.phone} if user else {},
        )


async def delete_auth_user(user_id: str) -> None:
    """Delete a user from Supabase Auth (admin API)."""
    supabase = get_supabase_admin_client()
    await asyncio.to_thread(supabase.auth.admin.delete_user, user_id)
