"""Feedback API endpoint for the public contact form."""

import logging
from datetime import datetime

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from dischargely.api.deps import AppServices, DbSession, OptionalUser
from dischargely.config import settings
from dischargely.core.exceptions import ForbiddenError, ValidationError
from dischargely.core.rate_limit import client_id_for
from dischargely.domain import feedback_ops
from dischargely.models.feedback import FeedbackCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["feedback"])


class FeedbackSubmit(FeedbackCreate):
    captcha_token: str | None = None


class FeedbackResponse(BaseModel):
    id: str
    created_at: datetime


@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    data: FeedbackSubmit,
    request: Request,
    current_user: OptionalUser,
    db: DbSession,
    services: AppServices,
) -> FeedbackResponse:
    """
    Submit feedback. Signed-in users are linked to their message.

    Browsers posting from an origin outside CORS_ORIGINS are rejected.
    The Turnstile token may come in the body or the cf-turnstile-response header.
    """
    origin = request.headers.get("origin")
    if origin and origin not in settings.cors_origins:
        logger.warning(f"Rejected feedback from origin {origin}")
        raise ForbiddenError("Origin not allowed")

    token = data.captcha_token or request.headers.get("cf-turnstile-response")
    remote_ip = client_id_for(request).removeprefix("ip:")
    captcha = await services.captcha.verify(token, remote_ip=remote_ip)
    if not captcha.success:
        raise ValidationError(captcha.error or "CAPTCHA verification failed")

    try:
        feedback = await feedback_ops.create_feedback(
            db,
            user_id=current_user.id if current_user else None,
            data=FeedbackCreate(name=data.name, email=data.email, message=data.message),
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e

    await db.commit()
    logger.info(f"Feedback {feedback.id} received")
    return FeedbackResponse(id=str(feedback.id), created_at=feedback.created_at)
