"""Discharge summary generation endpoint."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from dischargely.api.deps import AppServices, CurrentUser, DbSession
from dischargely.core.dates import utc_now
from dischargely.core.exceptions import (
    QuotaExceededError,
    UpstreamServiceError,
    UsageLimitError,
    ValidationError,
)
from dischargely.core.validation import validate_medical_notes
from dischargely.domain import record_ops, user_ops
from dischargely.services.interpreter import ClerkingNotes, InterpreterError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/summaries", tags=["summaries"])


class SummaryRequest(BaseModel):
    medical_notes: str


class SummaryResponse(BaseModel):
    summary: str
    discharge_plan: str


@router.post("", response_model=SummaryResponse)
async def create_summary(
    data: SummaryRequest,
    current_user: CurrentUser,
    db: DbSession,
    services: AppServices,
) -> SummaryResponse:
    """
    Turn clerking notes into a discharge summary and plan.

    Free users get a small daily allowance; paid users and users inside a
    referral reward window are not counted. The usage increment is rolled
    back with the request if generation fails.
    """
    error = validate_medical_notes(data.medical_notes)
    if error:
        raise ValidationError(error)

    now = utc_now()
    try:
        await user_ops.consume_daily_quota(db, current_user, now=now, today=now.date())
    except QuotaExceededError as e:
        logger.info(str(e))
        raise UsageLimitError() from e

    try:
        documents = await services.summary_interpreter.interpret(
            ClerkingNotes(content=data.medical_notes.strip())
        )
    except InterpreterError as e:
        logger.error(f"Summary generation failed for user {current_user.id}: {e}")
        raise UpstreamServiceError("OpenAI") from e

    await record_ops.create_record(
        db,
        user_id=current_user.id,
        medical_notes=data.medical_notes,
        summary=documents.summary,
        discharge_plan=documents.discharge_plan,
    )
    await db.commit()

    return SummaryResponse(summary=documents.summary, discharge_plan=documents.discharge_plan)
