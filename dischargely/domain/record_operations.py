"""Domain operations for Record model."""

import uuid as uuid_pkg

from sqlalchemy.ext.asyncio import AsyncSession

from dischargely.domain.base_operations import BaseOperations
from dischargely.models.record import Record


class RecordOperations(BaseOperations[Record]):
    """CRUD operations for Record model."""

    def __init__(self) -> None:
        super().__init__(Record)

    async def create_record(
        self,
        db: AsyncSession,
        user_id: uuid_pkg.UUID,
        medical_notes: str,
        summary: str,
        discharge_plan: str,
    ) -> Record:
        """Store the notes and the documents generated from them."""
        return await self.create(
            db,
            obj_in={
                "medical_notes": medical_notes,
                "summary": summary,
                "discharge_plan": discharge_plan,
            },
            user_id=user_id,
        )


record_ops = RecordOperations()
