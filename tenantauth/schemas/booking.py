from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference: str
    title: str
    notes: str | None
    status: str
    organization_id: int | None
    parent_id: int
    created_by_tutor_id: int | None
    created_at: datetime
