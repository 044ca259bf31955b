"""RentalHub Backend — Notification Schemas."""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    type: str
    is_read: bool
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="details")
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class MarkedReadResponse(BaseModel):
    updated: int
