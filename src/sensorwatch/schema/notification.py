"""Notification records."""

from datetime import datetime

from pydantic import BaseModel, Field


class NotificationRecord(BaseModel):
    """A user-visible record of a delivered alert."""

    message: str = Field(..., alias="mensaje")
    sensor_name: str | None = Field(None, alias="sensor_nombre")
    created_at: datetime = Field(..., alias="fecha")

    model_config = {"frozen": True, "populate_by_name": True}
