"""Activity log models."""

import datetime as dt
import uuid
from typing import Any

from pydantic import BaseModel, Field

from ai_pulse.models.common import UtcDatetime, utc_now


class ActivityEvent(BaseModel):
    """Append-only interaction log entry, e.g. "dashboard_visit"."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    type: str
    created_at: UtcDatetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)


class CalendarDay(BaseModel):
    """One UTC calendar day bucket of the activity heatmap."""

    date: dt.date
    is_active: bool = False
