"""Notification records as the notifications table stores them."""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class NotificationRecord(BaseModel):
    """One user-facing notification.

    Frozen: reducers replace records with `model_copy(update=...)` rather
    than mutating them, so a record handed to the renderer never changes
    underneath it. Unknown columns are kept.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: Union[int, str]
    title: str = ""
    message: str = ""
    severity: str = "info"
    read: bool = False
    created_at: Optional[datetime] = None

    @property
    def text(self) -> str:
        """What a toast for this notification should say."""
        return self.title or self.message
