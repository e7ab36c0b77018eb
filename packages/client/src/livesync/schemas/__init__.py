"""Pydantic models for events, filters and records."""

from livesync.schemas.change import ChangeEvent
from livesync.schemas.notification import NotificationRecord
from livesync.schemas.predicate import Predicate

__all__ = ["ChangeEvent", "NotificationRecord", "Predicate"]
