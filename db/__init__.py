"""Database layer for the parking booking assistant."""

from .base import Base, TimestampMixin
from .models_sqlalchemy import Lot, Conversation, Booking, SmsMessage, ScheduledMessage
from .session import (
    engine,
    SessionLocal,
    get_db,
    get_session_context,
    init_db,
    drop_db,
    close_db,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Models
    "Lot",
    "Conversation",
    "Booking",
    "SmsMessage",
    "ScheduledMessage",
    # Session
    "engine",
    "SessionLocal",
    "get_db",
    "get_session_context",
    "init_db",
    "drop_db",
    "close_db",
]
