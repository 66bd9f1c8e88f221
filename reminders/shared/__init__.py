# Shared Infrastructure for the Reminder Dispatch Job
"""
Shared infrastructure components.

This package provides:
- Reminder state machine (ReminderState, valid transitions)
- Pydantic models for user records and dispatch summaries
- DynamoDB store and SES notification channel
- Configuration management
- Custom exceptions
"""

from reminders.shared.config import Settings, load_settings
from reminders.shared.exceptions import (
    ConfigurationError,
    DynamoDBError,
    PersistenceInconsistencyError,
    PollTimeoutError,
    ReminderDispatchError,
    SendFailureError,
    SESError,
    StoreConnectionError,
)
from reminders.shared.state_machine import ReminderState, VALID_TRANSITIONS, validate_transition

__all__ = [
    "Settings",
    "load_settings",
    "ConfigurationError",
    "DynamoDBError",
    "PersistenceInconsistencyError",
    "PollTimeoutError",
    "ReminderDispatchError",
    "SendFailureError",
    "SESError",
    "StoreConnectionError",
    "ReminderState",
    "VALID_TRANSITIONS",
    "validate_transition",
]
