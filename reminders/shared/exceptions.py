"""
Custom Exceptions for the Reminder Dispatch Job

All exceptions follow the pattern of specific, actionable errors
with context needed for operator triage through logs.
"""

from dataclasses import dataclass
from typing import Any


class ReminderDispatchError(Exception):
    """Base exception for the reminder dispatch job."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


@dataclass
class ConfigurationError(ReminderDispatchError):
    """Configuration is missing, blank or unparseable. Fatal to the run."""

    missing: list[str]

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"Missing or invalid configuration: {', '.join(missing)}",
            missing=missing,
        )


@dataclass
class StoreConnectionError(ReminderDispatchError):
    """Could not open the reminder store. Fatal to the run."""

    table_name: str

    def __init__(self, table_name: str, error_message: str | None = None) -> None:
        self.table_name = table_name
        super().__init__(
            f"Could not connect to table '{table_name}': {error_message or 'Unknown error'}",
            table_name=table_name,
            error_message=error_message,
        )


@dataclass
class DynamoDBError(ReminderDispatchError):
    """DynamoDB operation failed."""

    operation: str  # "scan", "update", "claim", "release"
    table_name: str

    def __init__(
        self,
        operation: str,
        table_name: str,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.table_name = table_name
        super().__init__(
            f"DynamoDB {operation} failed on table '{table_name}': {error_message or 'Unknown error'}",
            operation=operation,
            table_name=table_name,
            error_message=error_message,
        )


@dataclass
class SESError(ReminderDispatchError):
    """SES email operation failed at the transport level."""

    operation: str  # "send"
    recipient: str | None = None

    def __init__(
        self,
        operation: str,
        recipient: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.recipient = recipient
        super().__init__(
            f"SES {operation} failed{f' for {recipient}' if recipient else ''}: "
            f"{error_message or 'Unknown error'}",
            operation=operation,
            recipient=recipient,
            error_message=error_message,
        )


@dataclass
class SendFailureError(ReminderDispatchError):
    """Channel reported a non-success terminal status for a reminder."""

    user_key: str
    reminder_id: str
    error_message: str | None = None

    def __init__(
        self,
        user_key: str,
        reminder_id: str,
        error_message: str | None = None,
    ) -> None:
        self.user_key = user_key
        self.reminder_id = reminder_id
        self.error_message = error_message
        super().__init__(
            f"Send failed for reminder '{reminder_id}': {error_message or 'Unknown error'}",
            user_key=user_key,
            reminder_id=reminder_id,
        )


@dataclass
class PollTimeoutError(ReminderDispatchError):
    """Send handle did not complete before the poll timeout."""

    user_key: str
    reminder_id: str
    elapsed_seconds: float

    def __init__(self, user_key: str, reminder_id: str, elapsed_seconds: float) -> None:
        self.user_key = user_key
        self.reminder_id = reminder_id
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Polling timed out for reminder '{reminder_id}' after {elapsed_seconds:g}s",
            user_key=user_key,
            reminder_id=reminder_id,
            elapsed_seconds=elapsed_seconds,
        )


@dataclass
class PersistenceInconsistencyError(ReminderDispatchError):
    """Sent-state update matched no document."""

    user_key: str
    reminder_id: str

    def __init__(self, user_key: str, reminder_id: str) -> None:
        self.user_key = user_key
        self.reminder_id = reminder_id
        super().__init__(
            f"No document updated for reminder '{reminder_id}' "
            "(not found or already changed)",
            user_key=user_key,
            reminder_id=reminder_id,
        )


@dataclass
class InvalidStateTransitionError(ReminderDispatchError):
    """Attempted invalid reminder state transition."""

    current_state: str
    new_state: str
    allowed_transitions: list[str]

    def __init__(
        self,
        current_state: str,
        new_state: str,
        allowed_transitions: list[str],
    ) -> None:
        self.current_state = current_state
        self.new_state = new_state
        self.allowed_transitions = allowed_transitions
        super().__init__(
            f"Cannot transition from '{current_state}' to '{new_state}'. "
            f"Allowed transitions: {allowed_transitions}",
            current_state=current_state,
            new_state=new_state,
            allowed_transitions=allowed_transitions,
        )
