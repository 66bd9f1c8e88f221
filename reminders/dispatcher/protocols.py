"""
Capabilities the dispatcher consumes.

Both external services are reached only through these narrow
interfaces so they can be replaced by in-memory fakes.
"""

from typing import Protocol

from reminders.shared.models import PollStatus, SendHandle, SendResult, UserRecord


class ReminderStore(Protocol):
    """Query and conditional-update access to user records."""

    def find_pending(self) -> list[UserRecord]: ...

    def is_pending(self, user_key: str, reminder_id: str) -> bool: ...

    def mark_sent(self, user_key: str, reminder_id: str) -> int: ...

    def claim(self, user_key: str, reminder_id: str, lease_seconds: int) -> bool: ...

    def release_claim(self, user_key: str, reminder_id: str) -> None: ...

    def close(self) -> None: ...


class NotificationChannel(Protocol):
    """Asynchronous send channel: submit, poll until done, read result."""

    def submit(
        self,
        recipient_address: str,
        display_name: str | None,
        subject: str,
        body: str,
    ) -> SendHandle: ...

    def poll(self, handle: SendHandle) -> PollStatus: ...

    def result(self, handle: SendHandle) -> SendResult: ...
