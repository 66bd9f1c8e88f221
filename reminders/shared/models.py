"""
Reminder Models

Pydantic models for user records in the reminder table, plus the
ephemeral records describing one dispatch attempt and one run.

Item layout:
    PK: USER#<user_key>
    SK: PROFILE
    reminders: [{"id": ..., "title": ..., "sent": bool}, ...]
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
import structlog

log = structlog.get_logger()

USER_PK_PREFIX = "USER#"
PROFILE_SK = "PROFILE"
CLAIM_SK_PREFIX = "CLAIM#"


# =====================================================
# Stored Records
# =====================================================


class Reminder(BaseModel):
    """A reminder owned by a user record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    reminder_id: str | None = Field(default=None, alias="id", description="Unique within the owning user")
    title: str | None = Field(default=None, description="Display title, used as the email body")
    sent: bool = Field(default=False, description="Delivered by this job; never reverts")

    @property
    def is_pending(self) -> bool:
        return not self.sent


class UserRecord(BaseModel):
    """
    User record stored in DynamoDB.

    Owns the list of reminders; the store is the only source of truth
    for their sent state.
    """

    model_config = ConfigDict(frozen=True)

    user_key: str = Field(..., description="Unique user identity key")
    email: str | None = Field(default=None, description="Contact address (required for dispatch)")
    name: str | None = Field(default=None, description="Display name")
    reminders: list[Reminder] = Field(default_factory=list, description="Owned reminders")

    @property
    def pk(self) -> str:
        return f"{USER_PK_PREFIX}{self.user_key}"

    @property
    def sk(self) -> str:
        return PROFILE_SK

    @property
    def pending_reminders(self) -> list[Reminder]:
        """Reminders still waiting to be delivered."""
        return [r for r in self.reminders if r.is_pending]

    @property
    def has_pending(self) -> bool:
        return any(r.is_pending for r in self.reminders)

    def to_dynamodb(self) -> dict[str, Any]:
        """Convert to DynamoDB item."""
        item: dict[str, Any] = {
            "PK": self.pk,
            "SK": self.sk,
            "user_key": self.user_key,
            "reminders": [
                r.model_dump(by_alias=True, exclude_none=True) for r in self.reminders
            ],
        }
        if self.email is not None:
            item["email"] = self.email
        if self.name is not None:
            item["name"] = self.name
        return item

    @classmethod
    def from_dynamodb(cls, item: dict[str, Any]) -> "UserRecord":
        """
        Parse from DynamoDB item.

        Reminder entries that are not maps are dropped so one malformed
        entry does not hide its siblings.
        """
        user_key = item.get("user_key")
        if not user_key:
            pk = item.get("PK", "")
            user_key = pk[len(USER_PK_PREFIX):] if pk.startswith(USER_PK_PREFIX) else pk

        reminders: list[Reminder] = []
        raw_reminders = item.get("reminders") or []
        if not isinstance(raw_reminders, list):
            log.warning("reminders_not_a_list", user_key=user_key)
            raw_reminders = []

        for raw in raw_reminders:
            if not isinstance(raw, dict):
                log.warning("reminder_entry_malformed", user_key=user_key)
                continue
            try:
                reminders.append(
                    Reminder(
                        id=_as_optional_str(raw.get("id")),
                        title=_as_optional_str(raw.get("title")),
                        sent=raw.get("sent") is True,
                    )
                )
            except ValidationError as e:
                log.warning("reminder_entry_invalid", user_key=user_key, error=str(e))

        return cls(
            user_key=str(user_key),
            email=_as_optional_str(item.get("email")),
            name=_as_optional_str(item.get("name")),
            reminders=reminders,
        )


def _as_optional_str(value: Any) -> str | None:
    """Blank strings count as missing."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =====================================================
# Notification Channel Values
# =====================================================


class SendStatus(str, Enum):
    """Terminal status of a send request."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class SendHandle:
    """Opaque token for one in-flight send request."""

    operation_id: str
    recipient: str


@dataclass(frozen=True)
class PollStatus:
    done: bool


@dataclass(frozen=True)
class SendResult:
    """Terminal result of a send request."""

    status: SendStatus
    message_id: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SendStatus.SUCCEEDED


# =====================================================
# Dispatch Attempt (ephemeral)
# =====================================================


class DispatchOutcome(str, Enum):
    """Terminal outcome of one send cycle."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class DispatchAttempt:
    """
    One send cycle for one reminder.

    Never stored; reflected only in logs and, on success, in the
    persisted sent flag.
    """

    user_key: str
    reminder_id: str
    submitted_at: float
    elapsed_seconds: float = 0.0
    polls: int = 0
    outcome: DispatchOutcome | None = None
    message_id: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DispatchOutcome.SUCCEEDED


# =====================================================
# Run Summary
# =====================================================


@dataclass
class DispatchSummary:
    """Summary of one dispatch run."""

    users_scanned: int = 0
    users_skipped: int = 0
    reminders_sent: int = 0
    reminders_failed: int = 0
    reminders_timed_out: int = 0
    reminders_skipped: int = 0
    reminders_would_send: int = 0
    inconsistencies: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Response body for the trigger."""
        return {
            "users_scanned": self.users_scanned,
            "users_skipped": self.users_skipped,
            "reminders_sent": self.reminders_sent,
            "reminders_failed": self.reminders_failed,
            "reminders_timed_out": self.reminders_timed_out,
            "reminders_skipped": self.reminders_skipped,
            "reminders_would_send": self.reminders_would_send,
            "inconsistencies": self.inconsistencies,
            "errors": self.errors if self.errors else None,
            "duration_ms": round(self.duration_ms, 2),
        }
