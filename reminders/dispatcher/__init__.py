"""
Dispatch orchestration for pending reminders.
"""

from reminders.dispatcher.orchestrator import DispatchOrchestrator
from reminders.dispatcher.protocols import NotificationChannel, ReminderStore

__all__ = [
    "DispatchOrchestrator",
    "NotificationChannel",
    "ReminderStore",
]
