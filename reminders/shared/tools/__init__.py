"""
Adapters for the external services the dispatcher consumes.
"""

from reminders.shared.tools.dynamodb import DynamoReminderStore
from reminders.shared.tools.email import SESNotificationChannel

__all__ = [
    "DynamoReminderStore",
    "SESNotificationChannel",
]
