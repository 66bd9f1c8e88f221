"""
DispatchReminders Lambda

Periodic Lambda triggered by EventBridge Scheduled Rule to deliver
reminders that have not been sent yet.

Components:
- handler: Lambda entry point for scheduled trigger

Flow:
1. Triggered by scheduled EventBridge rule (daily)
2. Scan the user table for reminders with sent == false
3. Send each reminder by email and wait for confirmation
4. Mark confirmed reminders sent
5. Return summary of reminders dispatched
"""

from lambdas.dispatch_reminders.handler import build_orchestrator, lambda_handler

__all__ = [
    "build_orchestrator",
    "lambda_handler",
]
