"""
DispatchReminders Lambda Handler

Main entry point for the scheduled reminder dispatch Lambda.
Sends every undelivered reminder once and records delivery.

Trigger: EventBridge Scheduled Rule (e.g., cron(0 0 * * ? *) for daily midnight)
Output: Reminder emails via SES, sent flags in DynamoDB

Flow:
1. Parse scheduled event (optional dry_run flag)
2. Load settings from the environment
3. Run the dispatch orchestrator against DynamoDB and SES
4. Return summary of reminders sent
"""

import json
import logging
from typing import Any

import structlog

from reminders.dispatcher.orchestrator import DispatchOrchestrator
from reminders.shared.config import Settings, load_settings
from reminders.shared.exceptions import ReminderDispatchError
from reminders.shared.tools.dynamodb import DynamoReminderStore
from reminders.shared.tools.email import SESNotificationChannel

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()


def build_orchestrator(settings: Settings, **kwargs: Any) -> DispatchOrchestrator:
    """Wire the orchestrator to DynamoDB and SES."""
    return DispatchOrchestrator(
        settings,
        DynamoReminderStore.connect,
        SESNotificationChannel.from_settings,
        **kwargs,
    )


def _parse_scheduled_event(event: dict[str, Any]) -> dict[str, Any]:
    """
    Parse scheduled EventBridge event for optional configuration.

    The scheduled rule can include custom parameters in the detail:
    - dry_run: If true, select candidates but don't send or update

    Args:
        event: Lambda event payload

    Returns:
        Configuration dict
    """
    config = {"dry_run": False}

    detail = event.get("detail", {})
    if isinstance(detail, str):
        try:
            detail = json.loads(detail)
        except json.JSONDecodeError:
            log.warning("scheduled_event_detail_unparseable")
            detail = {}

    if isinstance(detail, dict):
        config["dry_run"] = detail.get("dry_run") is True

    return config


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Main Lambda handler for scheduled reminder dispatch.

    Args:
        event: EventBridge scheduled event
        context: Lambda context

    Returns:
        Processing result summary
    """
    config = _parse_scheduled_event(event or {})

    log.info("dispatch_reminders_invoked", dry_run=config["dry_run"])

    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)
        summary = build_orchestrator(settings).run(dry_run=config["dry_run"])
    except ReminderDispatchError as e:
        log.error(
            "dispatch_reminders_aborted",
            error=str(e),
            error_type=type(e).__name__,
        )
        return {
            "statusCode": 500,
            "body": {
                "message": "Reminder dispatch aborted",
                "error": str(e),
                "error_type": type(e).__name__,
            },
        }

    return {
        "statusCode": 200,
        "body": {
            "message": "Reminder dispatch complete",
            "dry_run": config["dry_run"],
            **summary.to_dict(),
        },
    }
