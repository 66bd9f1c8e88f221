#!/usr/bin/env python3
"""
Run the reminder dispatch job locally.

Usage:
    # Show what would be sent without sending or updating anything
    python scripts/run_dispatch.py --dry-run

    # Create the table on a local DynamoDB and load sample users first
    python scripts/run_dispatch.py --create-table --seed scripts/sample_users.json

Settings come from REMINDERS_* environment variables or .env.local/.env,
exactly as in the Lambda.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import boto3
from botocore.exceptions import ClientError
import structlog

from lambdas.dispatch_reminders.handler import build_orchestrator
from reminders.shared.config import Settings, load_settings
from reminders.shared.exceptions import ReminderDispatchError
from reminders.shared.models import UserRecord

log = structlog.get_logger()


def create_table(settings: Settings) -> None:
    """Create the reminder table if it does not exist yet."""
    dynamodb = boto3.resource("dynamodb", **settings.dynamodb_config)
    try:
        table = dynamodb.create_table(
            TableName=settings.table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        table.meta.client.get_waiter("table_exists").wait(TableName=settings.table_name)
        log.info("table_created", table_name=settings.table_name)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") != "ResourceInUseException":
            raise
        log.info("table_exists", table_name=settings.table_name)


def seed_users(settings: Settings, seed_file: Path) -> int:
    """Load users from a JSON list into the table."""
    users = [UserRecord.model_validate(raw) for raw in json.loads(seed_file.read_text())]
    table = boto3.resource("dynamodb", **settings.dynamodb_config).Table(settings.table_name)
    with table.batch_writer() as batch:
        for user in users:
            batch.put_item(Item=user.to_dynamodb())
    log.info("users_seeded", count=len(users), table_name=settings.table_name)
    return len(users)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run the reminder dispatch job once",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --dry-run                     Show what would be sent
  %(prog)s --seed users.json             Load users, then dispatch
  %(prog)s --create-table --seed u.json  Prepare a local table first
        """,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Select candidates without sending or updating",
    )
    parser.add_argument(
        "--create-table",
        action="store_true",
        help="Create the reminder table if missing",
    )
    parser.add_argument(
        "--seed",
        type=Path,
        help="JSON file with a list of user records to load first",
    )
    args = parser.parse_args()

    try:
        settings = load_settings()
        settings.validate_required()
        if args.create_table:
            create_table(settings)
        if args.seed:
            seed_users(settings, args.seed)
        summary = build_orchestrator(settings).run(dry_run=args.dry_run)
    except ReminderDispatchError as e:
        print(f"Dispatch aborted: {e}", file=sys.stderr)
        return 1

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
