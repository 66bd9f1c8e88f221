"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, settings, sample user records, and fakes.
"""

import os
from typing import Any

import boto3
from botocore.exceptions import ClientError
import pytest
from moto import mock_aws

from reminders.shared.config import Settings
from tests.mocks.fakes import FakeChannel, FakeReminderStore, RecordingSleep

# Set test environment before importing application modules
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

TEST_STORE_URI = "https://dynamodb.us-west-2.amazonaws.com"
TEST_TABLE_NAME = "Gnosis-users"
TEST_SENDER = "reminders@example.com"


@pytest.fixture(autouse=True)
def clean_reminder_env(monkeypatch):
    """Keep REMINDERS_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("REMINDERS_"):
            monkeypatch.delenv(name, raising=False)


# --- Settings Fixtures ---


@pytest.fixture
def settings() -> Settings:
    """Complete settings with claiming enabled."""
    return Settings(
        store_uri=TEST_STORE_URI,
        database_name="Gnosis",
        collection_name="users",
        email_sender=TEST_SENDER,
        aws_region="us-west-2",
    )


@pytest.fixture
def settings_env(monkeypatch) -> dict[str, str]:
    """Required settings exported as environment variables."""
    env = {
        "REMINDERS_STORE_URI": TEST_STORE_URI,
        "REMINDERS_DATABASE_NAME": "Gnosis",
        "REMINDERS_COLLECTION_NAME": "users",
        "REMINDERS_EMAIL_SENDER": TEST_SENDER,
        "REMINDERS_AWS_REGION": "us-west-2",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-west-2",
    }


def _create_table(dynamodb) -> Any:
    try:
        table = dynamodb.create_table(
            TableName=TEST_TABLE_NAME,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            ProvisionedThroughput={
                "ReadCapacityUnits": 5,
                "WriteCapacityUnits": 5,
            },
        )
        table.meta.client.get_waiter("table_exists").wait(TableName=TEST_TABLE_NAME)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") != "ResourceInUseException":
            raise
        table = dynamodb.Table(TEST_TABLE_NAME)
    return table


@pytest.fixture
def mock_dynamodb(aws_credentials):
    """Create a mocked reminder table."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", **aws_credentials)
        yield _create_table(dynamodb)


@pytest.fixture
def mock_ses(aws_credentials):
    """Create mocked SES with a verified sender."""
    with mock_aws():
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress=TEST_SENDER)
        yield ses


@pytest.fixture
def mock_aws_all(aws_credentials):
    """Mocked reminder table and SES in one moto context."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", **aws_credentials)
        table = _create_table(dynamodb)
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress=TEST_SENDER)
        yield {"table": table, "ses": ses}


# --- Sample Data Fixtures ---


@pytest.fixture
def user_item():
    """Build a DynamoDB user item."""

    def _build(
        user_key: str,
        email: str | None = "a@x.com",
        reminders: list[dict[str, Any]] | None = None,
        name: str | None = None,
    ) -> dict[str, Any]:
        item: dict[str, Any] = {
            "PK": f"USER#{user_key}",
            "SK": "PROFILE",
            "user_key": user_key,
            "reminders": reminders if reminders is not None else [],
        }
        if email is not None:
            item["email"] = email
        if name is not None:
            item["name"] = name
        return item

    return _build


@pytest.fixture
def pay_bill_user(user_item) -> dict[str, Any]:
    """Single user with one unsent reminder."""
    return user_item(
        "u1",
        email="a@x.com",
        reminders=[{"id": "r1", "title": "Pay bill", "sent": False}],
    )


# --- Fakes ---


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_store_factory():
    """Wrap a FakeReminderStore so it can be passed as a store factory."""

    def _factory(store: FakeReminderStore):
        def _open(_settings):
            return store

        return _open

    return _factory
