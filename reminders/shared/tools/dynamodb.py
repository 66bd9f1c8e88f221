"""
DynamoDB Tools

Reminder store backed by a single DynamoDB table holding one item per
user. The sent-state update is conditional and scoped to exactly one
reminder inside one user item.
"""

import time
from typing import Any, Callable

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from reminders.shared.config import Settings
from reminders.shared.exceptions import DynamoDBError, StoreConnectionError
from reminders.shared.models import (
    CLAIM_SK_PREFIX,
    PROFILE_SK,
    USER_PK_PREFIX,
    UserRecord,
)

log = structlog.get_logger()


def _user_key(user_key: str) -> dict[str, str]:
    return {"PK": f"{USER_PK_PREFIX}{user_key}", "SK": PROFILE_SK}


def _claim_key(user_key: str, reminder_id: str) -> dict[str, str]:
    return {"PK": f"{USER_PK_PREFIX}{user_key}", "SK": f"{CLAIM_SK_PREFIX}{reminder_id}"}


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoReminderStore:
    """
    Reminder store over a DynamoDB table.

    One instance is opened per run and owned by it. close() releases the
    underlying client connections and is safe to call more than once.
    """

    def __init__(
        self,
        table: Any,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._table = table
        self._clock = clock
        self._closed = False

    @classmethod
    def connect(cls, settings: Settings) -> "DynamoReminderStore":
        """
        Open the table named by settings and check that it is reachable.

        Raises:
            StoreConnectionError: If the table cannot be described
        """
        table_name = settings.table_name
        log.debug("connecting_reminder_store", table_name=table_name)

        try:
            dynamodb = boto3.resource("dynamodb", **settings.dynamodb_config)
            table = dynamodb.Table(table_name)
            table.load()
        except (ClientError, BotoCoreError) as e:
            log.error("reminder_store_connect_failed", table_name=table_name, error=str(e))
            raise StoreConnectionError(table_name=table_name, error_message=str(e)) from e

        return cls(table)

    @property
    def table_name(self) -> str:
        return self._table.name

    def find_pending(self) -> list[UserRecord]:
        """
        Find users holding at least one reminder with sent == false.

        Reminders live in a list attribute, so the pending check runs on
        each scanned user item rather than in the filter expression.

        Returns:
            Users in scan order

        Raises:
            DynamoDBError: On DynamoDB operation failure
        """
        users: list[UserRecord] = []
        scanned = 0
        scan_kwargs: dict[str, Any] = {
            "FilterExpression": Attr("SK").eq(PROFILE_SK),
            "ConsistentRead": True,
        }

        while True:
            try:
                response = self._table.scan(**scan_kwargs)
            except (ClientError, BotoCoreError) as e:
                log.error("dynamodb_scan_failed", table_name=self.table_name, error=str(e))
                raise DynamoDBError(
                    operation="scan",
                    table_name=self.table_name,
                    error_message=str(e),
                ) from e

            for item in response.get("Items", []):
                scanned += 1
                user = UserRecord.from_dynamodb(item)
                if user.has_pending:
                    users.append(user)

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            scan_kwargs["ExclusiveStartKey"] = last_key

        log.info(
            "pending_users_found",
            table_name=self.table_name,
            scanned=scanned,
            pending=len(users),
        )
        return users

    def is_pending(self, user_key: str, reminder_id: str) -> bool:
        """
        Re-read one reminder and check it is still undelivered.

        Uses a consistent read so a send persisted by another run since
        the candidate scan is visible.

        Returns:
            True if the reminder exists and sent is not true

        Raises:
            DynamoDBError: On DynamoDB operation failure
        """
        item = self._get_user_item(user_key)
        if not item:
            return False

        reminders = item.get("reminders")
        index = _find_reminder_index(reminders, reminder_id)
        if index is None:
            return False
        return reminders[index].get("sent") is not True

    def _get_user_item(self, user_key: str) -> dict[str, Any] | None:
        try:
            response = self._table.get_item(Key=_user_key(user_key), ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise DynamoDBError(
                operation="get",
                table_name=self.table_name,
                error_message=str(e),
            ) from e
        return response.get("Item")

    def mark_sent(self, user_key: str, reminder_id: str) -> int:
        """
        Flip sent from false to true for exactly one reminder.

        The update is conditioned on the targeted list element still
        carrying this reminder id with sent == false.

        Returns:
            Number of documents modified (0 or 1)

        Raises:
            DynamoDBError: On DynamoDB operation failure
        """
        item = self._get_user_item(user_key)
        if not item:
            log.debug("mark_sent_user_missing", user_key=user_key, reminder_id=reminder_id)
            return 0

        index = _find_reminder_index(item.get("reminders"), reminder_id)
        if index is None:
            log.debug("mark_sent_reminder_missing", user_key=user_key, reminder_id=reminder_id)
            return 0

        path = f"#reminders[{index}]"
        try:
            self._table.update_item(
                Key=_user_key(user_key),
                UpdateExpression=f"SET {path}.#sent = :sent",
                ConditionExpression=f"{path}.#id = :reminder_id AND {path}.#sent = :unsent",
                ExpressionAttributeNames={
                    "#reminders": "reminders",
                    "#sent": "sent",
                    "#id": "id",
                },
                ExpressionAttributeValues={
                    ":sent": True,
                    ":unsent": False,
                    ":reminder_id": reminder_id,
                },
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                log.debug(
                    "mark_sent_condition_failed",
                    user_key=user_key,
                    reminder_id=reminder_id,
                )
                return 0
            raise DynamoDBError(
                operation="update",
                table_name=self.table_name,
                error_message=str(e),
            ) from e
        except BotoCoreError as e:
            raise DynamoDBError(
                operation="update",
                table_name=self.table_name,
                error_message=str(e),
            ) from e

        log.debug("reminder_marked_sent", user_key=user_key, reminder_id=reminder_id)
        return 1

    def claim(self, user_key: str, reminder_id: str, lease_seconds: int) -> bool:
        """
        Atomically claim a reminder for this run.

        Succeeds when no claim exists or the existing lease has expired.

        Returns:
            True if this run now owns the reminder

        Raises:
            DynamoDBError: On DynamoDB operation failure
        """
        now = int(self._clock())
        try:
            self._table.put_item(
                Item={
                    **_claim_key(user_key, reminder_id),
                    "user_key": user_key,
                    "reminder_id": reminder_id,
                    "lease_expires_at": now + lease_seconds,
                },
                ConditionExpression="attribute_not_exists(PK) OR lease_expires_at < :now",
                ExpressionAttributeValues={":now": now},
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                log.info("reminder_already_claimed", user_key=user_key, reminder_id=reminder_id)
                return False
            raise DynamoDBError(
                operation="claim",
                table_name=self.table_name,
                error_message=str(e),
            ) from e
        except BotoCoreError as e:
            raise DynamoDBError(
                operation="claim",
                table_name=self.table_name,
                error_message=str(e),
            ) from e

        return True

    def release_claim(self, user_key: str, reminder_id: str) -> None:
        """
        Drop this run's claim on a reminder.

        Raises:
            DynamoDBError: On DynamoDB operation failure
        """
        try:
            self._table.delete_item(Key=_claim_key(user_key, reminder_id))
        except (ClientError, BotoCoreError) as e:
            raise DynamoDBError(
                operation="release",
                table_name=self.table_name,
                error_message=str(e),
            ) from e

    def close(self) -> None:
        """Release the client connections. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._table.meta.client.close()
        log.debug("reminder_store_closed", table_name=self.table_name)


def _find_reminder_index(reminders: Any, reminder_id: str) -> int | None:
    if not isinstance(reminders, list):
        return None
    for index, reminder in enumerate(reminders):
        if isinstance(reminder, dict) and reminder.get("id") == reminder_id:
            return index
    return None
