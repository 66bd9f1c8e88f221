"""
Email Tools

SES notification channel exposing the submit -> poll -> result protocol
the dispatcher drives. SES accepts or rejects a message synchronously,
so a handle is already complete once submit() returns; the protocol is
kept so the dispatcher can treat every channel the same way.
"""

from email.headerregistry import Address
from typing import Any
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from reminders.shared.config import Settings
from reminders.shared.exceptions import SESError
from reminders.shared.models import PollStatus, SendHandle, SendResult, SendStatus

log = structlog.get_logger()

# SES error codes meaning the message itself was refused. Any other
# error is a transport problem and is raised to the caller.
REJECTION_CODES = frozenset({
    "MessageRejected",
    "MailFromDomainNotVerifiedException",
    "ConfigurationSetDoesNotExist",
    "ConfigurationSetSendingPausedException",
    "AccountSendingPausedException",
})


def format_recipient(address: str, display_name: str | None) -> str:
    """
    Format a recipient as 'Name <address>'.

    Falls back to the bare address when it cannot be split into
    username and domain.
    """
    if not display_name:
        return address
    username, sep, domain = address.partition("@")
    if not sep:
        return address
    try:
        return str(Address(display_name=display_name, username=username, domain=domain))
    except (ValueError, IndexError):
        return address


class SESNotificationChannel:
    """
    Notification channel sending reminders through SES.

    Results are kept in memory per handle for the lifetime of the
    channel, which is one run.
    """

    def __init__(
        self,
        client: Any,
        from_address: str,
        *,
        from_name: str | None = None,
        configuration_set: str | None = None,
    ) -> None:
        self._client = client
        self._from_address = from_address
        self._from_name = from_name
        self._configuration_set = configuration_set
        self._results: dict[str, SendResult] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SESNotificationChannel":
        """Build a channel with an SES client from settings."""
        return cls(
            boto3.client("ses", **settings.ses_config),
            settings.email_sender,
            from_name=settings.email_sender_name,
            configuration_set=settings.ses_configuration_set,
        )

    @property
    def source(self) -> str:
        return format_recipient(self._from_address, self._from_name)

    def submit(
        self,
        recipient_address: str,
        display_name: str | None,
        subject: str,
        body: str,
    ) -> SendHandle:
        """
        Submit a send request.

        Args:
            recipient_address: Recipient email address
            display_name: Recipient display name
            subject: Email subject
            body: Plain text body

        Returns:
            Handle to poll for completion

        Raises:
            SESError: If SES cannot be reached or fails for a reason other
                than rejecting the message
        """
        handle = SendHandle(operation_id=str(uuid4()), recipient=recipient_address)

        send_params: dict[str, Any] = {
            "Source": self.source,
            "Destination": {"ToAddresses": [format_recipient(recipient_address, display_name)]},
            "Message": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Text": {"Data": body, "Charset": "UTF-8"}},
            },
        }
        if self._configuration_set:
            send_params["ConfigurationSetName"] = self._configuration_set

        log.info(
            "sending_ses_email",
            to=recipient_address,
            subject=subject[:50],
            operation_id=handle.operation_id,
        )

        try:
            response = self._client.send_email(**send_params)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            if error_code in REJECTION_CODES:
                log.warning(
                    "ses_email_rejected",
                    to=recipient_address,
                    error_code=error_code,
                    error=error_message,
                )
                self._results[handle.operation_id] = SendResult(
                    status=SendStatus.FAILED,
                    error=f"{error_code}: {error_message}",
                )
                return handle
            log.error("ses_send_failed", to=recipient_address, error_code=error_code, error=error_message)
            raise SESError(
                operation="send",
                recipient=recipient_address,
                error_message=error_message,
            ) from e
        except BotoCoreError as e:
            log.error("ses_send_failed", to=recipient_address, error=str(e))
            raise SESError(
                operation="send",
                recipient=recipient_address,
                error_message=str(e),
            ) from e

        message_id = response["MessageId"]
        self._results[handle.operation_id] = SendResult(
            status=SendStatus.SUCCEEDED,
            message_id=message_id,
        )
        log.info("ses_email_sent", to=recipient_address, message_id=message_id)
        return handle

    def poll(self, handle: SendHandle) -> PollStatus:
        return PollStatus(done=handle.operation_id in self._results)

    def result(self, handle: SendHandle) -> SendResult:
        """
        Terminal result of a completed handle.

        Raises:
            SESError: If the handle is unknown or not yet complete
        """
        result = self._results.get(handle.operation_id)
        if result is None:
            raise SESError(
                operation="result",
                recipient=handle.recipient,
                error_message=f"No result for operation {handle.operation_id}",
            )
        return result
