"""
Reminder Dispatch Orchestrator

Runs once per trigger. Selects users with undelivered reminders, sends
each reminder through the notification channel, waits for the channel
to confirm, and persists the sent flag.

Flow:
1. Validate configuration (fail fast, no I/O on failure)
2. Open the store and query pending users (failures here abort the run)
3. Skip users without a contact address or pending reminders
4. Per reminder: claim -> re-check pending -> submit -> poll until done or
   timeout -> result
5. On confirmed success, conditionally mark the reminder sent
6. Close the store exactly once, whatever happened above

Failures are isolated per reminder and per user; unsent reminders stay
candidates for the next run.
"""

import time
from typing import Callable

import structlog

from reminders.dispatcher.protocols import NotificationChannel, ReminderStore
from reminders.shared.config import Settings
from reminders.shared.exceptions import (
    ConfigurationError,
    PersistenceInconsistencyError,
    PollTimeoutError,
    ReminderDispatchError,
    SendFailureError,
)
from reminders.shared.models import (
    DispatchAttempt,
    DispatchOutcome,
    DispatchSummary,
    Reminder,
    SendHandle,
    UserRecord,
)
from reminders.shared.state_machine import ReminderState, transition

log = structlog.get_logger()

StoreFactory = Callable[[Settings], ReminderStore]
ChannelFactory = Callable[[Settings], NotificationChannel]


class DispatchOrchestrator:
    """
    Sequential dispatcher for pending reminders.

    Args:
        settings: Configuration for this run
        store_factory: Opens the reminder store; called once per run
        channel_factory: Builds the notification channel; called once per run
        sleep: Blocks between completion polls
        clock: Wall clock used for attempt timestamps and run duration
    """

    def __init__(
        self,
        settings: Settings,
        store_factory: StoreFactory,
        channel_factory: ChannelFactory,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._store_factory = store_factory
        self._channel_factory = channel_factory
        self._sleep = sleep
        self._clock = clock

    def run(self, *, dry_run: bool = False) -> DispatchSummary:
        """
        Dispatch every pending reminder once.

        Args:
            dry_run: Select and filter candidates without sending or updating

        Returns:
            Summary of the run

        Raises:
            ConfigurationError: If required settings are missing
            StoreConnectionError: If the store cannot be opened
            DynamoDBError: If the pending query fails
        """
        start_time = self._clock()
        log.info("reminder_dispatch_started", dry_run=dry_run)

        try:
            self._settings.validate_required()
        except ConfigurationError as e:
            log.error("reminder_dispatch_misconfigured", missing=e.missing)
            raise

        store = self._store_factory(self._settings)
        summary = DispatchSummary()
        try:
            channel = None if dry_run else self._channel_factory(self._settings)
            users = store.find_pending()

            if not users:
                log.info("no_pending_reminders")

            for user in users:
                summary.users_scanned += 1
                try:
                    self._dispatch_user(store, channel, user, summary, dry_run=dry_run)
                except ReminderDispatchError as e:
                    summary.errors.append(f"User {user.user_key}: {e}")
                    log.error(
                        "user_dispatch_failed",
                        user_key=user.user_key,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
        finally:
            self._close_store(store)

        summary.duration_ms = (self._clock() - start_time) * 1000

        log.info(
            "reminder_dispatch_completed",
            dry_run=dry_run,
            users_scanned=summary.users_scanned,
            users_skipped=summary.users_skipped,
            reminders_sent=summary.reminders_sent,
            reminders_failed=summary.reminders_failed,
            reminders_timed_out=summary.reminders_timed_out,
            reminders_skipped=summary.reminders_skipped,
            reminders_would_send=summary.reminders_would_send,
            inconsistencies=summary.inconsistencies,
            duration_ms=summary.duration_ms,
        )
        return summary

    def _dispatch_user(
        self,
        store: ReminderStore,
        channel: NotificationChannel | None,
        user: UserRecord,
        summary: DispatchSummary,
        *,
        dry_run: bool,
    ) -> None:
        skip_reason = None
        if not user.email:
            skip_reason = "missing_contact"
        elif not user.reminders:
            skip_reason = "no_reminders"
        elif not user.has_pending:
            skip_reason = "all_sent"

        if skip_reason:
            summary.users_skipped += 1
            log.info("user_skipped", user_key=user.user_key, reason=skip_reason)
            return

        for reminder in user.pending_reminders:
            if not reminder.reminder_id:
                summary.reminders_skipped += 1
                log.warning("reminder_missing_id", user_key=user.user_key, title=reminder.title)
                continue

            if dry_run:
                summary.reminders_would_send += 1
                log.info(
                    "dry_run_would_send",
                    user_key=user.user_key,
                    reminder_id=reminder.reminder_id,
                    to=user.email,
                )
                continue

            self._dispatch_reminder(store, channel, user, reminder, summary)

    def _dispatch_reminder(
        self,
        store: ReminderStore,
        channel: NotificationChannel,
        user: UserRecord,
        reminder: Reminder,
        summary: DispatchSummary,
    ) -> None:
        """Claim one reminder, deliver it, and drop the claim."""
        claim_enabled = self._settings.claim_enabled

        if claim_enabled:
            try:
                claimed = store.claim(
                    user.user_key,
                    reminder.reminder_id,
                    self._settings.claim_lease_seconds,
                )
            except ReminderDispatchError as e:
                summary.reminders_failed += 1
                summary.errors.append(f"Reminder {user.user_key}/{reminder.reminder_id}: {e}")
                log.error(
                    "reminder_claim_failed",
                    user_key=user.user_key,
                    reminder_id=reminder.reminder_id,
                    error=str(e),
                )
                return

            if not claimed:
                summary.reminders_skipped += 1
                return

        try:
            if claim_enabled and not self._still_pending(store, user, reminder, summary):
                return
            self._deliver(store, channel, user, reminder, summary)
        finally:
            if claim_enabled:
                self._release_claim(store, user.user_key, reminder.reminder_id)

    def _still_pending(
        self,
        store: ReminderStore,
        user: UserRecord,
        reminder: Reminder,
        summary: DispatchSummary,
    ) -> bool:
        """
        Re-check the reminder under the claim.

        The candidate list is a snapshot; another run may have delivered
        the reminder and dropped its claim since the scan.
        """
        try:
            pending = store.is_pending(user.user_key, reminder.reminder_id)
        except ReminderDispatchError as e:
            summary.reminders_failed += 1
            summary.errors.append(f"Reminder {user.user_key}/{reminder.reminder_id}: {e}")
            log.error(
                "reminder_recheck_failed",
                user_key=user.user_key,
                reminder_id=reminder.reminder_id,
                error=str(e),
            )
            return False

        if not pending:
            summary.reminders_skipped += 1
            log.info(
                "reminder_no_longer_pending",
                user_key=user.user_key,
                reminder_id=reminder.reminder_id,
            )
        return pending

    def _deliver(
        self,
        store: ReminderStore,
        channel: NotificationChannel,
        user: UserRecord,
        reminder: Reminder,
        summary: DispatchSummary,
    ) -> None:
        """Drive one reminder through UNSENT -> POLLING -> SENT | UNSENT."""
        bound_log = log.bind(user_key=user.user_key, reminder_id=reminder.reminder_id)
        state = ReminderState.from_sent_flag(reminder.sent)
        attempt = DispatchAttempt(
            user_key=user.user_key,
            reminder_id=reminder.reminder_id,
            submitted_at=self._clock(),
        )

        try:
            handle = channel.submit(
                user.email,
                user.name or self._settings.default_display_name,
                self._settings.email_subject,
                reminder.title or self._settings.default_reminder_title,
            )
            state = transition(state, ReminderState.POLLING)

            self._await_completion(channel, handle, attempt)

            result = channel.result(handle)
            attempt.message_id = result.message_id
            attempt.outcome = DispatchOutcome.SUCCEEDED if result.succeeded else DispatchOutcome.FAILED
            if not attempt.succeeded:
                attempt.error = result.error
                raise SendFailureError(user.user_key, reminder.reminder_id, result.error)

            modified = store.mark_sent(user.user_key, reminder.reminder_id)
            if modified == 0:
                raise PersistenceInconsistencyError(user.user_key, reminder.reminder_id)

            state = transition(state, ReminderState.SENT)
            summary.reminders_sent += 1
            bound_log.info(
                "reminder_sent",
                message_id=attempt.message_id,
                submitted_at=attempt.submitted_at,
                polls=attempt.polls,
                elapsed_seconds=attempt.elapsed_seconds,
            )

        except PersistenceInconsistencyError as e:
            summary.inconsistencies += 1
            bound_log.warning(
                "reminder_update_inconsistent",
                message_id=attempt.message_id,
                submitted_at=attempt.submitted_at,
                error=str(e),
            )
        except PollTimeoutError as e:
            summary.reminders_timed_out += 1
            summary.errors.append(str(e))
            bound_log.error(
                "reminder_poll_timed_out",
                submitted_at=attempt.submitted_at,
                polls=attempt.polls,
                elapsed_seconds=attempt.elapsed_seconds,
            )
        except ReminderDispatchError as e:
            if attempt.outcome is None:
                attempt.outcome = DispatchOutcome.FAILED
                attempt.error = str(e)
            summary.reminders_failed += 1
            summary.errors.append(str(e))
            bound_log.error(
                "reminder_dispatch_failed",
                submitted_at=attempt.submitted_at,
                error=str(e),
                error_type=type(e).__name__,
            )

        if state is ReminderState.POLLING:
            state = transition(state, ReminderState.UNSENT)
        bound_log.debug("reminder_state", state=state.value, outcome=attempt.outcome)

    def _await_completion(
        self,
        channel: NotificationChannel,
        handle: SendHandle,
        attempt: DispatchAttempt,
    ) -> None:
        """
        Poll a handle until the channel reports completion.

        Elapsed wait accumulates by the poll interval; once it exceeds
        the timeout the attempt is abandoned.

        Raises:
            PollTimeoutError: If the handle is not done in time
        """
        interval = self._settings.poll_interval_seconds
        timeout = self._settings.poll_timeout_seconds

        while True:
            attempt.polls += 1
            if channel.poll(handle).done:
                return

            attempt.elapsed_seconds += interval
            if attempt.elapsed_seconds > timeout:
                attempt.outcome = DispatchOutcome.TIMED_OUT
                raise PollTimeoutError(
                    attempt.user_key,
                    attempt.reminder_id,
                    attempt.elapsed_seconds,
                )

            self._sleep(interval)

    def _release_claim(self, store: ReminderStore, user_key: str, reminder_id: str) -> None:
        try:
            store.release_claim(user_key, reminder_id)
        except ReminderDispatchError as e:
            # Lease expiry frees the reminder for a later run
            log.warning(
                "reminder_claim_release_failed",
                user_key=user_key,
                reminder_id=reminder_id,
                error=str(e),
            )

    def _close_store(self, store: ReminderStore) -> None:
        try:
            store.close()
        except Exception as e:
            log.exception("reminder_store_close_failed", error=str(e))
