"""Classifies navigation failures into user-facing outcomes and attempts automatic recovery."""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable

from .config import (
    ERROR_LOG_CAPACITY, RETRY_WINDOW_SECONDS, RECENT_ERROR_WINDOW_SECONDS,
    CONTENT_RETRY_DELAY_MS, CONTEXT_BACKUP_KEY, FORM_AUTOSAVE_KEY
)
from .errors import NavigationErrorKind, FEEDBACK, STRATEGIES, RETRYABLE, SUGGESTED_WAIT_MS
from .interfaces import ContextStore
from .models import ErrorContext, ErrorLogEntry, FailureContext, NavigationOutcome
from .utils import utcnow

logger = logging.getLogger(__name__)

RecoveryFunction = Callable[[FailureContext], Awaitable[NavigationOutcome]]


class ErrorRecoveryCoordinator:
    """Turns a navigation failure into an enriched outcome and keeps a rolling error log.

    Auto-recovery runs as a coroutine. Inside a running event loop it is
    scheduled in the background and patches the returned outcome in place
    when it succeeds (await ``wait_for_recoveries()`` to observe that).
    Without a running loop it runs to completion before ``handle`` returns.
    """

    def __init__(self, store: ContextStore | None = None, user_id: str = "default",
                 content_retry_delay_ms: int = CONTENT_RETRY_DELAY_MS,
                 guest_mode_enabled: bool = True):
        self.store = store
        self.user_id = user_id
        self.content_retry_delay_ms = content_retry_delay_ms
        self.guest_mode_enabled = guest_mode_enabled
        self._error_log: deque[ErrorLogEntry] = deque(maxlen=ERROR_LOG_CAPACITY)
        self._pending: set[asyncio.Task] = set()
        self._recoveries: dict[NavigationErrorKind, RecoveryFunction] = {
            NavigationErrorKind.NAVIGATION_LOOP_FAILURE: self._recover_from_loop_failure,
            NavigationErrorKind.SESSION_EXPIRED: self._recover_from_session_expiry,
            NavigationErrorKind.CONTEXT_LOSS: self._recover_from_context_loss,
            NavigationErrorKind.FORM_DATA_LOSS: self._recover_from_form_data_loss,
            NavigationErrorKind.URL_SYNC_FAILURE: self._continue_on_current,
            NavigationErrorKind.CONTENT_LOAD_FAILURE: self._recover_from_content_load_failure,
            NavigationErrorKind.STATE_PRESERVATION_FAILURE: self._continue_on_current,
        }

    def handle(self, error: NavigationErrorKind | str, context: FailureContext,
               original_outcome: NavigationOutcome | None = None) -> NavigationOutcome:
        """Classify a failure, log it and return the outcome to surface to the caller."""
        try:
            error = NavigationErrorKind(error)
        except ValueError:
            logger.warning(f"Unclassified navigation error {error!r}, reporting as invalid entry point")
            error = NavigationErrorKind.INVALID_ENTRY_POINT

        self._log_error(error, context, original_outcome)
        self._error_log.append(ErrorLogEntry(error, context))

        feedback = FEEDBACK[error]
        strategy = STRATEGIES[error]
        outcome = NavigationOutcome(
            False,
            error=error,
            error_message=feedback.message,
            fallback_options=strategy.fallback_options,
            error_context=ErrorContext(
                title=feedback.title,
                severity=feedback.severity,
                show_technical_details=feedback.show_technical_details,
                auto_dismiss_ms=feedback.auto_dismiss_ms,
                user_action=context.user_action,
                timestamp=context.timestamp,
                can_retry=error in RETRYABLE,
                retry_count=self._retry_count(error, context.user_action),
                suggested_wait_time=SUGGESTED_WAIT_MS[error]
            )
        )

        recovery = self._recoveries.get(error)
        if strategy.auto_recover and recovery is not None:
            self._schedule_recovery(recovery, context, outcome)
        return outcome

    def _log_error(self, error: NavigationErrorKind, context: FailureContext,
                   original_outcome: NavigationOutcome | None) -> None:
        nav = context.navigation_context
        detail = f" ({original_outcome.error_message})" if original_outcome and original_outcome.error_message else ''
        logger.error(
            f"Navigation error {error.value}{detail} during {context.user_action}: "
            f"current={nav.current_challenge_id!r}, available={len(nav.available_challenges)}, "
            f"metadata={context.metadata}"
        )

    def _retry_count(self, error: NavigationErrorKind, user_action: str) -> int:
        now = utcnow()
        return sum(
            1 for entry in self._error_log
            if entry.error == error
            and entry.context.user_action == user_action
            and (now - entry.timestamp).total_seconds() < RETRY_WINDOW_SECONDS
        )

    def _schedule_recovery(self, recovery: RecoveryFunction, context: FailureContext,
                           outcome: NavigationOutcome) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._attempt_auto_recovery(recovery, context, outcome))
            return
        task = loop.create_task(self._attempt_auto_recovery(recovery, context, outcome))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _attempt_auto_recovery(self, recovery: RecoveryFunction, context: FailureContext,
                                     outcome: NavigationOutcome) -> None:
        try:
            result = await recovery(context)
        except Exception as e:
            logger.warning(f"Auto-recovery from {outcome.error.value} failed: {type(e).__name__}: {e}")
            return
        if not result.success:
            logger.info(f"Auto-recovery from {outcome.error.value} did not succeed")
            return
        outcome.success = True
        outcome.challenge_id = result.challenge_id
        outcome.auto_recovered = True
        if result.restored_form_data is not None:
            outcome.restored_form_data = result.restored_form_data
        logger.info(f"Auto-recovered from {outcome.error.value} to challenge {result.challenge_id!r}")

    async def wait_for_recoveries(self) -> None:
        """Wait until every background recovery has finished."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)

    @property
    def has_pending_recoveries(self) -> bool:
        return bool(self._pending)

    # Recovery heuristics, one per retryable kind

    async def _recover_from_loop_failure(self, context: FailureContext) -> NavigationOutcome:
        available = context.navigation_context.available_challenges
        if available:
            return NavigationOutcome.ok(available[0])
        return NavigationOutcome(False, error=NavigationErrorKind.NO_AVAILABLE_CHALLENGES)

    async def _recover_from_session_expiry(self, context: FailureContext) -> NavigationOutcome:
        if self.guest_mode_enabled:
            return NavigationOutcome.ok(context.navigation_context.current_challenge_id or 'guest_challenge')
        return NavigationOutcome(False, error=NavigationErrorKind.SESSION_EXPIRED)

    async def _recover_from_context_loss(self, context: FailureContext) -> NavigationOutcome:
        backup = await self._load_from_store(CONTEXT_BACKUP_KEY)
        if backup and backup.get('current_challenge_id'):
            return NavigationOutcome.ok(backup['current_challenge_id'])
        return NavigationOutcome.ok(context.navigation_context.current_challenge_id or 'default_challenge')

    async def _recover_from_form_data_loss(self, context: FailureContext) -> NavigationOutcome:
        restored = await self._load_from_store(FORM_AUTOSAVE_KEY)
        if restored:
            outcome = NavigationOutcome.ok(context.navigation_context.current_challenge_id)
            outcome.restored_form_data = restored
            return outcome
        return NavigationOutcome(False, error=NavigationErrorKind.FORM_DATA_LOSS)

    async def _recover_from_content_load_failure(self, context: FailureContext) -> NavigationOutcome:
        await asyncio.sleep(self.content_retry_delay_ms / 1000)
        return NavigationOutcome.ok(context.navigation_context.current_challenge_id)

    async def _continue_on_current(self, context: FailureContext) -> NavigationOutcome:
        return NavigationOutcome.ok(context.navigation_context.current_challenge_id)

    async def _load_from_store(self, key: str) -> dict | None:
        """Read a durable value; a missing store or a failing read yields None."""
        if self.store is None:
            return None
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self.store.load_value, key, self.user_id)
        except Exception as e:
            logger.warning(f"Could not read {key} from durable store: {type(e).__name__}: {e}")
            return None

    def get_statistics(self) -> dict:
        """Counts over the rolling error log, for monitoring only."""
        now = utcnow()
        errors_by_type: dict[str, int] = {}
        for entry in self._error_log:
            errors_by_type[entry.error.value] = errors_by_type.get(entry.error.value, 0) + 1
        recent_errors = sum(
            1 for entry in self._error_log
            if (now - entry.timestamp).total_seconds() < RECENT_ERROR_WINDOW_SECONDS
        )
        most_common_error = max(errors_by_type, key=errors_by_type.get) if errors_by_type else None
        return {
            'total_errors': len(self._error_log),
            'errors_by_type': errors_by_type,
            'recent_errors': recent_errors,
            'most_common_error': most_common_error
        }

    @property
    def error_log(self) -> list[ErrorLogEntry]:
        return list(self._error_log)

    def clear_history(self) -> None:
        self._error_log.clear()
