"""Session-scoped navigation state machine on top of the challenge selector."""

import copy
import logging
from collections import OrderedDict
from typing import Callable

from .config import SNAPSHOT_CAPACITY
from .errors import NavigationErrorKind
from .models import (
    Challenge, ChallengeAttempt, ChallengeState, EligibilityCriteria, FailureContext,
    NavigationContext, NavigationEvent, NavigationOutcome,
    NAVIGATE_TO_CHALLENGE, NAVIGATE_NEXT, NAVIGATE_PREVIOUS,
    UPDATE_CHALLENGE_STATE, PRESERVE_CONTEXT, RESTORE_CONTEXT
)
from .recovery import ErrorRecoveryCoordinator
from .selector import AccessCheck, ChallengeSelector
from .utils import generate_context_key

logger = logging.getLogger(__name__)


class NavigationOrchestrator:
    """Owns the navigation context of one session and routes failures to recovery.

    Calls are expected to be serialized by the caller. A navigation call that
    arrives while another one is still running (for example from inside a
    hint or access callback) is rejected as a loop failure rather than being
    allowed to interleave with the context update.

    Failures go through the coordinator's auto-recovery. Called with no
    running event loop, the recovery runs to completion before the method
    returns, so a content-load failure blocks for the coordinator's
    ``content_retry_delay_ms`` (1 s by default). Inside a loop the outcome
    is patched in the background; await ``settle()`` before reading it.
    """

    def __init__(self, selector: ChallengeSelector = None,
                 coordinator: ErrorRecoveryCoordinator = None,
                 snapshot_capacity: int = SNAPSHOT_CAPACITY):
        self.selector = selector or ChallengeSelector()
        self.coordinator = coordinator or ErrorRecoveryCoordinator()
        self.snapshot_capacity = snapshot_capacity
        self._context = NavigationContext()
        self._snapshots: OrderedDict[str, NavigationContext] = OrderedDict()
        self._navigating = False

    def initialize(self, challenges: list[Challenge], states: list[ChallengeState] = None,
                   viewer_attempts: list[ChallengeAttempt] = None, viewer_id: str = '',
                   access_check: AccessCheck | None = None) -> None:
        """Load (or reload) the pool. Picks the first eligible challenge if nothing is current yet."""
        self.selector.initialize(challenges, states, viewer_attempts, viewer_id, access_check)
        self._context.available_challenges = self.selector.filter_eligible()
        if not self._context.current_challenge_id and self._context.available_challenges:
            self._context.current_challenge_id = self._context.available_challenges[0]
        logger.info(
            f"Navigation initialized: {len(self.selector.challenges)} challenges, "
            f"{len(self._context.available_challenges)} eligible"
        )

    # Navigation

    def next(self) -> NavigationOutcome:
        return self._navigate(
            'navigate_next',
            lambda: self.selector.get_next(self._context.current_challenge_id),
            NavigationErrorKind.NAVIGATION_LOOP_FAILURE
        )

    def previous(self) -> NavigationOutcome:
        return self._navigate(
            'navigate_previous',
            lambda: self.selector.get_previous(self._context.current_challenge_id),
            NavigationErrorKind.NAVIGATION_LOOP_FAILURE
        )

    def go_to(self, challenge_id: str) -> NavigationOutcome:
        return self._navigate(
            'navigate_to_challenge',
            lambda: self._resolve_go_to(challenge_id),
            NavigationErrorKind.CHALLENGE_NOT_FOUND
        )

    def _resolve_go_to(self, challenge_id: str) -> NavigationOutcome:
        if not self.selector.has_available():
            return NavigationOutcome.failure(
                NavigationErrorKind.NO_AVAILABLE_CHALLENGES,
                'No challenges are available for navigation',
                ['Return to menu', 'Refresh challenges']
            )
        return self.selector.validate_access(challenge_id)

    def _navigate(self, user_action: str, resolve: Callable[[], NavigationOutcome],
                  unexpected_error: NavigationErrorKind) -> NavigationOutcome:
        if self._navigating:
            logger.warning(f"Rejected overlapping navigation call: {user_action}")
            return self._handle_failure(NavigationErrorKind.NAVIGATION_LOOP_FAILURE, user_action)

        self._navigating = True
        try:
            result = resolve()
            if not result.success:
                return self._handle_failure(result.error, user_action, result)
            self._context = self._context.advanced_to(result.challenge_id)
            logger.debug(f"{user_action}: {self._context.previous_challenge_id!r} -> {result.challenge_id!r}")
            return NavigationOutcome.ok(result.challenge_id)
        except Exception as e:
            logger.error(f"Unexpected error in {user_action}: {type(e).__name__}: {e}")
            return self._handle_failure(unexpected_error, user_action)
        finally:
            self._navigating = False

    def report_failure(self, error: NavigationErrorKind | str, user_action: str) -> NavigationOutcome:
        """Classify a failure observed outside the engine (content load, URL sync, session...)."""
        return self._handle_failure(error, user_action)

    def _handle_failure(self, error: NavigationErrorKind | str, user_action: str,
                        original: NavigationOutcome | None = None) -> NavigationOutcome:
        available_count = self._safe_available_count()
        failure_context = FailureContext(
            navigation_context=self._context.clone(),
            user_action=user_action,
            challenge_state=self.current_state(),
            metadata={
                'available_challenge_count': available_count,
                'can_navigate': bool(available_count),
                'session_metadata': self._context.session_metadata.to_dict()
            }
        )
        return self.coordinator.handle(error, failure_context, original)

    def _safe_available_count(self) -> int | None:
        # Filtering may be exactly what just failed
        try:
            return self.selector.available_count()
        except Exception:
            return None

    # Context snapshots

    def preserve_context(self) -> str:
        """Store a deep copy of the live context and return its key."""
        key = generate_context_key()
        self._snapshots[key] = self._context.clone()
        while len(self._snapshots) > self.snapshot_capacity:
            evicted, _ = self._snapshots.popitem(last=False)
            logger.debug(f"Evicted preserved context {evicted}")
        return key

    def restore_context(self, context_id: str) -> NavigationOutcome:
        """Replace the live context with a preserved one. The snapshot stays available."""
        snapshot = self._snapshots.get(context_id)
        if snapshot is None:
            logger.warning(f"Preserved context not found: {context_id}")
            return NavigationOutcome.failure(
                NavigationErrorKind.CONTEXT_LOSS,
                'Navigation context not found or expired',
                ['Continue with current state', 'Return to menu']
            )
        self._context = snapshot.clone()
        return NavigationOutcome.ok(self._context.current_challenge_id)

    @property
    def snapshot_keys(self) -> list[str]:
        return list(self._snapshots.keys())

    # Event dispatch

    def handle_event(self, event: NavigationEvent | dict) -> NavigationOutcome:
        """Dispatch a tagged navigation request.

        Malformed payloads and unexpected errors come back as an
        INVALID_ENTRY_POINT outcome; nothing is raised to the caller.
        """
        if isinstance(event, dict):
            event = NavigationEvent.from_dict(event)
        try:
            return self._dispatch(event)
        except Exception as e:
            logger.error(f"Unexpected error handling {event.type!r} event: {type(e).__name__}: {e}")
            return self._handle_failure(NavigationErrorKind.INVALID_ENTRY_POINT, str(event.type).lower())

    def _dispatch(self, event: NavigationEvent) -> NavigationOutcome:
        if event.type == NAVIGATE_TO_CHALLENGE:
            return self.go_to(event.challenge_id)

        if event.type == NAVIGATE_NEXT:
            return self.next()

        if event.type == NAVIGATE_PREVIOUS:
            return self.previous()

        if event.type == UPDATE_CHALLENGE_STATE:
            if not event.challenge_id:
                return self._handle_failure(NavigationErrorKind.INVALID_ENTRY_POINT, 'update_challenge_state')
            try:
                self.update_challenge_state(event.challenge_id, event.state or {})
            except (ValueError, TypeError) as e:
                logger.warning(f"Rejected state update for {event.challenge_id}: {e}")
                return self._handle_failure(NavigationErrorKind.INVALID_ENTRY_POINT, 'update_challenge_state')
            return NavigationOutcome.ok()

        if event.type == PRESERVE_CONTEXT:
            merged = None
            if event.context:
                try:
                    merged = self._context.merged(event.context)
                    self._check_partial_ids(event.context)
                except (ValueError, TypeError) as e:
                    logger.warning(f"Rejected partial context: {e}")
                    return self._handle_failure(NavigationErrorKind.INVALID_ENTRY_POINT, 'preserve_context')
                # Availability is derived from the pool, never taken from the caller
                merged.available_challenges = self.selector.filter_eligible()
            context_id = self.preserve_context()
            if merged is not None:
                self._context = merged
            return NavigationOutcome.ok(context_id)

        if event.type == RESTORE_CONTEXT:
            return self.restore_context(event.context_id)

        logger.warning(f"Unknown navigation event type: {event.type!r}")
        return NavigationOutcome.failure(
            NavigationErrorKind.INVALID_ENTRY_POINT,
            'Unknown navigation event type',
            ['Try again', 'Return to menu']
        )

    def _check_partial_ids(self, partial: dict) -> None:
        ids = [partial.get('current_challenge_id'), partial.get('previous_challenge_id'),
               *(partial.get('navigation_history') or [])]
        unknown = [challenge_id for challenge_id in ids
                   if challenge_id and not self.selector.is_known(challenge_id)]
        if unknown:
            raise ValueError(f"Unknown challenge ids: {unknown}")

    # Pass-throughs to the selector

    def update_challenge_state(self, challenge_id: str, updates: dict) -> ChallengeState:
        state = self.selector.update_state(challenge_id, updates)
        self._context.available_challenges = self.selector.filter_eligible()
        return state

    def filter_eligible(self, criteria: EligibilityCriteria | dict | None = None) -> list[str]:
        eligible = self.selector.filter_eligible(criteria)
        if criteria is None:
            self._context.available_challenges = list(eligible)
        return eligible

    def can_navigate(self) -> bool:
        return self.selector.has_available()

    def available_count(self) -> int:
        return self.selector.available_count()

    def current_state(self) -> ChallengeState | None:
        return self.selector.get_state(self._context.current_challenge_id)

    @property
    def context(self) -> NavigationContext:
        """A copy of the live context."""
        return self._context.clone()

    def error_statistics(self) -> dict:
        return self.coordinator.get_statistics()

    # Form data carried across navigation

    def preserve_form_data(self, form_data: dict) -> None:
        self._context.preserved_form_data = copy.deepcopy(form_data)

    def get_preserved_form_data(self) -> dict | None:
        return copy.deepcopy(self._context.preserved_form_data)

    def clear_preserved_form_data(self) -> None:
        self._context.preserved_form_data = None

    def reset(self) -> None:
        """Fresh context, no challenge states, no snapshots."""
        self._context = NavigationContext()
        self.selector.reset_states()
        self._snapshots.clear()

    async def settle(self) -> None:
        """Wait for background auto-recoveries so returned outcomes are final."""
        await self.coordinator.wait_for_recoveries()
