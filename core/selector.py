"""Eligibility filtering and cyclic next/previous selection over the challenge pool."""

import logging
from typing import Callable

from .eligibility import HintSource, filter_available_challenges
from .errors import NavigationErrorKind
from .models import (
    Challenge, ChallengeAttempt, ChallengeState, EligibilityCriteria, NavigationOutcome
)

logger = logging.getLogger(__name__)

AccessCheck = Callable[[Challenge], bool]


class ChallengeSelector:
    """Holds the challenge pool and per-challenge state, and answers "what comes next"."""

    def __init__(self, hint_source: HintSource = filter_available_challenges,
                 criteria: EligibilityCriteria = None):
        self.hint_source = hint_source
        self.default_criteria = criteria or EligibilityCriteria()
        self._challenges: list[Challenge] = []
        self._known_ids: set[str] = set()
        self._states: dict[str, ChallengeState] = {}
        self._viewer_attempts: list[ChallengeAttempt] = []
        self._viewer_id = ''
        self._access_check: AccessCheck | None = None

    def initialize(self, challenges: list[Challenge], states: list[ChallengeState] = None,
                   viewer_attempts: list[ChallengeAttempt] = None, viewer_id: str = '',
                   access_check: AccessCheck | None = None) -> None:
        """Replace the pool, the state map and the viewer hints. Safe to call again to refresh."""
        self._challenges = []
        self._known_ids = set()
        for challenge in challenges:
            if challenge.id in self._known_ids:
                logger.warning(f"Duplicate challenge id in pool ignored: {challenge.id}")
                continue
            self._known_ids.add(challenge.id)
            self._challenges.append(challenge)
        self._states = {state.id: state for state in (states or [])}
        self._viewer_attempts = list(viewer_attempts or [])
        self._viewer_id = viewer_id or ''
        self._access_check = access_check

    @property
    def challenges(self) -> list[Challenge]:
        return list(self._challenges)

    def is_known(self, challenge_id: str) -> bool:
        return challenge_id in self._known_ids

    def filter_eligible(self, criteria: EligibilityCriteria | dict | None = None) -> list[str]:
        """Eligible challenge ids in pool order."""
        criteria = self._resolve_criteria(criteria)

        allowed = None
        if self._viewer_id:
            hinted = self.hint_source(self._challenges, self._viewer_attempts, self._viewer_id)
            allowed = {challenge.id for challenge in hinted}

        eligible = []
        for challenge in self._challenges:
            if allowed is not None and challenge.id not in allowed:
                continue
            if criteria.respect_permissions and self._access_check and not self._access_check(challenge):
                continue
            state = self._states.get(challenge.id)
            # No state yet means the player never touched it
            if state is None or self._is_eligible(state, criteria):
                eligible.append(challenge.id)
        return eligible

    def _resolve_criteria(self, criteria) -> EligibilityCriteria:
        if criteria is None:
            return self.default_criteria
        if isinstance(criteria, dict):
            return self.default_criteria.with_overrides(criteria)
        return criteria

    @staticmethod
    def _is_eligible(state: ChallengeState, criteria: EligibilityCriteria) -> bool:
        if state.status in criteria.exclude_statuses:
            return False
        if 'exhausted_attempts' in criteria.exclude_statuses and state.attempts_remaining == 0:
            return False
        if criteria.min_attempts_remaining and state.attempts_remaining < criteria.min_attempts_remaining:
            return False
        if not criteria.include_completed and state.status == 'completed':
            return False
        return True

    def get_next(self, current_id: str) -> NavigationOutcome:
        """Next eligible challenge after current_id, wrapping to the first."""
        return self._step(current_id, 1)

    def get_previous(self, current_id: str) -> NavigationOutcome:
        """Previous eligible challenge before current_id, wrapping to the last."""
        return self._step(current_id, -1)

    def _step(self, current_id: str, direction: int) -> NavigationOutcome:
        try:
            eligible = self.filter_eligible()

            if not eligible:
                if direction > 0:
                    return NavigationOutcome.failure(
                        NavigationErrorKind.NO_AVAILABLE_CHALLENGES,
                        'No challenges are available for navigation. '
                        'You may have completed all available challenges.',
                        ['Return to menu', 'Check for new challenges', 'Create a challenge']
                    )
                return NavigationOutcome.failure(
                    NavigationErrorKind.NO_AVAILABLE_CHALLENGES,
                    'No challenges are available for navigation',
                    ['Return to menu', 'Refresh challenges']
                )

            # Sole eligible challenge: re-selecting it is a refresh
            if len(eligible) == 1:
                return NavigationOutcome.ok(eligible[0])

            # Current dropped out of the eligible set (or was never set):
            # next restarts at the front, previous at the back
            if current_id not in eligible:
                return NavigationOutcome.ok(eligible[0] if direction > 0 else eligible[-1])

            index = (eligible.index(current_id) + direction) % len(eligible)
            return NavigationOutcome.ok(eligible[index])
        except Exception as e:
            which = 'next' if direction > 0 else 'previous'
            logger.error(f"Failed to determine {which} challenge from {current_id!r}: {type(e).__name__}: {e}")
            return NavigationOutcome.failure(
                NavigationErrorKind.NAVIGATION_LOOP_FAILURE,
                f'Failed to determine {which} challenge. This may be due to a temporary issue '
                'with challenge filtering.',
                ['Try again', 'Return to menu', 'Refresh page']
            )

    def validate_access(self, challenge_id: str) -> NavigationOutcome:
        """Check that challenge_id exists and is currently eligible."""
        if not self.is_known(challenge_id):
            return NavigationOutcome.failure(
                NavigationErrorKind.CHALLENGE_NOT_FOUND,
                f'Challenge with ID {challenge_id} not found',
                ['Return to menu', 'Browse available challenges']
            )
        if challenge_id not in self.filter_eligible():
            return NavigationOutcome.failure(
                NavigationErrorKind.PERMISSION_DENIED,
                'This challenge is not currently available',
                ['Try a different challenge', 'Return to menu']
            )
        return NavigationOutcome.ok(challenge_id)

    def update_state(self, challenge_id: str, updates: dict) -> ChallengeState:
        """Merge a partial update into a challenge's state, creating a default one first."""
        existing = self._states.get(challenge_id) or ChallengeState(challenge_id)
        state = existing.merged(updates)
        self._states[challenge_id] = state
        return state

    def get_state(self, challenge_id: str) -> ChallengeState | None:
        return self._states.get(challenge_id)

    def all_states(self) -> list[ChallengeState]:
        return list(self._states.values())

    def reset_states(self) -> None:
        self._states.clear()

    def has_available(self) -> bool:
        return len(self.filter_eligible()) > 0

    def available_count(self) -> int:
        return len(self.filter_eligible())
