"""Domain models for linkhop navigation engine."""

import copy
from datetime import datetime

from .config import (
    DEFAULT_STATUS, DEFAULT_ATTEMPTS_REMAINING, CHALLENGE_STATUSES,
    DEFAULT_EXCLUDED_STATUSES, DEFAULT_MIN_ATTEMPTS_REMAINING,
    NAVIGATION_HISTORY_LIMIT
)
from .errors import NavigationErrorKind
from .utils import utcnow, parse_timestamp, format_timestamp


class Challenge:
    """A puzzle in the pool. Opaque to the engine apart from id and creator."""

    def __init__(self, id: str, creator_id: str = '', title: str = '', payload: dict = None):
        self.id = id
        self.creator_id = creator_id
        self.title = title
        self.payload = payload or {}  # images, answer, tags... whatever the game needs

    def to_dict(self) -> dict:
        return {
            **self.payload,
            'id': self.id,
            'creator_id': self.creator_id,
            'title': self.title
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Challenge':
        payload = {k: v for k, v in data.items() if k not in ('id', 'creator_id', 'title')}
        return cls(str(data['id']), data.get('creator_id') or '', data.get('title') or '', payload)


class ChallengeAttempt:
    """The viewer's attempt record for one challenge."""

    def __init__(self, challenge_id: str, user_id: str = '', is_solved: bool = False,
                 game_over: bool = False, attempts_made: int = 0):
        self.challenge_id = challenge_id
        self.user_id = user_id
        self.is_solved = is_solved
        self.game_over = game_over
        self.attempts_made = attempts_made

    def to_dict(self) -> dict:
        return {
            'challenge_id': self.challenge_id,
            'user_id': self.user_id,
            'is_solved': self.is_solved,
            'game_over': self.game_over,
            'attempts_made': self.attempts_made
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ChallengeAttempt':
        return cls(
            str(data['challenge_id']),
            data.get('user_id', ''),
            data.get('is_solved', False),
            data.get('game_over', False),
            data.get('attempts_made', 0)
        )


class PlayerProgress:
    """Player's progress on a single challenge."""

    def __init__(self, is_completed: bool = False, hints_used: int = 0,
                 attempts_made: int = 0, score: int | None = None):
        self.is_completed = is_completed
        self.hints_used = hints_used
        self.attempts_made = attempts_made
        self.score = score

    def to_dict(self) -> dict:
        return {
            'is_completed': self.is_completed,
            'hints_used': self.hints_used,
            'attempts_made': self.attempts_made,
            'score': self.score
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PlayerProgress':
        return cls(
            data.get('is_completed', False),
            data.get('hints_used', 0),
            data.get('attempts_made', 0),
            data.get('score')
        )


class ChallengeState:
    """Eligibility state of one challenge for the current player."""

    def __init__(self, id: str, status: str = DEFAULT_STATUS,
                 attempts_remaining: int = DEFAULT_ATTEMPTS_REMAINING,
                 last_accessed: datetime = None, player_progress: PlayerProgress = None):
        if status not in CHALLENGE_STATUSES:
            raise ValueError(f"Unknown challenge status: {status!r}")
        if not isinstance(attempts_remaining, int) or attempts_remaining < 0:
            raise ValueError(f"attempts_remaining must be a non-negative integer, got {attempts_remaining!r}")
        self.id = id
        self.status = status
        self.attempts_remaining = attempts_remaining
        self.last_accessed = last_accessed or utcnow()
        self.player_progress = player_progress or PlayerProgress()

    def merged(self, updates: dict) -> 'ChallengeState':
        """Return a new state with a partial update applied and last_accessed stamped."""
        if not isinstance(updates, dict):
            raise ValueError(f"State update must be an object, got {type(updates).__name__}")
        progress_updates = updates.get('player_progress') or {}
        if not isinstance(progress_updates, dict):
            raise ValueError(f"player_progress must be an object, got {type(progress_updates).__name__}")
        progress = self.player_progress.to_dict()
        progress.update(progress_updates)
        return ChallengeState(
            self.id,
            updates.get('status', self.status),
            updates.get('attempts_remaining', self.attempts_remaining),
            utcnow(),
            PlayerProgress.from_dict(progress)
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'status': self.status,
            'attempts_remaining': self.attempts_remaining,
            'last_accessed': format_timestamp(self.last_accessed),
            'player_progress': self.player_progress.to_dict()
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ChallengeState':
        return cls(
            str(data['id']),
            data.get('status', DEFAULT_STATUS),
            data.get('attempts_remaining', DEFAULT_ATTEMPTS_REMAINING),
            parse_timestamp(data.get('last_accessed')),
            PlayerProgress.from_dict(data.get('player_progress') or {})
        )


class EligibilityCriteria:
    """Which challenge states count as eligible for navigation."""

    _FIELDS = ('exclude_statuses', 'respect_permissions', 'include_completed', 'min_attempts_remaining')

    def __init__(self, exclude_statuses=DEFAULT_EXCLUDED_STATUSES, respect_permissions: bool = True,
                 include_completed: bool = False,
                 min_attempts_remaining: int | None = DEFAULT_MIN_ATTEMPTS_REMAINING):
        self.exclude_statuses = tuple(exclude_statuses)
        self.respect_permissions = respect_permissions
        self.include_completed = include_completed
        self.min_attempts_remaining = min_attempts_remaining

    def with_overrides(self, overrides: dict | None) -> 'EligibilityCriteria':
        """Copy of these criteria with the given fields replaced."""
        data = self.to_dict()
        for key, value in (overrides or {}).items():
            if key in self._FIELDS:
                data[key] = value
        return EligibilityCriteria.from_dict(data)

    def to_dict(self) -> dict:
        return {
            'exclude_statuses': list(self.exclude_statuses),
            'respect_permissions': self.respect_permissions,
            'include_completed': self.include_completed,
            'min_attempts_remaining': self.min_attempts_remaining
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EligibilityCriteria':
        return cls(
            data.get('exclude_statuses', DEFAULT_EXCLUDED_STATUSES),
            data.get('respect_permissions', True),
            data.get('include_completed', False),
            data.get('min_attempts_remaining', DEFAULT_MIN_ATTEMPTS_REMAINING)
        )


class SessionMetadata:
    def __init__(self, session_start_time: datetime = None, challenges_navigated: int = 0,
                 is_in_navigation_flow: bool = False):
        self.session_start_time = session_start_time or utcnow()
        self.challenges_navigated = challenges_navigated
        self.is_in_navigation_flow = is_in_navigation_flow

    def to_dict(self) -> dict:
        return {
            'session_start_time': format_timestamp(self.session_start_time),
            'challenges_navigated': self.challenges_navigated,
            'is_in_navigation_flow': self.is_in_navigation_flow
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SessionMetadata':
        return cls(
            parse_timestamp(data.get('session_start_time')),
            data.get('challenges_navigated', 0),
            data.get('is_in_navigation_flow', False)
        )


def _is_id_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _check_partial_context(updates) -> None:
    if not isinstance(updates, dict):
        raise ValueError(f"Partial context must be an object, got {type(updates).__name__}")
    if 'current_challenge_id' in updates and not isinstance(updates['current_challenge_id'], str):
        raise ValueError("current_challenge_id must be a string")
    previous = updates.get('previous_challenge_id')
    if previous is not None and not isinstance(previous, str):
        raise ValueError("previous_challenge_id must be a string or null")
    for field in ('available_challenges', 'navigation_history'):
        if field in updates and not _is_id_list(updates[field]):
            raise ValueError(f"{field} must be a list of challenge ids")
    form_data = updates.get('preserved_form_data')
    if form_data is not None and not isinstance(form_data, dict):
        raise ValueError("preserved_form_data must be an object or null")

    metadata = updates.get('session_metadata')
    if metadata is None:
        return
    if not isinstance(metadata, dict):
        raise ValueError("session_metadata must be an object")
    start = metadata.get('session_start_time')
    if start is not None and not isinstance(start, (str, datetime)):
        raise ValueError("session_start_time must be an ISO timestamp")
    navigated = metadata.get('challenges_navigated', 0)
    if isinstance(navigated, bool) or not isinstance(navigated, int) or navigated < 0:
        raise ValueError("challenges_navigated must be a non-negative integer")
    if not isinstance(metadata.get('is_in_navigation_flow', False), bool):
        raise ValueError("is_in_navigation_flow must be a boolean")


class NavigationContext:
    """The session's navigation cursor plus bookkeeping."""

    # Fields a caller may overwrite through a partial context
    _PARTIAL_FIELDS = ('current_challenge_id', 'previous_challenge_id', 'available_challenges',
                       'navigation_history', 'preserved_form_data')

    def __init__(self, current_challenge_id: str = '', previous_challenge_id: str | None = None,
                 available_challenges: list[str] = None, navigation_history: list[str] = None,
                 preserved_form_data: dict | None = None, session_metadata: SessionMetadata = None):
        self.current_challenge_id = current_challenge_id
        self.previous_challenge_id = previous_challenge_id
        self.available_challenges = available_challenges or []
        self.navigation_history = navigation_history or []
        self.preserved_form_data = preserved_form_data
        self.session_metadata = session_metadata or SessionMetadata()

    def clone(self) -> 'NavigationContext':
        return copy.deepcopy(self)

    def advanced_to(self, challenge_id: str) -> 'NavigationContext':
        """Context after a successful move to challenge_id. Self is left untouched."""
        context = self.clone()
        context.previous_challenge_id = self.current_challenge_id
        context.current_challenge_id = challenge_id
        context.navigation_history = (context.navigation_history + [challenge_id])[-NAVIGATION_HISTORY_LIMIT:]
        context.session_metadata.challenges_navigated += 1
        context.session_metadata.is_in_navigation_flow = True
        return context

    def merged(self, updates: dict) -> 'NavigationContext':
        """Context with a partial update applied. Unknown keys are ignored.

        Raises ValueError if a known field has the wrong shape.
        """
        _check_partial_context(updates)
        context = self.clone()
        for field in self._PARTIAL_FIELDS:
            if field in updates:
                setattr(context, field, copy.deepcopy(updates[field]))
        context.navigation_history = context.navigation_history[-NAVIGATION_HISTORY_LIMIT:]
        metadata = updates.get('session_metadata')
        if metadata:
            merged_metadata = context.session_metadata.to_dict()
            merged_metadata.update(metadata)
            context.session_metadata = SessionMetadata.from_dict(merged_metadata)
        return context

    def to_dict(self) -> dict:
        return {
            'current_challenge_id': self.current_challenge_id,
            'previous_challenge_id': self.previous_challenge_id,
            'available_challenges': list(self.available_challenges),
            'navigation_history': list(self.navigation_history),
            'preserved_form_data': copy.deepcopy(self.preserved_form_data),
            'session_metadata': self.session_metadata.to_dict()
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'NavigationContext':
        return cls(
            data.get('current_challenge_id') or '',
            data.get('previous_challenge_id'),
            list(data.get('available_challenges') or []),
            list(data.get('navigation_history') or [])[-NAVIGATION_HISTORY_LIMIT:],
            data.get('preserved_form_data'),
            SessionMetadata.from_dict(data.get('session_metadata') or {})
        )


class ErrorContext:
    """Presentation and retry details attached to a failed outcome."""

    def __init__(self, title: str, severity: str, show_technical_details: bool,
                 user_action: str, timestamp: datetime, can_retry: bool,
                 retry_count: int, suggested_wait_time: int, auto_dismiss_ms: int | None = None):
        self.title = title
        self.severity = severity
        self.show_technical_details = show_technical_details
        self.auto_dismiss_ms = auto_dismiss_ms
        self.user_action = user_action
        self.timestamp = timestamp
        self.can_retry = can_retry
        self.retry_count = retry_count
        self.suggested_wait_time = suggested_wait_time

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'severity': self.severity,
            'show_technical_details': self.show_technical_details,
            'auto_dismiss_ms': self.auto_dismiss_ms,
            'user_action': self.user_action,
            'timestamp': format_timestamp(self.timestamp),
            'can_retry': self.can_retry,
            'retry_count': self.retry_count,
            'suggested_wait_time': self.suggested_wait_time
        }


class NavigationOutcome:
    """Result of every navigation operation."""

    def __init__(self, success: bool, challenge_id: str | None = None,
                 error: NavigationErrorKind | None = None, error_message: str | None = None,
                 fallback_options: list[str] | None = None, error_context: ErrorContext | None = None,
                 auto_recovered: bool = False, restored_form_data: dict | None = None):
        self.success = success
        self.challenge_id = challenge_id
        self.error = error
        self.error_message = error_message
        self.fallback_options = fallback_options or []
        self.error_context = error_context
        self.auto_recovered = auto_recovered
        self.restored_form_data = restored_form_data

    @classmethod
    def ok(cls, challenge_id: str | None = None) -> 'NavigationOutcome':
        return cls(True, challenge_id)

    @classmethod
    def failure(cls, error: NavigationErrorKind, message: str,
                fallback_options: list[str] | None = None) -> 'NavigationOutcome':
        return cls(False, error=error, error_message=message, fallback_options=fallback_options)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'challenge_id': self.challenge_id,
            'error': self.error.value if self.error else None,
            'error_message': self.error_message,
            'fallback_options': list(self.fallback_options),
            'error_context': self.error_context.to_dict() if self.error_context else None,
            'auto_recovered': self.auto_recovered,
            'restored_form_data': self.restored_form_data
        }

    def __repr__(self) -> str:
        if self.success:
            return f"NavigationOutcome(success=True, challenge_id={self.challenge_id!r})"
        return f"NavigationOutcome(success=False, error={self.error})"


class FailureContext:
    """Snapshot handed to the recovery coordinator when a navigation fails."""

    def __init__(self, navigation_context: NavigationContext, user_action: str,
                 challenge_state: ChallengeState | None = None, timestamp: datetime = None,
                 metadata: dict | None = None):
        self.navigation_context = navigation_context
        self.challenge_state = challenge_state
        self.user_action = user_action
        self.timestamp = timestamp or utcnow()
        self.metadata = metadata or {}


class ErrorLogEntry:
    def __init__(self, error: NavigationErrorKind, context: FailureContext, timestamp: datetime = None):
        self.error = error
        self.context = context
        self.timestamp = timestamp or utcnow()


# Navigation event types
NAVIGATE_TO_CHALLENGE = 'NAVIGATE_TO_CHALLENGE'
NAVIGATE_NEXT = 'NAVIGATE_NEXT'
NAVIGATE_PREVIOUS = 'NAVIGATE_PREVIOUS'
UPDATE_CHALLENGE_STATE = 'UPDATE_CHALLENGE_STATE'
PRESERVE_CONTEXT = 'PRESERVE_CONTEXT'
RESTORE_CONTEXT = 'RESTORE_CONTEXT'


class NavigationEvent:
    """Tagged navigation request."""

    def __init__(self, type: str, challenge_id: str | None = None, state: dict | None = None,
                 context: dict | None = None, context_id: str | None = None):
        self.type = type
        self.challenge_id = challenge_id
        self.state = state
        self.context = context
        self.context_id = context_id

    @classmethod
    def to_challenge(cls, challenge_id: str) -> 'NavigationEvent':
        return cls(NAVIGATE_TO_CHALLENGE, challenge_id=challenge_id)

    @classmethod
    def navigate_next(cls) -> 'NavigationEvent':
        return cls(NAVIGATE_NEXT)

    @classmethod
    def navigate_previous(cls) -> 'NavigationEvent':
        return cls(NAVIGATE_PREVIOUS)

    @classmethod
    def update_state(cls, challenge_id: str, state: dict) -> 'NavigationEvent':
        return cls(UPDATE_CHALLENGE_STATE, challenge_id=challenge_id, state=state)

    @classmethod
    def preserve(cls, context: dict | None = None) -> 'NavigationEvent':
        return cls(PRESERVE_CONTEXT, context=context)

    @classmethod
    def restore(cls, context_id: str) -> 'NavigationEvent':
        return cls(RESTORE_CONTEXT, context_id=context_id)

    def to_dict(self) -> dict:
        return {
            'type': self.type,
            'challenge_id': self.challenge_id,
            'state': self.state,
            'context': self.context,
            'context_id': self.context_id
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'NavigationEvent':
        return cls(
            data.get('type', ''),
            data.get('challenge_id'),
            data.get('state'),
            data.get('context'),
            data.get('context_id')
        )
