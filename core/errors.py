"""Navigation error taxonomy and the fixed feedback/recovery tables."""

from enum import Enum


class NavigationErrorKind(str, Enum):
    """Closed set of navigation failure kinds."""
    CHALLENGE_NOT_FOUND = 'CHALLENGE_NOT_FOUND'
    NO_AVAILABLE_CHALLENGES = 'NO_AVAILABLE_CHALLENGES'
    NAVIGATION_LOOP_FAILURE = 'NAVIGATION_LOOP_FAILURE'
    PERMISSION_DENIED = 'PERMISSION_DENIED'
    SESSION_EXPIRED = 'SESSION_EXPIRED'
    CONTEXT_LOSS = 'CONTEXT_LOSS'
    FORM_DATA_LOSS = 'FORM_DATA_LOSS'
    URL_SYNC_FAILURE = 'URL_SYNC_FAILURE'
    CONTENT_LOAD_FAILURE = 'CONTENT_LOAD_FAILURE'
    STATE_PRESERVATION_FAILURE = 'STATE_PRESERVATION_FAILURE'
    INVALID_ENTRY_POINT = 'INVALID_ENTRY_POINT'


class ErrorFeedback:
    """User-facing presentation of an error kind."""

    def __init__(self, title: str, message: str, severity: str,
                 show_technical_details: bool = False, auto_dismiss_ms: int | None = None):
        self.title = title
        self.message = message
        self.severity = severity
        self.show_technical_details = show_technical_details
        self.auto_dismiss_ms = auto_dismiss_ms


class RecoveryStrategy:
    """Fallback labels for an error kind and whether to try recovering automatically.

    The recovery coroutine itself lives on the coordinator, keyed by kind,
    because it needs the failure context and the durable store.
    """

    def __init__(self, primary_action: str, secondary_actions: list[str], auto_recover: bool = False):
        self.primary_action = primary_action
        self.secondary_actions = secondary_actions
        self.auto_recover = auto_recover

    @property
    def fallback_options(self) -> list[str]:
        return [self.primary_action, *self.secondary_actions]


E = NavigationErrorKind

FEEDBACK: dict[NavigationErrorKind, ErrorFeedback] = {
    E.CHALLENGE_NOT_FOUND: ErrorFeedback(
        'Challenge Not Found',
        'The requested challenge could not be found. It may have been removed '
        'or you may not have access to it.',
        'error'),
    E.NO_AVAILABLE_CHALLENGES: ErrorFeedback(
        'No Challenges Available',
        'There are currently no challenges available for you to play. You may have '
        'completed all available challenges or they may be temporarily unavailable.',
        'info'),
    E.NAVIGATION_LOOP_FAILURE: ErrorFeedback(
        'Navigation Error',
        'There was a problem determining the next challenge. This is usually a temporary issue.',
        'warning', auto_dismiss_ms=5000),
    E.PERMISSION_DENIED: ErrorFeedback(
        'Access Denied',
        "You don't have permission to access this challenge. You may need to log in "
        "or reach a higher level.",
        'warning'),
    E.SESSION_EXPIRED: ErrorFeedback(
        'Session Expired',
        'Your session has expired. Please log in again to continue.',
        'warning'),
    E.CONTEXT_LOSS: ErrorFeedback(
        'Navigation State Lost',
        'Your navigation progress was lost, but we can continue from where you are now.',
        'warning', auto_dismiss_ms=3000),
    E.FORM_DATA_LOSS: ErrorFeedback(
        'Form Data Lost',
        "Some of your form data was lost during navigation. We'll try to restore what we can.",
        'warning'),
    E.URL_SYNC_FAILURE: ErrorFeedback(
        'URL Sync Issue',
        "The page URL couldn't be updated, but your progress is still saved.",
        'info', auto_dismiss_ms=3000),
    E.CONTENT_LOAD_FAILURE: ErrorFeedback(
        'Content Loading Failed',
        'Some content failed to load. You can try again or continue without it.',
        'warning'),
    E.STATE_PRESERVATION_FAILURE: ErrorFeedback(
        'Save State Failed',
        "Your progress couldn't be saved automatically. You can continue, but your "
        "state may not be preserved.",
        'warning'),
    E.INVALID_ENTRY_POINT: ErrorFeedback(
        'Navigation Error',
        'An unexpected error occurred during navigation. Please try again.',
        'error', show_technical_details=True),
}

STRATEGIES: dict[NavigationErrorKind, RecoveryStrategy] = {
    E.CHALLENGE_NOT_FOUND: RecoveryStrategy(
        'Browse available challenges', ['Return to menu', 'Refresh challenge list']),
    E.NO_AVAILABLE_CHALLENGES: RecoveryStrategy(
        'Create a new challenge', ['Check for updates', 'Return to menu', 'View completed challenges']),
    E.NAVIGATION_LOOP_FAILURE: RecoveryStrategy(
        'Try again', ['Return to menu', 'Refresh page'], auto_recover=True),
    E.PERMISSION_DENIED: RecoveryStrategy(
        'Login or upgrade account', ['View available challenges', 'Return to menu']),
    E.SESSION_EXPIRED: RecoveryStrategy(
        'Login again', ['Continue as guest', 'Return to menu'], auto_recover=True),
    E.CONTEXT_LOSS: RecoveryStrategy(
        'Continue with current state', ['Return to menu', 'Restore from backup'], auto_recover=True),
    E.FORM_DATA_LOSS: RecoveryStrategy(
        'Restore from auto-save', ['Start over', 'Return to menu'], auto_recover=True),
    E.URL_SYNC_FAILURE: RecoveryStrategy(
        'Continue with current state', ['Refresh page', 'Return to menu'], auto_recover=True),
    E.CONTENT_LOAD_FAILURE: RecoveryStrategy(
        'Retry loading', ['Skip content', 'Return to menu'], auto_recover=True),
    E.STATE_PRESERVATION_FAILURE: RecoveryStrategy(
        'Continue without saving state', ['Try saving again', 'Return to menu'], auto_recover=True),
    E.INVALID_ENTRY_POINT: RecoveryStrategy(
        'Try again', ['Return to menu', 'Refresh page']),
}

RETRYABLE: frozenset[NavigationErrorKind] = frozenset({
    E.NAVIGATION_LOOP_FAILURE,
    E.SESSION_EXPIRED,
    E.CONTEXT_LOSS,
    E.FORM_DATA_LOSS,
    E.URL_SYNC_FAILURE,
    E.CONTENT_LOAD_FAILURE,
    E.STATE_PRESERVATION_FAILURE,
})

# UI pacing only; the engine never sleeps on these
SUGGESTED_WAIT_MS: dict[NavigationErrorKind, int] = {
    E.NAVIGATION_LOOP_FAILURE: 1000,
    E.CONTENT_LOAD_FAILURE: 2000,
    E.URL_SYNC_FAILURE: 500,
    E.STATE_PRESERVATION_FAILURE: 1000,
    E.SESSION_EXPIRED: 0,
    E.PERMISSION_DENIED: 0,
    E.CHALLENGE_NOT_FOUND: 0,
    E.NO_AVAILABLE_CHALLENGES: 0,
    E.CONTEXT_LOSS: 0,
    E.FORM_DATA_LOSS: 0,
    E.INVALID_ENTRY_POINT: 0,
}
