from .models import (
    Challenge, ChallengeAttempt, ChallengeState, PlayerProgress, EligibilityCriteria,
    NavigationContext, SessionMetadata, NavigationOutcome, ErrorContext,
    FailureContext, ErrorLogEntry, NavigationEvent
)
from .errors import NavigationErrorKind
from .interfaces import ContextStore
from .eligibility import filter_available_challenges
from .selector import ChallengeSelector
from .recovery import ErrorRecoveryCoordinator
from .navigation import NavigationOrchestrator
from .config import (
    NAVIGATION_HISTORY_LIMIT, SNAPSHOT_CAPACITY, ERROR_LOG_CAPACITY,
    CONTEXT_BACKUP_KEY, FORM_AUTOSAVE_KEY
)

__all__ = [
    'Challenge', 'ChallengeAttempt', 'ChallengeState', 'PlayerProgress', 'EligibilityCriteria',
    'NavigationContext', 'SessionMetadata', 'NavigationOutcome', 'ErrorContext',
    'FailureContext', 'ErrorLogEntry', 'NavigationEvent',
    'NavigationErrorKind',
    'ContextStore',
    'filter_available_challenges',
    'ChallengeSelector', 'ErrorRecoveryCoordinator', 'NavigationOrchestrator',
    'NAVIGATION_HISTORY_LIMIT', 'SNAPSHOT_CAPACITY', 'ERROR_LOG_CAPACITY',
    'CONTEXT_BACKUP_KEY', 'FORM_AUTOSAVE_KEY'
]
