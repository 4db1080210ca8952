"""Configuration constants for linkhop navigation engine."""

# Challenge state defaults
DEFAULT_STATUS = 'active'
DEFAULT_ATTEMPTS_REMAINING = 10
CHALLENGE_STATUSES = ('active', 'completed', 'given_up', 'game_over')

# Eligibility criteria defaults
DEFAULT_EXCLUDED_STATUSES = ('given_up', 'game_over', 'exhausted_attempts')
DEFAULT_MIN_ATTEMPTS_REMAINING = 1

# Bounded structures
NAVIGATION_HISTORY_LIMIT = 10   # Last visited challenge ids kept in context
SNAPSHOT_CAPACITY = 5           # Preserved contexts kept before eviction
ERROR_LOG_CAPACITY = 50         # Classified failures kept for statistics

# Error statistics windows
RETRY_WINDOW_SECONDS = 300      # Same error + action within 5 minutes counts as a retry
RECENT_ERROR_WINDOW_SECONDS = 3600

# Auto-recovery
CONTENT_RETRY_DELAY_MS = 1000   # Pause before re-signalling a content load

# Durable store keys
CONTEXT_BACKUP_KEY = 'navigation_context_backup'
FORM_AUTOSAVE_KEY = 'form_data_autosave'
