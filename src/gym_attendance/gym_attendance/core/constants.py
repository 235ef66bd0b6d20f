"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MEMBERS_COLLECTION = "members"

# Document field names
FIELD_NAME = "name"
FIELD_MODALITIES = "modalities"
FIELD_PRESENCE_HISTORY = "presenceHistory"
FIELD_DEPENDENTS = "dependents"
FIELD_DEPENDENT_ID = "id"

# The gym is closed on January 1st; no attendance is tracked that day.
CLOSED_MONTH = 1
CLOSED_DAY = 1

DAYS_PER_WEEK = 7
CALENDAR_CELLS = 42

SWEEP_MAX_ATTEMPTS = 3
DEFAULT_DASHBOARD_REFRESH_SECONDS = 30
DEFAULT_SUBSCRIPTION_POLL_SECONDS = 5
