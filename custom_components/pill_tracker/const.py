"""Constants for Pill Tracker."""

# Integration domain must match the folder name under custom_components
DOMAIN = "pill_tracker"

# Storage
RECORDS_STORE_KEY = f"{DOMAIN}_records"
RECORDS_STORE_VERSION = 1
LOCK_STORE_KEY = f"{DOMAIN}_history_lock"
LOCK_STORE_VERSION = 1
SAVE_DELAY = 1

# Config / options keys
CONF_NOTIFICATIONS_ENABLED = "notifications_enabled"
CONF_MORNING_TIME = "morning_time"
CONF_EVENING_TIME = "evening_time"
CONF_HISTORY_LOCKED = "history_locked"
CONF_NOTIFY_SERVICES = "notify_services"

# Defaults
DEFAULT_MORNING_HOUR = 7
DEFAULT_MORNING_MINUTE = 0
DEFAULT_EVENING_HOUR = 21
DEFAULT_EVENING_MINUTE = 0

# History lock
RELOCK_SECONDS = 600

# Reminders
SCHEDULE_DAYS = 7
NOTIFICATION_TITLE = "Pills"
MORNING_BODY = "Remember to take pills this morning"
EVENING_BODY = "Remember to take pills this evening"
UNLOCK_PROMPT_ID = f"{DOMAIN}_unlock_prompt"
UNLOCK_PROMPT_TITLE = "History is Locked"
UNLOCK_PROMPT_MESSAGE = (
    "Unlock editing for past days? It will relock after 10 minutes. "
    f"Call {DOMAIN}.confirm_unlock to continue or {DOMAIN}.cancel_unlock to discard."
)

# Service / attribute keys
ATTR_PERIOD = "period"
ATTR_DATE = "date"
ATTR_DAY = "day"
ACTION_TAKEN = "PILL_TAKEN"

# States
STATE_LOCKED = "Locked"
STATE_UNLOCKED = "Unlocked"

# Dispatcher signals
SIGNAL_RECORDS_UPDATED = f"{DOMAIN}_records_updated"
SIGNAL_LOCK_UPDATED = f"{DOMAIN}_lock_updated"
SIGNAL_REMINDERS_UPDATED = f"{DOMAIN}_reminders_updated"
