STATE_DIR_NAME = ".taskflow"
CONFIG_FILE = "config.yaml"
WINDOWS_LOCK_BYTES = 4096

ORDER_GAP = 1000
DEFAULT_ACTIVITY_CAPACITY = 100
DEFAULT_REBALANCE_EPSILON = 0.01
DEFAULT_WRITE_ATTEMPTS = 1

COLLECTION_TASKS = "tasks"
COLLECTION_USERS = "users"
COLLECTION_ACTIVITIES = "activities"
COLLECTION_TAGS = "tags"
COLLECTION_NOTES = "notes"

# Board data proper; sticky notes are outside it and survive a reset.
COLLECTIONS = (
    COLLECTION_TASKS,
    COLLECTION_USERS,
    COLLECTION_ACTIVITIES,
    COLLECTION_TAGS,
)

STORAGE_BACKENDS = {"file", "memory"}
STORAGE_ENV_VAR = "TASKFLOW_STORAGE"

DUE_SOON_DAYS = 3
TIMEFRAMES = (7, 30, 90)

FALLBACK_TAG_COLOR = "#6b7280"
DEFAULT_TAG_COLORS = {
    "frontend": "#3b82f6",
    "backend": "#8b5cf6",
    "bug": "#ef4444",
    "feature": "#10b981",
    "design": "#ec4899",
    "testing": "#f59e0b",
    "devops": "#06b6d4",
    "database": "#6366f1",
    "api": "#14b8a6",
    "ui/ux": "#f97316",
    "document": "#64748b",
}

NOTE_COLORS = {
    "yellow": "#fef08a",
    "pink": "#fda4af",
    "blue": "#93c5fd",
    "green": "#86efac",
    "purple": "#d8b4fe",
    "orange": "#fdba74",
    "teal": "#5eead4",
    "rose": "#fecdd3",
}
DEFAULT_NOTE_COLOR = NOTE_COLORS["yellow"]
