CONFIG_DIR_NAME = ".taskboard"
CONFIG_FILE = "config.yaml"

DEFAULT_API_URL = "http://localhost:8080/api"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_DEBOUNCE_SECONDS = 2.0
DEFAULT_AUTOSAVE_ENABLED = True

ENV_API_URL = "TASKBOARD_API_URL"
ENV_TOKEN = "TASKBOARD_TOKEN"

# Drop-target identifiers that name a board column rather than a task.
COLUMN_TODO = "TODO"
COLUMN_IN_PROGRESS = "IN_PROGRESS"
COLUMN_DONE = "DONE"
COLUMN_IDS = (COLUMN_TODO, COLUMN_IN_PROGRESS, COLUMN_DONE)

HISTORY_FILTER_ALL = "all"

# Generic failure strings used when a response carries no message.
DEFAULT_MESSAGES = {
    "update": "Failed to update task",
    "create": "Failed to create task",
    "bulk_update": "Bulk update failed",
    "history": "Failed to fetch task history",
    "list": "Failed to load tasks",
    "empty_patch": "Select at least one field to update",
    "empty_selection": "Select at least one task to update",
    "shape_violation": "Server response did not account for every task",
}
