"""Project-wide constants for gitit."""

ISSUE_FILE_NAME = "issue"
BRANCH_PREFIX = "issue/"
DEFAULT_MAIN_BRANCH = "master"
CONFIG_FILE_NAME = "gitit.yaml"

ID_WIDTH = 4

INIT_COMMIT_MESSAGE = "Issue repo initialized."
SAVE_COMMIT_MESSAGE = "Updated issue."

LONG_TEXT_INDENT = "    "
