"""Shared constants for foreman."""

# Project layout, relative to the project root
AI_DIR = "ai"
FEATURE_LIST_FILE = "ai/feature_list.json"
PROJECT_PROFILE_FILE = "ai/project_profile.env"
AGENTS_CONFIG_FILE = "ai/agents.yaml"
PROGRESS_LOG_FILE = "ai/progress.log"
VERIFICATION_DIR = "ai/verification"


TDD_MODES = ("strict", "recommended", "disabled")
DEFAULT_TDD_MODE = "recommended"

DEFAULT_CHECK_TIMEOUT = 600
DEFAULT_AI_TIMEOUT = 300
DEFAULT_SOURCE_ROOT = "src"

# Check types, in the order they run
CHECK_ORDER = ("typecheck", "lint", "test", "build", "e2e")

# Check names reported as skipped when nothing changed
FAST_PATH_ALL_SKIPPED = ["tests", "typecheck", "lint", "build", "e2e", "ai"]
FAST_PATH_SKIPPED = ["ai", "build", "e2e"]

# Max characters of diff sent to the verify agent
MAX_DIFF_CHARS = 20000
