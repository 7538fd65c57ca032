"""Shared constants for git-worktree-keeper."""

# Worktree layout
DEFAULT_BASE_DIR = ".worktrees"
DEFAULT_PREFIX = "vibe-ws/"
DEFAULT_EDITOR = "code"
GLOBAL_WORKTREE_DIR = "~/.toolprint/vibe-workspace/worktrees"
DEFAULT_CONFIG_PATH = "~/.toolprint/vibe-workspace/config.yaml"
GITIGNORE_HEADER = "# Vibe worktree directories"
PATH_TIMESTAMP_SEPARATOR = "__"

# Branch name rules
MAX_BRANCH_NAME_LENGTH = 255
MAX_PREFIX_LENGTH = 50
DANGEROUS_BRANCH_CHARS = frozenset("$`(){}|&;<>\n\r\0\"'\\")

# Status
STATUS_CACHE_TTL_SECONDS = 300
SHORT_SHA_LENGTH = 7
DETACHED_BRANCH = "(detached)"
BARE_BRANCH = "(bare)"

# Severity display
SYMBOL_CLEAN = "✅"
SYMBOL_WARNING = "⚠️"
SYMBOL_LIGHT_WARNING = "⚡"

# Environment overrides
ENV_PREFIX = "VIBE_WORKTREE_"

# Cleanup
STASH_MESSAGE_PREFIX = "vibe-cleanup"
NO_LOCAL_CHANGES_MARKER = "No local changes to save"

# Rich color names per severity
SEVERITY_COLORS = {
    "clean": "green",
    "light_warning": "yellow",
    "warning": "red",
}
