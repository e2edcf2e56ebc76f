"""Constants shared by the tools and the engine."""

from workspace_session_mcp.models.terminal import SpecialKey

# Full replacement is assumed above this percentage when no blocks are present
FULL_REPLACE_PERCENTAGE = 50

# Lines inspected when sniffing content for search/replace markers
MARKER_SNIFF_LINES = 10

# Environment every child process receives so output stays sanitizable
CHILD_ENV = {
    "NO_COLOR": "1",
    "CLICOLOR": "0",
    "TERM": "dumb",
    "PAGER": "cat",
    "GIT_PAGER": "cat",
    "PYTHON_BASIC_REPL": "1",
}

# Binaries that always claim the terminal for input
INTERACTIVE_COMMANDS = frozenset(
    {
        # editors
        "vim", "vi", "nvim", "nano", "emacs", "pico", "micro",
        # pagers
        "less", "more", "most", "man",
        # database clients
        "psql", "mysql", "sqlite3", "redis-cli", "mongo", "mongosh",
        # remote shells and monitors
        "ssh", "telnet", "ftp", "sftp", "top", "htop", "watch", "tmux", "screen",
    }
)
# REPLs and shells: interactive when started without a script or with -i
REPL_COMMANDS = frozenset(
    {
        "python", "python3", "ipython", "node", "irb", "ghci", "lua", "R", "julia",
        "bash", "sh", "zsh", "fish", "dash",
    }
)
PAGERS = frozenset({"less", "more", "most"})

SPECIAL_KEY_SEQUENCES: dict[SpecialKey, str] = {
    SpecialKey.ENTER: "\n",
    SpecialKey.KEY_UP: "\x1b[A",
    SpecialKey.KEY_DOWN: "\x1b[B",
    SpecialKey.KEY_RIGHT: "\x1b[C",
    SpecialKey.KEY_LEFT: "\x1b[D",
    SpecialKey.CTRL_C: "\x03",
    SpecialKey.CTRL_D: "\x04",
}

# Workspace summary on initialize
SUMMARY_TREE_LIMIT = 100
SUMMARY_TREE_DEPTH = 3
SUMMARY_RECENT_FILES = 10
SUMMARY_SCAN_LIMIT = 5000

# Directories left out of the workspace summary (hidden entries are always skipped)
DEFAULT_IGNORE_DIRECTORIES = frozenset(
    {
        "node_modules", "__pycache__", "env", "venv", "target",
        "build", "dist", "out", "bundle", "vendor", "tmp", "temp",
        "deps", "Pods",
    }
)
