"""
Design (config.py)
- Purpose: Centralize constants and configuration.
- Inputs: None.
- Outputs: Constants (intervals, bounds, pool sizes, timeouts, file names).
- Side effects: None.
- Thread-safety: N/A (read-only constants).
"""

APP_TITLE = "InfraMon"

# Reachability (ping) polling policy
DEFAULT_INTERVAL_SEC = 30
MIN_INTERVAL_SEC = 5
MAX_INTERVAL_SEC = 3600
DEFAULT_SHOW_STATUS = False
IDLE_RECHECK_SEC = 1.0      # disabled loop re-checks the enabled flag this often
PING_TIMEOUT_SEC = 2.0      # hard deadline per ping subprocess
PING_MAX_CONCURRENT = 8

# Liveness (SSH) polling
SSH_INTERVAL_SEC = 30
SSH_TIMEOUT_SEC = 6.0       # connect + handshake + auth
SSH_MAX_CONCURRENT = 6
SSH_DEFAULT_PORT = 22
LINK_SPEED_TIMEOUT_SEC = 8.0  # whole detection session, run when settings are saved

# Maximum number of log entries kept in memory (oldest dropped)
LOG_MAX_LINES = 500
LOG_LIST_DEFAULT = 200

# Persistence: file names inside the data directory (path resolved in storage module)
DATA_DIR_ENV = "INFRAMON_DATA_DIR"
DATA_DIR_NAME = "data"
BOARD_FILENAME = "board.json"
SECRETS_FILENAME = "secrets.json"
SECRET_KEY_FILENAME = "secret.key"

# Status window
UI_REFRESH_MS = 1000
