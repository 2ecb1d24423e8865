"""chatbridge constants: filesystem layout, timeouts, and limits."""

from __future__ import annotations

import os
import sys
from enum import IntEnum
from pathlib import Path

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    NETWORK_ERROR = 4


# ---------------------------------------------------------------------------
# Platform-specific config directory
# ---------------------------------------------------------------------------


def _default_data_dir() -> Path:
    """
    Return the platform-appropriate chatbridge data directory.

    macOS : ~/Library/Application Support/chatbridge
    Linux : ~/.config/chatbridge
    Other : ~/.chatbridge
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "chatbridge"
    if sys.platform.startswith("linux"):
        xdg = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        return xdg / "chatbridge"
    return Path.home() / ".chatbridge"


# ---------------------------------------------------------------------------
# Filesystem layout
# ---------------------------------------------------------------------------

CONFIG_FILENAME = "config.toml"
DB_FILENAME = "chatbridge.db"

# ---------------------------------------------------------------------------
# Timeouts and limits
# ---------------------------------------------------------------------------

CHAT_TIMEOUT_SECONDS = 30.0  # whole-call watchdog for blocking chat
STREAM_SETUP_TIMEOUT_SECONDS = 60.0  # connect + status check for streams
STREAM_BUFFER_SIZE = 10  # responses buffered between producer and consumer
CANCEL_GRACE_SECONDS = 2.0  # wait for a cancelled producer to unwind
MOCK_TOKEN_DELAY_SECONDS = 0.05

# ---------------------------------------------------------------------------
# Vendor wire defaults
# ---------------------------------------------------------------------------

OPENAI_API_URL = "https://api.openai.com/v1"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1"
ANTHROPIC_API_VERSION = "2023-06-01"
ANTHROPIC_DEFAULT_MAX_TOKENS = 1024
