"""
Configuration — loads settings from environment / .env file.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent
CONFIG_HOME = Path(os.getenv("BEAD_PILOT_HOME", str(Path.home() / ".config" / "bead-pilot")))
SETTINGS_FILE = Path(os.getenv("SETTINGS_FILE", str(CONFIG_HOME / "settings.toml")))
INTERACTION_LOG_DIR = Path(os.getenv("INTERACTION_LOG_DIR", str(CONFIG_HOME / "logs")))
DEFAULT_REPO_PATH = Path(os.getenv("DEFAULT_REPO_PATH", os.getcwd()))

# Tracker CLI
BD_BIN = os.getenv("BD_BIN", "bd")
BD_DB = os.getenv("BD_DB", "")
TRACKER_TIMEOUT_SEC = float(os.getenv("TRACKER_TIMEOUT_SEC", "30"))
MEMORY_MANAGER = os.getenv("MEMORY_MANAGER", "beads")  # beads | knots

# Default agent when settings.toml names none
DEFAULT_AGENT_COMMAND = os.getenv("DEFAULT_AGENT_COMMAND", "claude")

# Verification
VERIFICATION_LOCK_TIMEOUT_SEC = float(os.getenv("VERIFICATION_LOCK_TIMEOUT_SEC", "600"))
COMMIT_LABEL_RETRY_DELAY_SEC = float(os.getenv("COMMIT_LABEL_RETRY_DELAY_SEC", "3"))
MAX_COMMIT_REMEDIATION_ATTEMPTS = 1
MAX_VERIFIER_OUTPUT_CHARS = 2_000
MAX_VERIFICATION_EVENTS = 500
DEFAULT_MAX_RETRIES = 3
