"""Shared constants for Hiring Inbox."""

import os
from datetime import timedelta
from pathlib import Path


HOME_DIR = Path(os.getenv("HIRING_INBOX_HOME", Path.home() / ".hiring-inbox"))
LOG_DIR = HOME_DIR / "logs"
DB_DIR = HOME_DIR / "db"
DB_FILE = DB_DIR / "inbox.db"
SERVER_HOST = "127.0.0.1"
SERVER_PORT = 9890
API_BASE = f"http://{SERVER_HOST}:{SERVER_PORT}"
INBOUND_EMAIL_TOKEN_LENGTH = 24
HIRING_FEE_GRACE_PERIOD = timedelta(weeks=2)
