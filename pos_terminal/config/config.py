# config/config.py
import os
from dotenv import load_dotenv

load_dotenv()

BOT_TOKEN = os.getenv("BOT_TOKEN")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Remote authority that owns the canonical orders and printed bills
REMOTE_BASE_URL = os.getenv("REMOTE_BASE_URL", "http://localhost:3000")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

# Retry backoff for failed reconciliation runs, in seconds
SYNC_BACKOFF_BASE = float(os.getenv("SYNC_BACKOFF_BASE", "5"))
SYNC_BACKOFF_FACTOR = float(os.getenv("SYNC_BACKOFF_FACTOR", "2"))
SYNC_BACKOFF_MAX = float(os.getenv("SYNC_BACKOFF_MAX", "300"))

CONNECTIVITY_CHECK_INTERVAL = float(os.getenv("CONNECTIVITY_CHECK_INTERVAL", "5"))

# "0" disables the background sync loop; mutations then sync inline
DEFERRED_SYNC_ENABLED = os.getenv("DEFERRED_SYNC_ENABLED", "1") != "0"

# Price of any size other than Small = base price * multiplier
NON_SMALL_SIZE_MULTIPLIER = float(os.getenv("NON_SMALL_SIZE_MULTIPLIER", "2"))
