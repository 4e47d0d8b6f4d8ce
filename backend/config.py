import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")

DATA_DIR = Path(os.getenv("DATA_DIR") or PROJECT_ROOT / "data")

# Chain data
ETH_RPC_URL = os.getenv("ETH_RPC_URL", "https://ethereum-rpc.publicnode.com")
RPC_TIMEOUT_SECONDS = float(os.getenv("RPC_TIMEOUT_SECONDS", 8))

# Acquisition lookup: how far back (in blocks) inbound transfers are searched.
# 100k mainnet blocks is roughly two weeks at 12s per block.
LOOKBACK_BLOCKS = int(os.getenv("LOOKBACK_BLOCKS", 100_000))
LONG_TERM_DAYS = int(os.getenv("LONG_TERM_DAYS", 365))
ANALYSIS_MAX_WORKERS = int(os.getenv("ANALYSIS_MAX_WORKERS", 5))
# Native ETH acquisition needs trace_filter, which most public nodes do not serve
TRACE_NATIVE_TRANSFERS = os.getenv("TRACE_NATIVE_TRANSFERS", "false").lower() == "true"

# Payment gate
PAYMENT_REQUIRED = os.getenv("PAYMENT_REQUIRED", "true").lower() == "true"
RECEIVE_ADDRESS = (os.getenv("RECEIVE_ADDRESS") or "").strip()
ANALYSIS_PRICE_USD = (os.getenv("ANALYSIS_PRICE_USD") or "1.00").strip()
PAYMENT_NETWORK = (os.getenv("PAYMENT_NETWORK") or "base").strip()
PAYMENT_FACILITATOR_URL = (os.getenv("PAYMENT_FACILITATOR_URL") or "https://x402.org/facilitator").rstrip("/")

# Notifications
NOTIFICATION_SERVICE_KEY = os.getenv("NOTIFICATION_SERVICE_KEY", "minikit")
APP_URL = os.getenv("APP_URL", "")
