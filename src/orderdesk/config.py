"""Runtime settings for orderdesk.

Values come from environment variables and are read once at import time.
"""

import os
from decimal import Decimal
from pathlib import Path

# Store location. Can be overridden via ORDERDESK_DATA_DIR.
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DATA_DIR = Path(os.environ.get("ORDERDESK_DATA_DIR", _default_data_dir))

# Optional replacement for the bundled governorate/city rate table
RATES_FILE = os.environ.get("ORDERDESK_RATES_FILE") or None

LOG_LEVEL = os.environ.get("ORDERDESK_LOG_LEVEL", "INFO")

CURRENCY = "EGP"

# Fee used when the destination is incomplete or not in the rate table
DEFAULT_SHIPPING_FEE = Decimal("50")

# Customer IDs are normalized local mobile numbers
PHONE_LENGTH = 11
