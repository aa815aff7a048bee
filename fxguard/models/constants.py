"""Domain constants shared by stores, services and routers."""

DEFAULT_BASE_CURRENCY = "USD"
DEFAULT_QUOTE_CURRENCY = "INR"

DAILY_REFERENCE_TYPE = "daily_reference"
DAILY_KEY_MARKER = "-DAILY-"

MS_PER_SECOND = 1000
SECONDS_PER_DAY = 24 * 60 * 60
