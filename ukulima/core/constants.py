"""Ukulima offline constants and thresholds.

All magic numbers live here. No exceptions.
"""

# Retry ceiling: an action is dead-lettered once retry_count reaches this
MAX_RETRIES = 3

# Mirror expiry horizon
MIRROR_HORIZON_DAYS = 7

# Offline analytics buffer keeps only the most recent events
ANALYTICS_BUFFER_LIMIT = 100

# Durable storage keys
PENDING_ACTIONS_KEY = "pendingActions"
FAILED_ACTIONS_KEY = "failedActions"
QUARANTINE_KEY = "quarantine"
OFFLINE_ANALYTICS_KEY = "offlineAnalytics"
TOKEN_KEY = "token"
MIRROR_KEY_PREFIX = "mirror:"

# Mirror namespaces
NS_PRODUCTS = "products"
NS_ORDERS = "orders"
NS_CONVERSATIONS = "conversations"
NS_MESSAGES = "messages"
NS_USER = "user"
NS_CART = "cart"

# HTTP statuses worth another attempt; every other 4xx is terminal
RETRYABLE_STATUS_CODES = (408, 425, 429, 500, 502, 503, 504)

# Features that keep working from the mirror while offline
OFFLINE_FEATURES = (
    "browse_products",
    "view_profile",
    "view_orders",
    "compose_message",
)

# Remote API defaults
DEFAULT_API_BASE = "https://ukulima-backend-k23d.onrender.com/api"
DEFAULT_REQUEST_TIMEOUT_S = 30.0
DEFAULT_PROBE_PORT = 443
DEFAULT_PROBE_TIMEOUT_S = 5.0

# Product listing page size
PRODUCTS_PAGE_SIZE = 12
