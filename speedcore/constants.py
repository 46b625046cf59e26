"""
Shared constants used across all speedcore modules.

Centralises endpoint pools, sample counts, plausibility bounds and
fallback ranges so they live in exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

CACHE_BUST_PARAM = "t"

# ---------------------------------------------------------------------------
# Third-party endpoints (CORS-friendly public CDN assets)
# ---------------------------------------------------------------------------

DOWNLOAD_ENDPOINTS = (
    "https://cdn.jsdelivr.net/npm/jquery@3.6.0/dist/jquery.min.js",
    "https://cdnjs.cloudflare.com/ajax/libs/lodash.js/4.17.21/lodash.min.js",
    "https://unpkg.com/react@18/umd/react.production.min.js",
    "https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/js/bootstrap.bundle.min.js",
    "https://cdnjs.cloudflare.com/ajax/libs/axios/1.4.0/axios.min.js",
    "https://unpkg.com/vue@3/dist/vue.global.js",
)

PING_ENDPOINTS = (
    "https://cdn.jsdelivr.net/npm/jquery@3.6.0/dist/jquery.min.js",
    "https://www.cloudflare.com/cdn-cgi/trace",
    "https://httpbin.org/bytes/100",
)

JITTER_ENDPOINT = "https://www.cloudflare.com/cdn-cgi/trace"

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 5
DEFAULT_PING_INTERVAL = 0.2      # seconds between ping samples
DEFAULT_JITTER_COUNT = 8
DEFAULT_JITTER_INTERVAL = 0.1    # seconds between jitter samples
DEFAULT_REQUEST_TIMEOUT = 10.0   # seconds, per request

MIN_SAMPLE_COUNT = 2
MAX_SAMPLE_COUNT = 100
MAX_INTERVAL = 10.0
MIN_TIMEOUT = 1.0
MAX_TIMEOUT = 120.0

# ---------------------------------------------------------------------------
# Upload proxy
# ---------------------------------------------------------------------------

UPLOAD_PAYLOAD_SIZE = 1_000_000  # 1 MB generated payload
UPLOAD_SUCCESS_CAP = 0.30        # upload <= 30% of download
UPLOAD_FAILURE_RATIO = 0.10      # upload = 10% of download when the proxy fails

# ---------------------------------------------------------------------------
# Plausibility and fallback ranges (milliseconds)
# ---------------------------------------------------------------------------

MAX_PLAUSIBLE_PING = 200.0
DEFAULT_PING = 25.0

PING_FALLBACK_RANGE = (15.0, 50.0)
JITTER_SAMPLE_FALLBACK_RANGE = (25.0, 40.0)
JITTER_FALLBACK_RANGE = (5.0, 25.0)
SYNTHETIC_UPLOAD_RATIO = (0.05, 0.20)

# ---------------------------------------------------------------------------
# CPU calibration (fallback estimator)
# ---------------------------------------------------------------------------

CALIBRATION_ITERATIONS = 100_000

# (upper bound on elapsed ms, (low Mbps, high Mbps)); checked in order.
CALIBRATION_BUCKETS = (
    (10.0, (100.0, 500.0)),
    (25.0, (50.0, 150.0)),
    (60.0, (25.0, 75.0)),
    (150.0, (10.0, 30.0)),
)
CALIBRATION_SLOWEST = (1.0, 11.0)

# ---------------------------------------------------------------------------
# History / sharing
# ---------------------------------------------------------------------------

HISTORY_LIMIT = 10
HISTORY_KEY = "speedTestHistory"
LAST_RESULT_KEY = "lastSpeedTest"
SHARE_FRAGMENT_KEY = "results="
DEFAULT_SHARE_ORIGIN = "https://speedcheck.local"
DEFAULT_SHARE_PATH = "/"
