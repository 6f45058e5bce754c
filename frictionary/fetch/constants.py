"""HTTP and MediaWiki constants for the fetch layer.

Centralizes all fetch-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# Response Size Limits
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB

# Chunk size for streaming reads
DEFAULT_CHUNK_SIZE = 8192

# Maximum retry delay cap for rate limiting (seconds)
MAX_RETRY_AFTER_SECONDS = 60

# MediaWiki endpoints, relative to a site's base URL
MEDIAWIKI_API_PATH = "/w/api.php"
MEDIAWIKI_INDEX_PATH = "/w/index.php"

# list=random defaults
DEFAULT_BATCH_SIZE = 10
DEFAULT_NAMESPACE = 0
DEFAULT_MAX_FETCH_ATTEMPTS = 10
