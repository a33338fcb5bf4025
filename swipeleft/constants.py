# --- Selection ---

DEFAULT_POOL_SIZE = 4
MAX_POOL_SIZE = 32


# --- Local persistence ---

COLLECTION_KEY_PREFIX = "collection."


# --- Remote API ---

DEFAULT_API_BASE_URL = "https://api.swipeleft.com/v1"
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
REQUEST_MAX_ATTEMPTS = 3
UPLOAD_FILENAME = "photo.jpg"
UPLOAD_MIME_TYPE = "image/jpeg"


# --- Image cache ---

IMAGE_CACHE_MAX_ENTRIES = 64


# --- Directory source ---

IMAGE_SUFFIXES = frozenset({".jpg", ".jpeg", ".png", ".heic", ".heif", ".gif", ".webp", ".tif", ".tiff"})
