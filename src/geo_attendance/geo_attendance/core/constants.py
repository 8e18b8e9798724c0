"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_M = 6_371_000.0

MIN_RADIUS_M = 1.0
MAX_RADIUS_M = 100.0
DEFAULT_RADIUS_M = 5.0

DEFAULT_DURATION_MINUTES = 60
MAX_DURATION_MINUTES = 24 * 60

CODE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10

MAX_SUBJECT_LENGTH = 200
DEFAULT_LOCATION_NAME = "Class Location"

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

DEFAULT_DB_TIMEOUT_SECONDS = 5

QR_PAYLOAD_VERSION = 1
