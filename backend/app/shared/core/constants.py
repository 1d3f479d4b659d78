"""
Centralized Constants for the Inbox Backend Application.
All hardcoded values should be defined here for easy maintenance.
"""

# ============================================
# API TIMEOUTS (in seconds)
# ============================================
TIMEOUT_ZAPI_API = 30.0               # General Z-API timeout
TIMEOUT_ZAPI_MEDIA = 60.0             # Media uploads (base64 payloads)
TIMEOUT_IDENTITY_API = 10.0           # Supabase /auth/v1/user lookup
TIMEOUT_GOOGLE_PLACES = 20.0          # Geocode / Nearby / Details calls

# ============================================
# EXTERNAL API URLS
# ============================================
GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
GOOGLE_TEXTSEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"
GOOGLE_NEARBY_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
GOOGLE_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
GOOGLE_PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"

# ============================================
# PERSISTENCE RETRY
# ============================================
DB_RETRY_ATTEMPTS = 3
DB_RETRY_BASE_WAIT_SECONDS = 0.2      # 200ms, then 400ms

# ============================================
# PAGINATION
# ============================================
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
CONVERSATIONS_PAGE_SIZE = 100

# ============================================
# TENANCY
# ============================================
PUBLIC_TENANT_ID = "public"           # Last-resort sentinel, permissive paths only

# ============================================
# DATABASE POOL SETTINGS
# ============================================
DB_POOL_SIZE = 5
DB_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 300
