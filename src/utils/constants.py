"""
Constants for the Unit Conversion Catalog application.

This module defines all system-wide constants including:
- Application metadata
- Unit selection roles as stored on products
- Conversion tolerances and display precision
- Validation limits and error messages
"""

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Unit Conversion Catalog"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"

# ============================================================================
# Unit Selection Roles
# ============================================================================

# Stored role tags (kept in Spanish to match existing product documents)
ROLE_SALE = "venta"
ROLE_PRODUCTION = "produccion"
ROLE_PURCHASE = "compra"

# ============================================================================
# Conversion Constants
# ============================================================================

# |f(A->B) * f(B->A) - 1| must not exceed this for an inverse pair
INVERSE_FACTOR_TOLERANCE = 0.01

# Decimal places used when a factor is shown to the user
FACTOR_DISPLAY_PRECISION = 4

# Upper bound on coalesced synchronization passes per request
MAX_SYNC_PASSES = 5

# ============================================================================
# Validation Constants
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_UNIT_NAME_LENGTH = 100
MAX_ACRONYM_LENGTH = 20
MAX_SKU_LENGTH = 50
MAX_NOTES_LENGTH = 2000

# ============================================================================
# Database Constants
# ============================================================================

DATABASE_FILENAME = "unit_catalog.db"

TABLE_MEASUREMENT_UNIT = "measurement_units"
TABLE_PRODUCT = "products"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_NAME_TOO_LONG = f"Name must be {MAX_NAME_LENGTH} characters or less"
ERROR_DUPLICATE_NAME = "An item with this name already exists"
