"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_LIST_TITLE = "StaffAttendance"

# Single-date listing: one page is plenty for one facility's roster.
DEFAULT_DATE_TOP = 500

# Range listing: page size and page cap. Reaching top * pages is an error.
DEFAULT_RANGE_TOP = 200
MAX_RANGE_PAGES = 10

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_TIMEZONE = "Asia/Tokyo"
