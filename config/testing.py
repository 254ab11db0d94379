SECRET_KEY = "test-secret"

STAFF_ATTENDANCE_STORAGE = "local"
STAFF_ATTENDANCE_WRITE = True

SP_SITE_URL = ""
SP_LIST_STAFF_ATTENDANCE = "StaffAttendance"
SP_ACCESS_TOKEN = ""
SP_TIMEOUT_SECONDS = 5.0

STAFF_ROSTER = '[{"staff_id": "S001", "name": "佐藤"}, {"staff_id": "S002", "name": "鈴木"}]'

TIMEZONE = "Asia/Tokyo"
LOG_LEVEL = "WARNING"

DEBUG = False
TESTING = True
