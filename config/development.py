import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

# "local" keeps records in memory (demo); "remote" talks to the SharePoint list
STAFF_ATTENDANCE_STORAGE = os.getenv("STAFF_ATTENDANCE_STORAGE", "local")
# Write gate: 0 = read-only
STAFF_ATTENDANCE_WRITE = bool(int(os.getenv("STAFF_ATTENDANCE_WRITE", "1")))

SP_SITE_URL = os.getenv("SP_SITE_URL", "")
SP_LIST_STAFF_ATTENDANCE = os.getenv("SP_LIST_STAFF_ATTENDANCE", "StaffAttendance")
SP_ACCESS_TOKEN = os.getenv("SP_ACCESS_TOKEN", "")
SP_TIMEOUT_SECONDS = float(os.getenv("SP_TIMEOUT_SECONDS", "30"))

# JSON list: [{"staff_id": "S001", "name": "佐藤"}, ...]
STAFF_ROSTER = os.getenv("STAFF_ROSTER", "[]")

TIMEZONE = os.getenv("TIMEZONE", "Asia/Tokyo")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

DEBUG = True
