import os

_SETTINGS_BY_ENV = {
    "production": "config.production",
    "prod": "config.production",
    "testing": "config.testing",
    "test": "config.testing",
    "development": "config.development",
    "dev": "config.development",
}


def get_settings_module() -> str:
    """Dotted name of the settings module to load.

    STAFF_ATTENDANCE_SETTINGS names a module directly (a facility's own
    settings file) and wins over APP_ENV. Unknown APP_ENV values fall back
    to development.
    """
    explicit = os.getenv("STAFF_ATTENDANCE_SETTINGS", "").strip()
    if explicit:
        return explicit

    env = os.getenv("APP_ENV", "development").strip().lower()
    return _SETTINGS_BY_ENV.get(env, "config.development")
