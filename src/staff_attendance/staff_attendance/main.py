from __future__ import annotations

import importlib
from typing import Optional

import structlog
from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .attendance.repository import AttendanceRepository
from .container import build_container
from .logging_setup import setup_logging
from .remote.connection import TokenProvider


def create_app(
    *,
    token_provider: Optional[TokenProvider] = None,
    attendance_repo: Optional[AttendanceRepository] = None,
) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    setup_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    container = build_container(settings=settings, token_provider=token_provider, attendance_repo=attendance_repo)
    app.extensions["staff_attendance"] = container

    structlog.get_logger(__name__).info(
        "staff_attendance_app_ready",
        settings=settings_module,
        storage=container.storage_kind.value,
        write_enabled=container.write_enabled,
    )

    register_attendance(app, container)

    return app
