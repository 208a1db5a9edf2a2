from __future__ import annotations

import os
from dataclasses import dataclass

from labpulse.planner.schema import DEFAULT_IMPORTANCE, MAX_IMPORTANCE, MIN_IMPORTANCE

DEFAULT_DATABASE_URL = "sqlite:///./labpulse.db"


@dataclass(frozen=True)
class AppConfig:
    database_url: str
    cors_origins: list[str]
    auto_create_schema: bool
    default_task_importance: int


def load_app_config() -> AppConfig:
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    cors_origins_raw = os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    )
    cors_origins = [
        origin.strip() for origin in cors_origins_raw.split(",") if origin.strip()
    ]

    auto_create_raw = os.getenv("AUTO_CREATE_SCHEMA")
    auto_create_schema = auto_create_raw == "1" or (
        auto_create_raw is None and database_url.startswith("sqlite")
    )

    try:
        importance = int(os.getenv("DEFAULT_TASK_IMPORTANCE", str(DEFAULT_IMPORTANCE)))
    except ValueError:
        importance = DEFAULT_IMPORTANCE
    importance = min(max(importance, MIN_IMPORTANCE), MAX_IMPORTANCE)

    return AppConfig(
        database_url=database_url,
        cors_origins=cors_origins,
        auto_create_schema=auto_create_schema,
        default_task_importance=importance,
    )
