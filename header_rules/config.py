# header_rules/config.py
from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings

APP_VERSION = os.getenv("APP_VERSION", "0.1.0")


class Settings(BaseSettings):
    # --- Identity ---
    APP_NAME: str = Field(default="Header Rules")

    # --- Rules ---
    HEADER_RULES_ENABLED: bool = Field(default=True)
    HEADER_RULES_PATH: str = Field(default="")  # empty -> no rules, no defaults
    HEADER_RULES_AUTORELOAD: bool = Field(default=True)

    # --- Admin ---
    ADMIN_TOKEN: str | None = None

    # --- Metrics ---
    METRICS_ENABLED: bool = True

    # --- Logging ---
    LOG_JSON: bool = Field(default=True)
    LOG_LEVEL: str = Field(default="INFO")

    model_config = {
        "extra": "ignore",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }