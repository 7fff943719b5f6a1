"""
Configuration for the gigstats CLI and `build_report()`.

The engine itself takes every knob as a call parameter; this module only
supplies defaults for those parameters from environment variables and an
optional `.env` file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


def _float(val: str | None, default: float = 0.0) -> float:
    try:
        return float(val)
    except (ValueError, TypeError):
        return default


def _optional_float(val: str | None) -> float | None:
    if val is None or not val.strip():
        return None
    try:
        return float(val)
    except ValueError:
        return None


def _env(name: str) -> str | None:
    return os.getenv(name)


@dataclass
class Settings:
    # --- Generic detectors ---
    zscore_threshold: float = field(
        default_factory=lambda: _float(_env("GIGSTATS_ZSCORE_THRESHOLD"), 2.0)
    )
    iqr_multiplier: float = field(
        default_factory=lambda: _float(_env("GIGSTATS_IQR_MULTIPLIER"), 1.5)
    )
    grubbs_alpha: float = field(
        default_factory=lambda: _float(_env("GIGSTATS_GRUBBS_ALPHA"), 0.05)
    )

    # --- Forecasting ---
    monthly_budget: float | None = field(
        default_factory=lambda: _optional_float(_env("GIGSTATS_MONTHLY_BUDGET"))
    )
    velocity_target: float | None = field(
        default_factory=lambda: _optional_float(_env("GIGSTATS_VELOCITY_TARGET"))
    )

    # --- Export ---
    webhook_url: str = field(default_factory=lambda: _env("GIGSTATS_WEBHOOK_URL") or "")

    # --- Logging ---
    log_level: str = field(default_factory=lambda: (_env("LOG_LEVEL") or "INFO").upper())


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Read `.env` (or `env_file`) without overriding variables already set
    in the process environment, then build a fresh Settings.
    """
    path = Path(env_file) if env_file is not None else Path.cwd() / ".env"
    if path.exists():
        load_dotenv(path, override=False)
    return Settings()
