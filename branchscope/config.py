"""
BranchScope — Configuration System

All configuration is Pydantic-validated and loaded from:
1. a YAML file (defaults)
2. Environment variables (overrides, ``BRANCHSCOPE_`` prefix)

Every tunable parameter of the engine lives here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


class AnalysisConfig(BaseModel):
    # Check that no two emitted branch entries share a discriminator.
    # A violation aborts the unit with DiscriminatorCollisionError.
    verify_discriminators: bool = True
    # Walk order used when emitting branch entries.
    branch_order: Literal["pre", "post"] = "post"
    # Log every construct kind that falls back to the generic node.
    warn_unknown_kinds: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["console", "json"] = "console"
    # Console renderer only; turn off when output is captured to a file.
    colors: bool = True


class BranchScopeConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="BRANCHSCOPE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> BranchScopeConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    overrides: dict[str, Any] = {}
    if level := os.environ.get("BRANCHSCOPE_LOGGING__LEVEL"):
        overrides.setdefault("logging", {})["level"] = level
    if fmt := os.environ.get("BRANCHSCOPE_LOGGING__FORMAT"):
        overrides.setdefault("logging", {})["format"] = fmt
    if verify := os.environ.get("BRANCHSCOPE_ANALYSIS__VERIFY_DISCRIMINATORS"):
        overrides.setdefault("analysis", {})["verify_discriminators"] = (
            verify.lower() in ("true", "1", "yes")
        )
    if order := os.environ.get("BRANCHSCOPE_ANALYSIS__BRANCH_ORDER"):
        overrides.setdefault("analysis", {})["branch_order"] = order

    return BranchScopeConfig(**_deep_merge(raw, overrides))
