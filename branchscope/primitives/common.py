"""
BranchScope — Common Primitives

Shared base classes and utilities used across the coverage engine.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


# ─── Base Models ──────────────────────────────────────────────────


class ScopeBaseModel(BaseModel):
    """Base model for all BranchScope data structures."""

    model_config = {"populate_by_name": True, "from_attributes": True}


class Timestamped(ScopeBaseModel):
    """Mixin for models with creation timestamps."""

    started_at: datetime = Field(default_factory=utc_now)


class Identified(ScopeBaseModel):
    """Mixin for models with ULID IDs."""

    run_id: str = Field(default_factory=new_id)
