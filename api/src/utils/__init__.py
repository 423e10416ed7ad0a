"""Utility modules for SkillPath API."""

from src.utils.dates import ensure_utc_aware


__all__ = ["ensure_utc_aware"]
