"""Severity definitions for scanner violations."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Enumerate the supported severity levels for violations."""

    ERROR = "ERROR"
    WARNING = "WARNING"
