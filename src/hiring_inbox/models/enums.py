"""Shared enums for Hiring Inbox models."""

from __future__ import annotations

from enum import Enum


class Side(str, Enum):
    DEVELOPER = "DEVELOPER"
    BUSINESS = "BUSINESS"
