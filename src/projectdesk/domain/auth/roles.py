"""User roles inside an organization workspace."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Supported user roles."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"
