"""Typed repositories over the ORM models."""

from app.repositories.group import GroupRecord, GroupRepository
from app.repositories.user import UserRecord, UserRepository

__all__ = ["GroupRecord", "GroupRepository", "UserRecord", "UserRepository"]
