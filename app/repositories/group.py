"""Group store."""

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import NoReturn

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import PersistenceError
from app.models.group import Group

logger = logging.getLogger("vidjot")


@dataclass(frozen=True)
class GroupRecord:
    name: str
    group_id: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def new_group_id() -> str:
    return uuid.uuid4().hex


class GroupRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_all(self) -> list[GroupRecord]:
        try:
            groups = self.db.query(Group).order_by(Group.id).all()
        except SQLAlchemyError as e:
            self._fail("list groups", e)
        return [GroupRecord(name=g.name, group_id=g.group_id) for g in groups]

    def create(self, name: str) -> GroupRecord:
        group = Group(name=name, group_id=new_group_id())
        try:
            self.db.add(group)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail(f"create group {name!r}", e)
        return GroupRecord(name=group.name, group_id=group.group_id)

    def _fail(self, action: str, error: SQLAlchemyError) -> NoReturn:
        self.db.rollback()
        logger.error("Failed to %s: %s", action, error)
        raise PersistenceError() from error
