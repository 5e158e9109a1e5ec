"""Chat group model."""

from sqlalchemy import Column, Integer, String

from app.database import Base


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), nullable=False)
    group_id = Column(String(64), unique=True, nullable=False, index=True)
