"""
Declarative base shared by every Restaurant POS table.

Each table gets an integer ``id``, a string ``uuid`` and UTC
``created_at``/``updated_at`` stamps. ``to_dict`` gives the column values
in a JSON-ready form; models extend it with derived and related fields.
"""

import uuid as uuid_lib
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base, validates

from restaurant_pos.utils.datetime_utils import as_utc, utc_now

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model.

    Attributes:
        id: Integer primary key
        uuid: Random identifier, stored as a 36-character string
        created_at: When the row was inserted (UTC)
        updated_at: When the row was last written (UTC)
    """

    __abstract__ = True

    # Bookkeeping columns left out of to_dict()
    hidden_columns = ("version_id",)

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Column values keyed by column name.

        Datetimes become ISO strings with an explicit UTC offset, whether they
        were just assigned or read back naive from SQLite.

        Args:
            include_relationships: Ignored here; models that expose related
                fields (product name, recipe name) honour it

        Returns:
            Dictionary of visible column values
        """
        result = {}
        for column in self.__table__.columns:
            if column.name in self.hidden_columns:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                value = as_utc(value).isoformat()
            result[column.name] = value
        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        if value is None:
            return value
        return str(value)
