# store.py
"""
Generic row store over named tables.

The mappers only ever talk to this class: select/insert/update/delete against
a table name and a dict of column values. Table definitions come from the
SQLAlchemy metadata (see models.py), so the same code works for the sqlite
file used in development and the hosted Postgres instance.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError


class StoreError(Exception):
    """Raised when the backing database rejects or fails a statement."""


@dataclass(frozen=True)
class StoreConfig:
    url: str
    user: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_env(cls):
        url = os.environ.get('DATABASE_URL') or os.environ.get('STORE_URL') or 'sqlite:///transport.db'
        return cls(url=url, user=os.environ.get('STORE_USER'), password=os.environ.get('STORE_PASSWORD'))

    def database_uri(self) -> str:
        """Endpoint URL with the credentials folded in, as SQLAlchemy expects it."""
        url = make_url(self.url)
        if self.user:
            url = url.set(username=self.user)
        if self.password:
            url = url.set(password=self.password)
        return url.render_as_string(hide_password=False)


class RowStore:
    def __init__(self, session, metadata):
        self.session = session
        self.metadata = metadata

    def _table(self, name):
        try:
            return self.metadata.tables[name]
        except KeyError:
            raise StoreError(f"Unknown table '{name}'")

    def _execute(self, stmt, commit=False):
        try:
            result = self.session.execute(stmt)
            if commit:
                self.session.commit()
            return result
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(str(e)) from e

    def select(self, table: str, where: Optional[Dict] = None, where_in: Optional[Dict[str, Iterable]] = None,
               order_by: Iterable[str] = ()) -> List[dict]:
        """Rows matching every equality/membership filter. A leading '-' in order_by means descending."""
        t = self._table(table)
        stmt = select(t)
        try:
            for col, value in (where or {}).items():
                stmt = stmt.where(t.c[col] == value)
            for col, values in (where_in or {}).items():
                stmt = stmt.where(t.c[col].in_(list(values)))
            for col in order_by:
                stmt = stmt.order_by(t.c[col[1:]].desc() if col.startswith('-') else t.c[col].asc())
        except KeyError as e:
            raise StoreError(f"Unknown column {e} on '{table}'")
        return [dict(row) for row in self._execute(stmt).mappings().all()]

    def get(self, table: str, row_id: str) -> Optional[dict]:
        rows = self.select(table, where={'id': row_id})
        return rows[0] if rows else None

    def insert(self, table: str, values: dict) -> dict:
        """Inserts one row and returns it as stored, including the generated id."""
        t = self._table(table)
        values = dict(values)
        if not values.get('id'):
            values['id'] = str(uuid.uuid4())
        self._execute(insert(t).values(**values), commit=True)
        logging.info(f"Inserted row {values['id']} into '{table}'")
        return self.get(table, values['id'])

    def update(self, table: str, row_id: str, values: dict) -> Optional[dict]:
        """Updates one row by id. Returns None when no row has that id."""
        t = self._table(table)
        result = self._execute(update(t).where(t.c.id == row_id).values(**values), commit=True)
        if result.rowcount == 0:
            return None
        return self.get(table, row_id)

    def delete(self, table: str, row_id: str) -> int:
        t = self._table(table)
        result = self._execute(delete(t).where(t.c.id == row_id), commit=True)
        return result.rowcount
