import copy
import uuid

from typing import Any, Optional

from ..api.supabase_base_class import SupabaseBaseClass, UniqueViolationError
from ...internal.schemas import (CASE_SUMMARIES_TABLE_NAME,
                                 SESSION_NOTES_TABLE_NAME)

class FakeSupabaseClient(SupabaseBaseClass):
    """
    In-memory stand-in for a Supabase client that honors filters, ordering
    (nulls first when descending, last when ascending), ranges, upsert conflict
    targets and unique constraints.
    """

    # table -> [(columns, nulls_not_distinct)]
    UNIQUE_CONSTRAINTS = {
        SESSION_NOTES_TABLE_NAME: [
            (("therapist_id", "case_id", "session_index"), True),
            (("case_id", "session_index"), False),
        ],
        CASE_SUMMARIES_TABLE_NAME: [
            (("case_id",), False),
        ],
    }

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.failing_tables: set[str] = set()
        self.invocations: list[tuple[str, str]] = []

    def seed(self, table_name: str, rows: list[dict]) -> list[dict]:
        seeded = []
        for row in rows:
            stored = dict(row)
            stored.setdefault("id", str(uuid.uuid4()))
            self._table(table_name).append(stored)
            seeded.append(copy.deepcopy(stored))
        return seeded

    def rows(self, table_name: str) -> list[dict]:
        return copy.deepcopy(self._table(table_name))

    def invocation_count(self, operation: str, table_name: str) -> int:
        return self.invocations.count((operation, table_name))

    async def insert(self,
                     payload: dict[str, Any],
                     table_name: str) -> dict:
        self._record("insert", table_name)
        row = dict(payload)
        row.setdefault("id", str(uuid.uuid4()))
        self._check_unique_constraints(table_name, row)
        self._table(table_name).append(row)
        return {"data": [copy.deepcopy(row)]}

    async def update(self,
                     payload: dict[str, Any],
                     filters: dict[str, Any],
                     table_name: str) -> dict:
        self._record("update", table_name)
        updated = []
        for row in self._table(table_name):
            if not self._matches(row, filters):
                continue
            candidate = {**row, **payload}
            self._check_unique_constraints(table_name, candidate, existing_row=row)
            row.update(payload)
            updated.append(copy.deepcopy(row))
        return {"data": updated}

    async def upsert(self,
                     payload: dict[str, Any],
                     on_conflict: str,
                     table_name: str) -> dict:
        self._record("upsert", table_name)
        conflict_columns = [column.strip() for column in on_conflict.split(",")]
        for row in self._table(table_name):
            if all(row.get(column) == payload.get(column) for column in conflict_columns):
                candidate = {**row, **payload}
                self._check_unique_constraints(table_name, candidate, existing_row=row)
                row.update(payload)
                return {"data": [copy.deepcopy(row)]}

        row = dict(payload)
        row.setdefault("id", str(uuid.uuid4()))
        self._check_unique_constraints(table_name, row)
        self._table(table_name).append(row)
        return {"data": [copy.deepcopy(row)]}

    async def select(self,
                     fields: str,
                     filters: dict[str, Any],
                     table_name: str,
                     limit: Optional[int] = None,
                     order_column: Optional[str] = None,
                     order_ascending: bool = False) -> dict:
        self._record("select", table_name)
        rows = self._filtered_and_sorted(table_name, filters, order_column, order_ascending)
        if limit is not None:
            rows = rows[:limit]
        return {"data": [self._project(row, fields) for row in rows]}

    async def select_single(self,
                            fields: str,
                            filters: dict[str, Any],
                            table_name: str,
                            order_column: Optional[str] = None,
                            order_ascending: bool = False) -> Optional[dict]:
        response = await self.select(fields=fields,
                                     filters=filters,
                                     table_name=table_name,
                                     limit=1,
                                     order_column=order_column,
                                     order_ascending=order_ascending)
        return response["data"][0] if len(response["data"]) > 0 else None

    async def select_within_range(self,
                                  fields: str,
                                  filters: dict[str, Any],
                                  table_name: str,
                                  range_start: int,
                                  range_end: int,
                                  order_column: str,
                                  order_ascending: bool = False) -> dict:
        self._record("select_within_range", table_name)
        rows = self._filtered_and_sorted(table_name, filters, order_column, order_ascending)
        return {"data": [self._project(row, fields) for row in rows[range_start:range_end + 1]]}

    async def delete(self,
                     filters: dict[str, Any],
                     table_name: str) -> dict:
        self._record("delete", table_name)
        table = self._table(table_name)
        deleted = [row for row in table if self._matches(row, filters)]
        self.tables[table_name] = [row for row in table if not self._matches(row, filters)]
        return {"data": copy.deepcopy(deleted)}

    # Private

    def _table(self, table_name: str) -> list[dict]:
        return self.tables.setdefault(table_name, [])

    def _record(self, operation: str, table_name: str):
        self.invocations.append((operation, table_name))
        if table_name in self.failing_tables:
            raise Exception(f"Fake backend failure on table {table_name}")

    def _matches(self, row: dict, filters: dict[str, Any]) -> bool:
        return all(row.get(key) == value for key, value in filters.items())

    def _filtered_and_sorted(self,
                             table_name: str,
                             filters: dict[str, Any],
                             order_column: Optional[str],
                             order_ascending: bool) -> list[dict]:
        rows = [row for row in self._table(table_name) if self._matches(row, filters)]
        if len(order_column or '') == 0:
            return rows

        non_null = [row for row in rows if row.get(order_column) is not None]
        nulls = [row for row in rows if row.get(order_column) is None]
        non_null.sort(key=lambda row: row[order_column], reverse=(not order_ascending))
        return non_null + nulls if order_ascending else nulls + non_null

    def _project(self, row: dict, fields: str) -> dict:
        columns = [column.strip() for column in fields.split(",")]
        if "*" in columns:
            return copy.deepcopy(row)
        return {column: copy.deepcopy(row.get(column)) for column in columns}

    def _check_unique_constraints(self,
                                  table_name: str,
                                  candidate: dict,
                                  existing_row: Optional[dict] = None):
        for columns, nulls_not_distinct in self.UNIQUE_CONSTRAINTS.get(table_name, []):
            values = tuple(candidate.get(column) for column in columns)
            if not nulls_not_distinct and any(value is None for value in values):
                continue

            for row in self._table(table_name):
                if row is existing_row:
                    continue
                if tuple(row.get(column) for column in columns) == values:
                    raise UniqueViolationError(
                        f"duplicate key value violates unique constraint on {table_name} ({', '.join(columns)})"
                    )
