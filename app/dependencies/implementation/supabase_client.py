from typing import Any, Optional

from postgrest.exceptions import APIError
from supabase import AsyncClient

from ...dependencies.api.supabase_base_class import SupabaseBaseClass, UniqueViolationError

POSTGRES_UNIQUE_VIOLATION_CODE = "23505"

class SupabaseClient(SupabaseBaseClass):

    def __init__(self,
                 client: AsyncClient,
                 is_admin: bool = False):
        self.client = client
        self.is_admin = is_admin

    async def insert(self,
                     payload: dict[str, Any],
                     table_name: str) -> dict:
        try:
            response = await self.client.table(table_name).insert(payload).execute()
            return response.model_dump()
        except APIError as e:
            self._raise_for_api_error(e)
        except Exception as e:
            raise Exception(e) from e

    async def upsert(self,
                     payload: dict[str, Any],
                     on_conflict: str,
                     table_name: str) -> dict:
        try:
            response = await self.client.table(table_name).upsert(json=payload, on_conflict=on_conflict).execute()
            return response.model_dump()
        except APIError as e:
            self._raise_for_api_error(e)
        except Exception as e:
            raise Exception(e) from e

    async def update(self,
                     payload: dict[str, Any],
                     filters: dict[str, Any],
                     table_name: str) -> dict:
        try:
            update_operation = self._apply_filters(self.client.table(table_name).update(payload), filters)
            response = await update_operation.execute()
            return response.model_dump()
        except APIError as e:
            self._raise_for_api_error(e)
        except Exception as e:
            raise Exception(e) from e

    async def select(self,
                     fields: str,
                     filters: dict[str, Any],
                     table_name: str,
                     limit: Optional[int] = None,
                     order_column: Optional[str] = None,
                     order_ascending: bool = False) -> dict:
        try:
            select_operation = self._apply_filters(self.client.from_(table_name).select(fields), filters)

            if len(order_column or '') > 0:
                select_operation = select_operation.order(order_column, desc=(not order_ascending))

            if limit is not None:
                select_operation = select_operation.limit(limit)

            response = await select_operation.execute()
            return response.model_dump()
        except APIError as e:
            self._raise_for_api_error(e)
        except Exception as e:
            raise Exception(e) from e

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
        data = response['data']
        return data[0] if len(data) > 0 else None

    async def select_within_range(self,
                                  fields: str,
                                  filters: dict[str, Any],
                                  table_name: str,
                                  range_start: int,
                                  range_end: int,
                                  order_column: str,
                                  order_ascending: bool = False) -> dict:
        try:
            select_operation = self._apply_filters(self.client.from_(table_name).select(fields), filters)
            select_operation = select_operation.order(order_column, desc=(not order_ascending))
            response = await select_operation.range(range_start, range_end).execute()
            return response.model_dump()
        except APIError as e:
            self._raise_for_api_error(e)
        except Exception as e:
            raise Exception(e) from e

    async def delete(self,
                     filters: dict[str, Any],
                     table_name: str) -> dict:
        try:
            delete_operation = self._apply_filters(self.client.table(table_name).delete(), filters)
            response = await delete_operation.execute()
            return response.model_dump()
        except APIError as e:
            self._raise_for_api_error(e)
        except Exception as e:
            raise Exception(e) from e

    # Private

    def _apply_filters(self, operation, filters: dict[str, Any]):
        for key, value in filters.items():
            if value is None:
                operation = operation.is_(key, "null")
            else:
                operation = operation.eq(key, value)
        return operation

    def _raise_for_api_error(self, error: APIError):
        if error.code == POSTGRES_UNIQUE_VIOLATION_CODE:
            raise UniqueViolationError(error.message) from error
        raise Exception(error.message) from error
