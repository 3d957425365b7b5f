from abc import ABC, abstractmethod
from typing import Any, Optional

class UniqueViolationError(Exception):
    """
    Raised when a write collides with a uniqueness constraint in the backend.
    """
    pass

class SupabaseBaseClass(ABC):

    @abstractmethod
    async def insert(self,
                     payload: dict[str, Any],
                     table_name: str) -> dict:
        """
        Inserts payload into a Supabase table, returning the stored rows under `data`.

        Arguments:
        payload – the payload to be inserted.
        table_name – the table into which the payload should be inserted.
        """
        pass

    @abstractmethod
    async def update(self,
                     payload: dict[str, Any],
                     filters: dict[str, Any],
                     table_name: str) -> dict:
        """
        Updates a Supabase table with the incoming payload and filters.
        A filter whose value is None matches rows where the column is null.

        Arguments:
        payload – the payload to be updated.
        filters – the set of filters to be applied to the table.
        table_name – the table that should be updated.
        """
        pass

    @abstractmethod
    async def upsert(self,
                     payload: dict[str, Any],
                     on_conflict: str,
                     table_name: str) -> dict:
        """
        Upserts into a Supabase table with the incoming data.

        Arguments:
        payload – the payload to be upserted.
        on_conflict – the comma-separated columns used to update the table if a conflict arises.
        table_name – the table that should be updated.
        """
        pass

    @abstractmethod
    async def select(self,
                     fields: str,
                     filters: dict[str, Any],
                     table_name: str,
                     limit: Optional[int] = None,
                     order_column: Optional[str] = None,
                     order_ascending: bool = False) -> dict:
        """
        Fetches data from a Supabase table based on the incoming params.

        Arguments:
        fields – the fields to be retrieved from a table.
        filters – the set of filters to be applied to the table.
        table_name – the table to be queried.
        limit – the optional cap for count of results to be returned.
        order_column – the optional column used for sorting.
        order_ascending – whether `order_column` should be sorted ascendingly.
        """
        pass

    @abstractmethod
    async def select_single(self,
                            fields: str,
                            filters: dict[str, Any],
                            table_name: str,
                            order_column: Optional[str] = None,
                            order_ascending: bool = False) -> Optional[dict]:
        """
        Fetches at most one row from a Supabase table. Returns None when nothing matches.

        Arguments:
        fields – the fields to be retrieved from a table.
        filters – the set of filters to be applied to the table.
        table_name – the table to be queried.
        order_column – the optional column used for sorting before picking the first row.
        order_ascending – whether `order_column` should be sorted ascendingly.
        """
        pass

    @abstractmethod
    async def select_within_range(self,
                                  fields: str,
                                  filters: dict[str, Any],
                                  table_name: str,
                                  range_start: int,
                                  range_end: int,
                                  order_column: str,
                                  order_ascending: bool = False) -> dict:
        """
        Fetches the rows between two (inclusive) offsets of an ordered selection.

        Arguments:
        fields – the fields to be retrieved from a table.
        filters – the set of filters to be applied to the table.
        table_name – the table to be queried.
        range_start – the first row offset.
        range_end – the last row offset.
        order_column – the column used for sorting.
        order_ascending – whether `order_column` should be sorted ascendingly.
        """
        pass

    @abstractmethod
    async def delete(self,
                     filters: dict[str, Any],
                     table_name: str) -> dict:
        """
        Deletes from a table name based on the incoming params.

        Arguments:
        filters – the set of filters to be applied to the table.
        table_name – the table name.
        """
        pass
