from fastapi import Header

from ..security.security_schema import STORE_TOKENS_MISSING_ERROR
from ...dependencies.dependency_container import SupabaseBaseClass, dependency_container

async def user_supabase_client(
    store_access_token: str | None,
    store_refresh_token: str | None,
) -> SupabaseBaseClass:
    """
    Builds a Supabase client scoped to the user that owns the store tokens, so row-level security applies.
    Raises a 401 when either token is missing.
    """
    if len(store_access_token or '') == 0 or len(store_refresh_token or '') == 0:
        raise STORE_TOKENS_MISSING_ERROR

    supabase_client_factory = dependency_container.inject_supabase_client_factory()
    return await supabase_client_factory.supabase_user_client(
        access_token=store_access_token,
        refresh_token=store_refresh_token
    )

async def get_user_supabase_client(
    store_access_token: str | None = Header(None, description="Supabase access token"),
    store_refresh_token: str | None = Header(None, description="Supabase refresh token"),
) -> SupabaseBaseClass:
    return await user_supabase_client(
        store_access_token=store_access_token,
        store_refresh_token=store_refresh_token
    )
