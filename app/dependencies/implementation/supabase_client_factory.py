import os

from supabase import AsyncClient, acreate_client

from .supabase_client import SupabaseClient
from ...dependencies.api.supabase_factory_base_class import SupabaseFactoryBaseClass

class SupabaseClientFactory(SupabaseFactoryBaseClass):

    def __init__(self, environment: str):
        self.environment = environment
        self._admin_client = None

    async def supabase_admin_client(self) -> SupabaseClient:
        if self._admin_client is not None:
            return self._admin_client

        try:
            key: str = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
            url: str = os.environ.get("SUPABASE_URL")
            self._admin_client = SupabaseClient(client=await acreate_client(url, key),
                                                is_admin=True)
            return self._admin_client
        except Exception as e:
            raise Exception(e) from e

    async def supabase_user_client(self,
                                   access_token: str,
                                   refresh_token: str) -> SupabaseClient:
        try:
            key: str = os.environ.get("SUPABASE_ANON_KEY")
            url: str = os.environ.get("SUPABASE_URL")
            client: AsyncClient = await acreate_client(url, key)
            await client.auth.set_session(access_token=access_token,
                                          refresh_token=refresh_token)
            return SupabaseClient(client=client,
                                  is_admin=False)
        except Exception as e:
            raise Exception(e) from e
