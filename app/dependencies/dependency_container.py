import os

from .api.summarization_base_class import SummarizationBaseClass
from .api.supabase_base_class import SupabaseBaseClass
from .api.supabase_factory_base_class import SupabaseFactoryBaseClass
from .fake.fake_summarization_client import FakeSummarizationClient
from .fake.fake_supabase_client import FakeSupabaseClient
from .fake.fake_supabase_client_factory import FakeSupabaseClientFactory
from .implementation.summarization_client import SummarizationClient
from .implementation.supabase_client_factory import SupabaseClientFactory
from ..internal.schemas import TESTING_ENVIRONMENT

class DependencyContainer:
    def __init__(self):
        self._environment = os.environ.get("ENVIRONMENT")
        self._testing_environment = (self._environment == TESTING_ENVIRONMENT)
        self._supabase_client_factory = None
        self._summarization_client = None

    def inject_supabase_client_factory(self) -> SupabaseFactoryBaseClass:
        if self._supabase_client_factory is None:
            if self._testing_environment:
                self._supabase_client_factory = FakeSupabaseClientFactory(
                    fake_supabase_admin_client=FakeSupabaseClient(),
                    fake_supabase_user_client=FakeSupabaseClient(),
                )
            else:
                self._supabase_client_factory = SupabaseClientFactory(environment=self._environment)
        return self._supabase_client_factory

    def inject_summarization_client(self) -> SummarizationBaseClass:
        if self._summarization_client is None:
            self._summarization_client = FakeSummarizationClient() if self._testing_environment else SummarizationClient()
        return self._summarization_client

dependency_container = DependencyContainer()
