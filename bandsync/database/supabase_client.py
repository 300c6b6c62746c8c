from supabase import create_client, Client
from bandsync.config.settings import settings
from bandsync.database.document_store import DocumentStore
from bandsync.database.supabase_store import SupabaseDocumentStore


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None
    _store: SupabaseDocumentStore = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Use in background workers."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client or cls.get_client()

    @classmethod
    def get_store(cls) -> SupabaseDocumentStore:
        if cls._store is None:
            cls._store = SupabaseDocumentStore(
                cls.get_service_client(),
                max_transaction_attempts=settings.transaction_max_attempts,
                poll_interval=settings.listener_poll_interval,
            )
        return cls._store

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._service_client = None
        cls._store = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_document_store() -> DocumentStore:
    return SupabaseClient.get_store()
