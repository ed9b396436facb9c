from storefront.core import config
from storefront.repositories.base import StorefrontStore
from storefront.repositories.memory_store import MemoryStore


def build_store(backend: str | None = None) -> StorefrontStore:
    """
    Instantiate the configured persistence backend.

    Args:
        backend (str, optional): 'supabase', 'sheets' or 'memory'; defaults to STORE_BACKEND

    Returns:
        StorefrontStore: The store every request will use

    Raises:
        ValueError: If the backend is unknown or its settings are missing
    """
    backend = (backend or config.STORE_BACKEND).strip().lower()

    if backend == "supabase":
        from storefront.repositories.supabase_store import SupabaseStore
        return SupabaseStore.from_url(config.DATABASE_URL, command_timeout=config.DB_COMMAND_TIMEOUT)

    if backend == "sheets":
        from storefront.repositories.sheets_store import SheetsStore
        return SheetsStore(config.GOOGLE_SHEETS_SCRIPT_URL, timeout=config.SHEETS_TIMEOUT)

    if backend == "memory":
        print("[WARNING] Using in-memory store - data is lost on restart")
        return MemoryStore()

    raise ValueError(f"Unknown STORE_BACKEND '{backend}'")
