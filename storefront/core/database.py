import ssl
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool


# Base class for models (Tables)
class Base(DeclarativeBase):
    pass


def normalize_database_url(database_url: str) -> str:
    """
    Rewrite a Supabase/Postgres connection string for asyncpg.

    asyncpg fails if it sees "sslmode" in the URL, and needs the
    postgresql+asyncpg scheme.
    """
    if "?sslmode=" in database_url:
        print(" [-] Cleaning URL parameters (removing sslmode)...")
        database_url = database_url.split("?sslmode=")[0]

    for scheme in ("postgres://", "postgresql://"):
        if database_url.startswith(scheme):
            print(" [-] Updating protocol to postgresql+asyncpg...")
            return "postgresql+asyncpg://" + database_url[len(scheme):]
    return database_url


def create_engine(database_url: str, command_timeout: float = 10.0) -> AsyncEngine:
    """
    Create the async engine for the Supabase Postgres database.

    Args:
        database_url (str): DATABASE_URL as given by Supabase
        command_timeout (float): Seconds before a statement is abandoned

    Returns:
        AsyncEngine: Engine with SSL enabled for remote hosts
    """
    print("\n" + "=" * 60)
    print(" >> INITIALIZING DATABASE CONNECTION")
    print("-" * 60)

    if not database_url:
        print(" [!] ERROR: DATABASE_URL not found in environment variables.")
        print("=" * 60 + "\n")
        raise ValueError("DATABASE_URL is missing")

    database_url = normalize_database_url(database_url)

    # Decide if SSL should be used (remote) or not (local/docker)
    host = urlparse(database_url).hostname or ""
    use_ssl = host not in ("db", "localhost", "127.0.0.1")

    connect_args = {"command_timeout": command_timeout}

    if use_ssl:
        print(" [-] Creating secure SSL context (remote DB)...")
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ssl_context
    else:
        print(" [-] Local/Docker DB detected, SSL disabled.")

    print(" [-] Creating async engine...")
    engine = create_async_engine(
        database_url,
        echo=False,
        connect_args=connect_args,
        poolclass=NullPool,  # Supabase pooler does the pooling
    )

    print(" >> DATABASE CONFIGURATION COMPLETE")
    print("=" * 60 + "\n")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, expire_on_commit=False)
