"""Async SQLAlchemy engine and session factory.

Only touched when ``TENANT_STORE_BACKEND=database``; creating the engine
does not open a connection.
"""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ghl_gateway.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=False,
)

async_session = async_sessionmaker(engine, expire_on_commit=False)
