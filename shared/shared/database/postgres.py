import os
import ssl
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

AsyncSessionFactory = async_sessionmaker[AsyncSession]

# Pool knobs that only apply to server databases (asyncpg).
_POOL_DEFAULTS: dict[str, Any] = {
    "pool_pre_ping": True,
    "pool_size": 5,
    "max_overflow": 10,
    "pool_recycle": 3600,
}


def _ssl_connect_args() -> dict[str, Any]:
    """asyncpg ``connect_args`` derived from DATABASE_SSL.

    ``disable`` or unset: plain TCP. ``verify-full``: RDS_SSL_CERT must point
    at the CA bundle. Anything else: encrypted without certificate checks.
    """
    mode = os.environ.get("DATABASE_SSL", "").strip().lower()
    if mode in ("", "disable"):
        return {}

    cert_path = os.environ.get("RDS_SSL_CERT", "")
    has_cert = bool(cert_path) and Path(cert_path).exists()
    if mode == "verify-full" and not has_cert:
        raise RuntimeError("DATABASE_SSL=verify-full requires RDS_SSL_CERT to point at a CA bundle")
    if has_cert:
        return {"ssl": ssl.create_default_context(cafile=cert_path)}
    return {"ssl": "require"}


def get_async_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # aiosqlite has no connection pool to size and no SSL.
        return create_async_engine(
            database_url, **{k: v for k, v in kwargs.items() if k not in _POOL_DEFAULTS}
        )

    options = {**_POOL_DEFAULTS, **kwargs}
    connect_args = {**_ssl_connect_args(), **options.pop("connect_args", {})}
    if connect_args:
        options["connect_args"] = connect_args
    return create_async_engine(database_url, **options)


def get_async_session_factory(
    database_url: str,
    *,
    expire_on_commit: bool = False,
    **engine_kwargs: Any,
) -> AsyncSessionFactory:
    engine = get_async_engine(database_url, **engine_kwargs)
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=expire_on_commit,
        autoflush=False,
    )
