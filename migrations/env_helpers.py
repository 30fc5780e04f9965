"""Database URL helpers for Alembic migrations.

The app connects with whatever DATABASE_URL psycopg2 accepts (URL or libpq
key=value DSN); SQLAlchemy needs a URL. Kept apart from env.py so they can be
tested without an alembic context.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlparse, urlunparse

from psycopg2.extensions import parse_dsn

_DRIVER_PREFIX = "postgresql+psycopg2://"


def dsn_to_url(dsn: str) -> str:
    """Convert a libpq key=value DSN into a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and goes into the
    query string.
    """
    params = parse_dsn(dsn)

    password = params.get("password") or os.environ.get("DB_PASSWORD", "")
    user = quote_plus(params.get("user", ""))
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")
    port = params.get("port", "5432")

    credentials = f"{user}:{quote_plus(password)}" if password else user

    if host.startswith("/"):
        return f"{_DRIVER_PREFIX}{credentials}@/{dbname}?host={quote_plus(host)}"
    return f"{_DRIVER_PREFIX}{credentials}@{host}:{port}/{dbname}"


def _normalize_url(url: str) -> str:
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            url = _DRIVER_PREFIX + url[len(scheme):]
            break

    db_password = os.environ.get("DB_PASSWORD", "")
    parsed = urlparse(url)
    if db_password and not parsed.password:
        netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(db_password)}@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        url = urlunparse(parsed._replace(netloc=netloc))
    return url


def get_database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL (+ DB_PASSWORD when the DSN has none)."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" in url:
        return _normalize_url(url)
    return dsn_to_url(url)
