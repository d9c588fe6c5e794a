"""
Store factory – switch key-value backend from config (lazy env version)
======================================================================

This module centralizes selection of the store backend (in-memory vs PostgreSQL)
so the rest of the app can stay ignorant of where cells live.

- Reads environment **at call time** to avoid stale values in tests.
- Imports the PostgreSQL backend **only if** the selected backend is "postgres".

Environment variables
---------------------
- LINKTRAIL_STORE_BACKEND: "memory" (default) or "postgres"
- LINKTRAIL_DB_DSN:        DSN string if backend=="postgres"
- LINKTRAIL_TABLE_NAME:    cell table name (default "url_shortener_cells")
"""

import logging
import os
from typing import Optional

from linktrail.storage.base import BaseKeyValueStore
from linktrail.storage.memory_store import MemoryKeyValueStore

logger = logging.getLogger(__name__)


def get_store(backend: Optional[str] = None, **kwargs) -> BaseKeyValueStore:
    """
    Return a key-value store based on configuration.

    Parameters
    ----------
    backend : str, optional
        "memory" (default) or "postgres". If omitted, reads LINKTRAIL_STORE_BACKEND.
    kwargs : dict
        Extra args for the backend. For postgres: dsn="...", table="...".

    Returns
    -------
    BaseKeyValueStore
    """
    be = (backend or os.getenv("LINKTRAIL_STORE_BACKEND", "memory")).strip().lower()
    logger.info("Selected store backend: %r", be)

    if be == "memory":
        return MemoryKeyValueStore()

    if be == "postgres":
        dsn = kwargs.get("dsn") or os.getenv("LINKTRAIL_DB_DSN", "")
        if not dsn:
            raise ValueError("DB_DSN is required for postgres backend (env LINKTRAIL_DB_DSN)")
        table = kwargs.get("table") or os.getenv("LINKTRAIL_TABLE_NAME", "url_shortener_cells")
        # Local import to avoid hard dependency when not using postgres
        from linktrail.storage.db_store import PostgresKeyValueStore

        return PostgresKeyValueStore(dsn=dsn, table=table)

    raise ValueError(f"Unknown store backend: {be!r}")
