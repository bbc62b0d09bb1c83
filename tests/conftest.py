"""
Shared fixtures: an in-memory sqlite catalog with the four configured
sources, the alias store on top of it, and a resolver wired to both.
"""

import os

# app.py opens the database at import time; keep it off disk.
os.environ.setdefault("QUOTE_DB_PATH", ":memory:")

import pytest

from utils import data_loader as dl
from utils.db import open_database
from utils.errors import AliasWriteFailed
from services.alias_store import AliasStore
from services.catalog_service import CatalogService, load_sources
from services.resolver_service import MatchSettings, ResolverService


class RecordingAliasStore(AliasStore):
    """Alias store that remembers every upsert and can be told to fail."""

    def __init__(self, db, fail_writes=False):
        super().__init__(db)
        self.fail_writes = fail_writes
        self.writes = []

    def upsert(self, key, canonical_name):
        self.writes.append((key, canonical_name))
        if self.fail_writes:
            raise AliasWriteFailed("duplicate key (simulated race)")
        super().upsert(key, canonical_name)


@pytest.fixture
def source_rows():
    return {row["id"]: row for row in dl.get_sources()}


@pytest.fixture
def db():
    database = open_database(":memory:", dl.get_sources())
    yield database
    database.close()


@pytest.fixture
def load_rows(db, source_rows):
    """load_rows("trans_ocean", [{"name": ..., "unit": ..., "rate": ...}])"""

    def _load(source_id, rows):
        return db.insert_catalog_rows(source_rows[source_id], rows)

    return _load


@pytest.fixture
def catalog(db):
    return CatalogService(db, load_sources())


@pytest.fixture
def aliases(db):
    return RecordingAliasStore(db)


@pytest.fixture
def settings():
    return MatchSettings()


@pytest.fixture
def resolver(catalog, aliases, settings):
    return ResolverService(catalog, aliases, settings)


@pytest.fixture
def failing_aliases(db):
    return RecordingAliasStore(db, fail_writes=True)
