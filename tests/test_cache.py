"""Tests for the local catalog cache."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_datasets, make_tables

from bqui.cache import CatalogCache, default_cache_dir
from bqui.models import CacheKind


class Clock:
    """A clock the test can move forward."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def cache(engine, clock) -> CatalogCache:
    return CatalogCache(engine=engine, ttl=timedelta(hours=1), clock=clock)


class TestCatalogCache:
    """Tests for CatalogCache."""

    def test_miss(self, cache) -> None:
        """Test an empty cache has nothing."""
        assert cache.get_datasets("proj") is None

    def test_datasets_round_trip(self, cache) -> None:
        """Test stored datasets read back equal."""
        datasets = make_datasets("a", "b")
        cache.put_datasets("proj", datasets)
        assert cache.get_datasets("proj") == datasets
        assert cache.get_datasets("other") is None

    def test_schema_round_trip(self, cache, schema) -> None:
        """Test nested schemas survive storage."""
        cache.put_schema("proj", "ds", "users", schema)
        assert cache.get_schema("proj", "ds", "users") == schema

    def test_overwrite(self, cache) -> None:
        """Test writing a key twice keeps the latest value."""
        cache.put_tables("proj", "ds", make_tables("ds", "old"))
        cache.put_tables("proj", "ds", make_tables("ds", "new"))
        assert [t.id for t in cache.get_tables("proj", "ds")] == ["new"]
        assert len(cache.keys()) == 1

    def test_expiry(self, cache, clock) -> None:
        """Test entries older than the TTL read as missing."""
        cache.put_datasets("proj", make_datasets("a"))
        clock.now += timedelta(minutes=59)
        assert cache.get_datasets("proj") is not None
        clock.now += timedelta(minutes=2)
        assert cache.get_datasets("proj") is None

    def test_clear_dataset(self, cache, schema) -> None:
        """Test clearing a dataset drops its tables and schemas only."""
        cache.put_datasets("proj", make_datasets("ds", "other"))
        cache.put_tables("proj", "ds", make_tables("ds", "users"))
        cache.put_schema("proj", "ds", "users", schema)
        cache.put_tables("proj", "other", make_tables("other", "t"))
        assert cache.clear_dataset("proj", "ds") == 2
        assert sorted(key[0] for key in cache.keys()) == [CacheKind.DATASETS.value, CacheKind.TABLES.value]

    def test_clear_by_kind(self, cache, schema) -> None:
        """Test each clear removes only its own kind of entry."""
        cache.put_datasets("proj", make_datasets("ds"))
        cache.put_tables("proj", "ds", make_tables("ds", "users"))
        cache.put_schema("proj", "ds", "users", schema)
        assert cache.clear_schema("proj", "ds", "users") == 1
        assert cache.clear_tables("proj", "ds") == 1
        assert cache.clear_datasets("proj") == 1
        assert cache.keys() == []

    def test_clear_all(self, cache) -> None:
        """Test clear_all empties the cache."""
        cache.put_datasets("a", make_datasets("x", project_id="a"))
        cache.put_datasets("b", make_datasets("y", project_id="b"))
        assert cache.clear_all() == 2
        assert cache.get_datasets("a") is None

    def test_file_cache(self, tmp_path) -> None:
        """Test a file-backed cache is created on demand."""
        path = tmp_path / "nested" / "cache.db"
        cache = CatalogCache(path=path)
        cache.put_datasets("proj", make_datasets("a"))
        assert path.exists()
        assert CatalogCache(path=path).get_datasets("proj") == make_datasets("a")


class TestDefaultCacheDir:
    """Tests for default_cache_dir."""

    def test_xdg(self, monkeypatch, tmp_path) -> None:
        """Test XDG_CACHE_HOME wins when set."""
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert default_cache_dir() == tmp_path / "bqui"
