"""Tests for the context cache and its in-process store."""
from __future__ import annotations

from datetime import datetime
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tenantauth.authz.cache import ContextCache, MemoryCacheStore, RedisCacheStore
from tenantauth.authz.errors import CacheError
from tenantauth.authz.loader import ContextLoader
from tenantauth.authz.store import AssignmentRecord, RoleRecord, UserSnapshot, UserStatus


def test_put_then_get(context_cache, make_context):
    ctx = make_context(user_id=4, permissions={"booking.read"})

    assert context_cache.put(ctx) is True
    assert context_cache.get(4) == ctx
    assert context_cache.get(5) is None


def test_keys_are_prefixed(cache_store, make_context):
    cache = ContextCache(cache_store, ttl_seconds=60, prefix="t:ctx:")
    cache.put(make_context(user_id=9))

    assert cache.key_for(9) == "t:ctx:9"
    assert cache_store.get("t:ctx:9") is not None


def test_invalidate_removes_entry(context_cache, make_context):
    context_cache.put(make_context(user_id=1))
    context_cache.put(make_context(user_id=2))

    assert context_cache.invalidate_many([1, 2, 2]) is True
    assert context_cache.get(1) is None
    assert context_cache.get(2) is None
    # invalidating a missing entry is not an error
    assert context_cache.invalidate(3) is True


def test_ttl_must_be_positive(cache_store):
    with pytest.raises(ValueError):
        ContextCache(cache_store, ttl_seconds=0)


def test_memory_store_expires_entries(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr("tenantauth.authz.cache.time.monotonic", lambda: clock[0])
    store = MemoryCacheStore()

    store.set("k", "v", ttl_seconds=10)
    assert store.get("k") == "v"

    clock[0] += 10
    assert store.get("k") is None
    assert len(store) == 0


def test_malformed_entry_is_a_miss(cache_store, context_cache, make_context):
    cache_store.set(context_cache.key_for(1), "{not json", 60)
    assert context_cache.get(1) is None

    raw = make_context(user_id=1).to_dict()
    raw["data_scope"] = "EVERYTHING"
    cache_store.set(context_cache.key_for(1), json.dumps(raw), 60)
    assert context_cache.get(1) is None


def test_entry_under_wrong_key_is_a_miss(cache_store, context_cache, make_context):
    cache_store.set(context_cache.key_for(1), json.dumps(make_context(user_id=2).to_dict()), 60)

    assert context_cache.get(1) is None


def test_backend_failures_degrade(make_context, caplog):
    cache = ContextCache(_BrokenStore())

    assert cache.get(1) is None
    assert cache.put(make_context(user_id=1)) is False
    assert cache.invalidate(1) is False
    assert "invalidation failed" in caplog.text


def test_redis_store_wraps_client_errors():
    store = RedisCacheStore(_FailingRedis())

    with pytest.raises(CacheError):
        store.get("k")
    with pytest.raises(CacheError):
        store.set("k", "v", 10)
    with pytest.raises(CacheError):
        store.delete("k")


def test_redis_store_treats_undecodable_values_as_failures():
    with pytest.raises(CacheError):
        RedisCacheStore(_BinaryRedis(b"\xff\xfe not utf-8")).get("k")
    with pytest.raises(CacheError):
        RedisCacheStore(_DecodingRedis()).get("k")


def test_undecodable_redis_entry_falls_back_to_store(make_context):
    ctx = make_context(user_id=4, permissions={"booking.read"})
    loader = ContextLoader(_FixedContextStore(ctx), ContextCache(RedisCacheStore(_BinaryRedis(b"\xff\xfe"))))

    assert loader.load(4) == ctx


def test_redis_store_passes_values_through():
    client = _DictRedis()
    store = RedisCacheStore(client)

    store.set("k", "v", 30)

    assert store.get("k") == "v"
    assert client.ttls["k"] == 30
    store.delete("k")
    assert store.get("k") is None


class _BrokenStore:
    def get(self, key):
        raise CacheError("down")

    def set(self, key, value, ttl_seconds):
        raise CacheError("down")

    def delete(self, key):
        raise CacheError("down")


class _FailingRedis:
    def get(self, key):
        raise RedisConnectionError("refused")

    def setex(self, key, ttl, value):
        raise RedisConnectionError("refused")

    def delete(self, key):
        raise RedisConnectionError("refused")


class _DictRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        value = self.data.get(key)
        return None if value is None else value.encode("utf-8")

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self.data.pop(key, None)


class _BinaryRedis(_DictRedis):
    def __init__(self, raw):
        super().__init__()
        self.raw = raw

    def get(self, key):
        return self.raw


class _DecodingRedis(_DictRedis):
    def get(self, key):
        return b"\xff".decode("utf-8")


class _FixedContextStore:
    """Answers the loader's single read with a snapshot reducing to ``context``."""

    def __init__(self, context):
        self.context = context

    def get_user_with_assignments(self, user_id):
        role = RoleRecord(id=1, name=self.context.primary_role_name, data_scope=self.context.data_scope)
        assignment = AssignmentRecord(
            role=role,
            permission_codes=self.context.permissions,
            menu_codes=self.context.menu_codes,
            assigned_at=datetime(2024, 1, 1),
        )
        return UserSnapshot(
            user_id=self.context.user_id,
            status=UserStatus.ACTIVE,
            organization_id=self.context.organization_id,
            tutor_id=self.context.tutor_id,
            assignments=(assignment,),
        )
