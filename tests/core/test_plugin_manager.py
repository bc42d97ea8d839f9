"""Tests for the PluginManager class."""

import logging

import pytest

from scheck.core.finding_id import AnchorRegistry, default_registry, generate_finding_id
from scheck.core.plugin import ENTRY_POINT_GROUP, PluginError, PluginManager
from scheck.plugin import ScheckPlugin, hookimpl


class CachePlugin(ScheckPlugin):
    """A plugin contributing one extractor."""

    name = "cache-anchors"
    version = "1.0.0"
    description = "Anchors for cache invariants"

    @hookimpl
    def get_anchor_extractors(self):
        return {"CACHE.TTL": lambda finding: {"cacheName": finding.message.split()[0].lower()}}


class WebhookOverridePlugin(ScheckPlugin):
    """A plugin that collides with a built-in extractor."""

    name = "webhook-override"

    @hookimpl
    def get_anchor_extractors(self):
        return {"WEBHOOK.IDEMPOTENT": lambda finding: {"provider": "always-the-same"}}


class FakeEntryPoint:
    """Stand-in for importlib.metadata.EntryPoint."""

    def __init__(self, name, target):
        self.name = name
        self._target = target

    def load(self):
        if isinstance(self._target, Exception):
            raise self._target
        return self._target


def test_plugin_manager_creation():
    """PluginManager should initialize with empty plugin list."""
    manager = PluginManager()
    assert manager.list_plugins() == []


def test_register_plugin():
    manager = PluginManager()
    manager.register(CachePlugin())

    assert manager.list_plugins() == ["cache-anchors"]
    assert isinstance(manager.get_plugin("cache-anchors"), CachePlugin)


def test_register_duplicate_name():
    manager = PluginManager()
    manager.register(CachePlugin())

    with pytest.raises(PluginError, match="already registered"):
        manager.register(CachePlugin())


def test_register_without_name():
    class Nameless(ScheckPlugin):
        pass

    with pytest.raises(PluginError, match="must define a name"):
        PluginManager().register(Nameless())


def test_unregister_plugin():
    manager = PluginManager()
    manager.register(CachePlugin())
    manager.unregister("cache-anchors")

    assert manager.list_plugins() == []
    assert manager.get_plugin("cache-anchors") is None


def test_get_plugin_info():
    manager = PluginManager()
    manager.register(CachePlugin())

    assert manager.get_plugin_info("cache-anchors") == {
        "name": "cache-anchors",
        "version": "1.0.0",
        "description": "Anchors for cache invariants",
    }
    assert manager.get_plugin_info("missing") is None


def test_apply_registers_extractors(make_finding):
    manager = PluginManager()
    manager.register(CachePlugin())
    registry = default_registry()

    applied = manager.apply(registry)

    assert applied == ["CACHE.TTL"]
    redis = make_finding(invariant_id="CACHE.TTL", message="Redis entry has no TTL")
    memcached = make_finding(invariant_id="CACHE.TTL", message="Memcached entry has no TTL")
    assert generate_finding_id(redis, registry) != generate_finding_id(memcached, registry)


def test_apply_conflict_keeps_builtin(webhook_finding, caplog):
    logger = logging.getLogger("test.plugins")
    manager = PluginManager(logger=logger)
    manager.register(WebhookOverridePlugin())
    registry = default_registry()

    with caplog.at_level(logging.WARNING, logger="test.plugins"):
        applied = manager.apply(registry)

    assert applied == []
    assert "webhook-override" in caplog.text
    assert generate_finding_id(webhook_finding, registry) == generate_finding_id(webhook_finding)


def test_base_plugin_contributes_nothing():
    class Empty(ScheckPlugin):
        name = "empty"

    manager = PluginManager()
    manager.register(Empty())
    registry = AnchorRegistry()

    assert manager.apply(registry) == []
    assert registry.invariants() == []


def test_discover_from_entry_points(monkeypatch, caplog):
    """Working entry points are registered, failing ones are skipped."""
    seen_groups = []

    def fake_entry_points(group):
        seen_groups.append(group)
        return [
            FakeEntryPoint("cache", CachePlugin),
            FakeEntryPoint("broken", ImportError("No module named 'missing_dep'")),
        ]

    monkeypatch.setattr("scheck.core.plugin.entry_points", fake_entry_points)
    logger = logging.getLogger("test.discover")
    manager = PluginManager(logger=logger)

    with caplog.at_level(logging.WARNING, logger="test.discover"):
        discovered = manager.discover()

    assert seen_groups == [ENTRY_POINT_GROUP]
    assert discovered == ["cache-anchors"]
    assert manager.list_plugins() == ["cache-anchors"]
    assert "Skipping plugin broken" in caplog.text


def test_discover_accepts_instances_and_rejects_others(monkeypatch, caplog):
    monkeypatch.setattr(
        "scheck.core.plugin.entry_points",
        lambda group: [
            FakeEntryPoint("instance", CachePlugin()),
            FakeEntryPoint("not-a-plugin", object),
        ],
    )
    logger = logging.getLogger("test.discover")

    with caplog.at_level(logging.WARNING, logger="test.discover"):
        discovered = PluginManager(logger=logger).discover()

    assert discovered == ["cache-anchors"]
    assert "Skipping plugin not-a-plugin" in caplog.text


def test_apply_skips_non_callable_extractor(caplog):
    class BadPlugin(ScheckPlugin):
        name = "bad"

        @hookimpl
        def get_anchor_extractors(self):
            return {"CACHE.TTL": "cacheName"}

    logger = logging.getLogger("test.plugins")
    manager = PluginManager(logger=logger)
    manager.register(BadPlugin())
    registry = AnchorRegistry()

    with caplog.at_level(logging.WARNING, logger="test.plugins"):
        assert manager.apply(registry) == []

    assert "not callable" in caplog.text


def test_apply_ignores_unmarked_method():
    """Only methods marked with @hookimpl are called."""

    class Unmarked(ScheckPlugin):
        name = "unmarked"

        def get_anchor_extractors(self):
            return {"CACHE.TTL": lambda finding: {"cacheName": "redis"}}

    manager = PluginManager()
    manager.register(Unmarked())
    registry = AnchorRegistry()

    assert manager.apply(registry) == []
    assert registry.invariants() == []


def test_apply_order_follows_registration():
    class FirstCache(CachePlugin):
        name = "first"

    class SecondCache(CachePlugin):
        name = "second"

    manager = PluginManager(logger=logging.getLogger("test.plugins"))
    manager.register(FirstCache())
    manager.register(SecondCache())
    registry = AnchorRegistry()

    assert manager.apply(registry) == ["CACHE.TTL"]


def test_apply_skips_plugin_whose_hook_raises(caplog):
    class Exploding(ScheckPlugin):
        name = "exploding"

        @hookimpl
        def get_anchor_extractors(self):
            raise RuntimeError("config missing")

    logger = logging.getLogger("test.plugins")
    manager = PluginManager(logger=logger)
    manager.register(Exploding())
    manager.register(CachePlugin())
    registry = AnchorRegistry()

    with caplog.at_level(logging.WARNING, logger="test.plugins"):
        applied = manager.apply(registry)

    assert applied == ["CACHE.TTL"]
    assert "Skipping plugin exploding: config missing" in caplog.text


def test_plugin_error_has_code():
    with pytest.raises(PluginError) as exc_info:
        PluginManager().register(ScheckPlugin())

    assert exc_info.value.code == "SC_ANCHOR_902"
