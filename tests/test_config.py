from pathlib import Path

from tabsorter.config import (
    DEFAULT_CFG,
    debounce_seconds,
    env_cfg,
    load_runtime_cfg,
    merge_cfg,
    router_from_cfg,
    rule_store_from_cfg,
)
from tabsorter.host.memory import MemoryDirectory
from tabsorter.rules.store import JsonFileKeyValueStore, MemoryKeyValueStore

ENV_VARS = ("TABSORTER_DEBOUNCE_MS", "TABSORTER_RULES_PATH", "TABSORTER_VERBOSE")


def _clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_merge_cfg_override_wins_over_payload_and_defaults():
    merged = merge_cfg({"organizeDebounceMs": 50, "verbose": True}, {"organizeDebounceMs": 75})

    assert merged["organizeDebounceMs"] == 75
    assert merged["verbose"] is True
    assert merged["rulesPath"] == DEFAULT_CFG["rulesPath"]


def test_env_cfg_reads_tabsorter_variables(monkeypatch):
    _clear_env(monkeypatch)
    assert env_cfg() == {}

    monkeypatch.setenv("TABSORTER_DEBOUNCE_MS", "50")
    monkeypatch.setenv("TABSORTER_RULES_PATH", " /tmp/rules.json ")
    monkeypatch.setenv("TABSORTER_VERBOSE", "yes")

    assert env_cfg() == {"organizeDebounceMs": 50.0, "rulesPath": "/tmp/rules.json", "verbose": True}


def test_env_debounce_is_clamped_and_bad_values_fall_back(monkeypatch):
    _clear_env(monkeypatch)

    monkeypatch.setenv("TABSORTER_DEBOUNCE_MS", "-5")
    assert env_cfg()["organizeDebounceMs"] == 0.0

    monkeypatch.setenv("TABSORTER_DEBOUNCE_MS", "soon")
    assert env_cfg()["organizeDebounceMs"] == DEFAULT_CFG["organizeDebounceMs"]

    monkeypatch.setenv("TABSORTER_DEBOUNCE_MS", "99999")
    assert env_cfg()["organizeDebounceMs"] == 10_000.0


def test_load_runtime_cfg_applies_env_then_override(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("TABSORTER_RULES_PATH", "/from/env.json")

    assert load_runtime_cfg()["rulesPath"] == "/from/env.json"
    assert load_runtime_cfg({"rulesPath": "/from/cli.json"})["rulesPath"] == "/from/cli.json"


def test_debounce_seconds_converts_milliseconds():
    assert debounce_seconds({"organizeDebounceMs": 250}) == 0.25
    assert debounce_seconds({"organizeDebounceMs": "bogus"}) == 0.2
    assert debounce_seconds({"organizeDebounceMs": -10}) == 0.0
    assert debounce_seconds({}) == 0.2


def test_rule_store_from_cfg_picks_backend(tmp_path):
    in_memory = rule_store_from_cfg({"rulesPath": None})
    on_disk = rule_store_from_cfg(
        {"rulesPath": str(tmp_path / "rules.json"), "localStatePath": str(tmp_path / "local.json")}
    )

    assert isinstance(in_memory.sync, MemoryKeyValueStore)
    assert isinstance(on_disk.sync, JsonFileKeyValueStore)
    assert on_disk.sync.path == Path(tmp_path / "rules.json")
    assert isinstance(on_disk.local, JsonFileKeyValueStore)


def test_router_from_cfg_uses_configured_debounce():
    router = router_from_cfg(MemoryDirectory(), {"organizeDebounceMs": 50, "rulesPath": None})

    assert router.reconciler.scheduler.delay == 0.05
    assert isinstance(router.rules.sync, MemoryKeyValueStore)
