"""Shared fixtures for engine and rule tests."""

import pytest

from tabsorter.host.memory import MemoryDirectory
from tabsorter.rules.store import MemoryKeyValueStore, RuleStore


@pytest.fixture
def directory():
    return MemoryDirectory()


@pytest.fixture
def make_rules():
    def _make(grouping=None, auto_close=None):
        initial = {}
        if grouping is not None:
            initial["groupingRules"] = grouping
        if auto_close is not None:
            initial["autoClosePatterns"] = auto_close
        return RuleStore(MemoryKeyValueStore(initial))

    return _make
