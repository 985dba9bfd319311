import asyncio

from tabsorter.engine.assigner import GroupAssigner, match_tab
from tabsorter.engine.dedupe import GroupDeduplicator
from tabsorter.engine.directory import Tab
from tabsorter.engine.reconciler import WindowReconciler
from tabsorter.rules.models import GroupingRule, RuleMatch
from tabsorter.rules.store import MemoryKeyValueStore, RuleStore
from tests.engine.clock import ManualClock

DEV_RULES = [{"title": "Dev", "color": "blue", "patterns": ["github.com", "*.python.org/3/*"]}]


def _run(directory, rules, body):
    """Run ``body(assigner)`` with a reconciler whose timers never fire."""

    async def scenario():
        reconciler = WindowReconciler(directory, sleep=ManualClock().sleep)
        assigner = GroupAssigner(directory, rules, GroupDeduplicator(directory), reconciler)
        try:
            result = await body(assigner)
            pending = sorted(key for key in (1, 2, 3) if reconciler.scheduler.is_pending(key))
        finally:
            await reconciler.shutdown()
        return result, pending

    return asyncio.run(scenario())


def test_match_tab_skips_pinned_and_non_web_tabs():
    rules = [GroupingRule(title="Dev", color="blue", patterns=("github.com",))]

    assert match_tab(Tab(id=1, window_id=1, url="https://github.com/x"), rules) == RuleMatch("Dev", "blue")
    assert match_tab(Tab(id=1, window_id=1, url="https://github.com/x", pinned=True), rules) is None
    assert match_tab(Tab(id=1, window_id=1, url="chrome://newtab/"), rules) is None
    assert match_tab(Tab(id=1, window_id=1), rules) is None
    assert match_tab(Tab(id=1, window_id=1, pending_url="https://github.com"), rules) == RuleMatch("Dev", "blue")


def test_matching_tab_gets_a_new_titled_group(directory, make_rules):
    window_id = directory.open_window()
    tab = directory.add_tab(window_id, "https://github.com/org/repo")

    async def body(assigner):
        await assigner.reconcile_tab(tab)

    _, pending = _run(directory, make_rules(DEV_RULES), body)

    [group] = directory.groups_titled(window_id, "Dev")
    assert group.color == "blue"
    assert directory.members(group.id) == [tab.id]
    assert pending == [window_id]


def test_second_tab_joins_existing_group_and_color_is_corrected(directory, make_rules):
    window_id = directory.open_window()
    first = directory.add_tab(window_id, "https://github.com/a")
    directory.add_tab(window_id, "https://example.org")
    second = directory.add_tab(window_id, "https://docs.python.org/3/library/")
    existing = directory.add_group(window_id, [first.id], title="Dev", color="red")

    async def body(assigner):
        await assigner.reconcile_tab_id(second.id)

    _run(directory, make_rules(DEV_RULES), body)

    [group] = directory.groups_titled(window_id, "Dev")
    assert group.id == existing.id
    assert group.color == "blue"
    assert directory.members(group.id) == [first.id, second.id]
    assert ("update_group", existing.id, None, "blue") in directory.calls


def test_member_with_matching_url_is_left_in_place(directory, make_rules):
    window_id = directory.open_window()
    tab = directory.add_tab(window_id, "https://github.com/a")
    directory.add_group(window_id, [tab.id], title="Dev", color="blue")

    async def body(assigner):
        await assigner.reconcile_tab_id(tab.id)

    _run(directory, make_rules(DEV_RULES), body)

    assert directory.calls == []


def test_tab_leaving_managed_pattern_is_ungrouped(directory, make_rules):
    window_id = directory.open_window()
    tab = directory.add_tab(window_id, "https://github.com/a")
    group = directory.add_group(window_id, [tab.id], title="Dev", color="blue")
    directory.navigate(tab.id, "https://example.org/")

    async def body(assigner):
        await assigner.reconcile_tab_id(tab.id)
        return await directory.get_tab(tab.id)

    fresh, pending = _run(directory, make_rules(DEV_RULES), body)

    assert fresh.grouped is False
    assert directory.members(group.id) == []
    assert directory.groups_titled(window_id, "Dev") == []
    assert pending == [window_id]


def test_user_groups_are_never_touched(directory, make_rules):
    window_id = directory.open_window()
    tab = directory.add_tab(window_id, "https://example.org/")
    directory.add_group(window_id, [tab.id], title="Reading", color="pink")

    async def body(assigner):
        await assigner.reconcile_tab_id(tab.id)

    _, pending = _run(directory, make_rules(DEV_RULES), body)

    assert directory.calls == []
    assert pending == []


def test_duplicate_groups_are_merged_when_a_tab_joins(directory, make_rules):
    window_id = directory.open_window()
    tabs = [directory.add_tab(window_id, f"https://github.com/{n}") for n in range(3)]
    first = directory.add_group(window_id, [tabs[0].id], title="Dev", color="blue")
    directory.add_group(window_id, [tabs[1].id], title="Dev", color="blue")

    async def body(assigner):
        await assigner.reconcile_tab_id(tabs[2].id)

    _run(directory, make_rules(DEV_RULES), body)

    [group] = directory.groups_titled(window_id, "Dev")
    assert group.id == first.id
    assert sorted(directory.members(group.id)) == [t.id for t in tabs]


def test_sweep_groups_each_window_separately(directory, make_rules):
    first_window = directory.open_window()
    directory.add_tab(first_window, "https://github.com/a")
    directory.add_tab(first_window, "about:blank")
    second_window = directory.open_window()
    directory.add_tab(second_window, "https://github.com/b")

    async def body(assigner):
        await assigner.sweep()

    _, pending = _run(directory, make_rules(DEV_RULES), body)

    assert len(directory.groups_titled(first_window, "Dev")) == 1
    assert len(directory.groups_titled(second_window, "Dev")) == 1
    assert pending == [first_window, second_window]


def test_vanished_tab_is_ignored(directory, make_rules):
    async def body(assigner):
        await assigner.reconcile_tab_id(404)
        await assigner.reconcile_tab(None)

    _run(directory, make_rules(DEV_RULES), body)

    assert directory.calls == []


def test_pinned_tab_in_managed_group_is_ungrouped(directory, make_rules):
    window_id = directory.open_window()
    tab = directory.add_tab(window_id, "https://github.com/a")
    directory.add_tab(window_id, "https://github.com/b")
    group = directory.add_group(window_id, [1, 2], title="Dev", color="blue")
    pinned_snapshot = Tab(id=tab.id, window_id=window_id, url=tab.url, pinned=True, group_id=group.id)

    async def body(assigner):
        await assigner.reconcile_tab(pinned_snapshot)

    _run(directory, make_rules(DEV_RULES), body)

    assert directory.members(group.id) == [2]
    assert ("ungroup_tabs", (tab.id,)) in directory.calls


def test_unreadable_rules_leave_tabs_alone(directory):
    class BrokenStore(MemoryKeyValueStore):
        async def get(self, defaults):
            raise OSError("storage unavailable")

    window_id = directory.open_window()
    tab = directory.add_tab(window_id, "https://github.com/a")
    directory.add_group(window_id, [tab.id], title="Dev", color="blue")

    async def body(assigner):
        await assigner.reconcile_tab_id(tab.id)

    _, pending = _run(directory, RuleStore(BrokenStore()), body)

    assert directory.calls == []
    assert pending == []
