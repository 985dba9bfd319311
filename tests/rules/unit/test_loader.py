from tabsorter.engine.assigner import match_tab
from tabsorter.engine.directory import Tab
from tabsorter.rules.loader import load_auto_close_rules, load_grouping_rules
from tabsorter.rules.models import AutoCloseRule, GroupingRule, RuleMatch


def test_legacy_rules_with_shared_title_fold_into_one_group():
    raw = [{"pattern": "a.com", "title": "A"}, {"pattern": "b.a.com", "title": "A"}]

    rules, migrated = load_grouping_rules(raw)

    assert migrated is True
    assert rules == [GroupingRule(title="A", color="grey", patterns=("a.com", "b.a.com"))]
    assert rules[0].to_dict() == {"title": "A", "color": "grey", "patterns": ["a.com", "b.a.com"]}


def test_legacy_title_defaults_to_pattern_and_first_non_grey_color_wins():
    raw = [
        {"pattern": "x.com", "color": "grey", "title": "X"},
        {"pattern": "y.x.com", "color": "blue", "title": "X"},
        {"pattern": "z.x.com", "color": "red", "title": "X"},
        {"pattern": "x.com", "title": "X"},
        {"pattern": "solo.org", "color": "teal"},
    ]

    rules, migrated = load_grouping_rules(raw)

    assert migrated is True
    assert rules[0] == GroupingRule(title="X", color="blue", patterns=("x.com", "y.x.com", "z.x.com"))
    assert rules[1] == GroupingRule(title="solo.org", color="grey", patterns=("solo.org",))


def test_current_schema_is_normalized_without_migration():
    raw = [
        {"title": " GitHub ", "color": "purple", "patterns": ["github.com", "", "*.github.io", "github.com"]},
        {"title": "Bad color", "color": "chartreuse", "patterns": ["example.com"]},
    ]

    rules, migrated = load_grouping_rules(raw)

    assert migrated is False
    assert rules == [
        GroupingRule(title="GitHub", color="purple", patterns=("github.com", "*.github.io")),
        GroupingRule(title="Bad color", color="grey", patterns=("example.com",)),
    ]


def test_malformed_entries_are_filtered_not_fatal():
    raw = [
        None,
        "github.com",
        {"title": "", "patterns": ["a.com"]},
        {"title": "Empty", "patterns": []},
        {"title": "Numbers", "patterns": [1, 2]},
        {"title": "Kept", "color": "green", "patterns": ["kept.com"]},
    ]

    rules, migrated = load_grouping_rules(raw)

    assert migrated is False
    assert [r.title for r in rules] == ["Kept"]


def test_non_list_payloads_load_as_empty():
    assert load_grouping_rules(None) == ([], False)
    assert load_grouping_rules({"title": "x"}) == ([], False)
    assert load_auto_close_rules("zoom.us") == ([], False)


def test_legacy_records_fold_only_with_each_other():
    raw = [
        {"title": "Docs", "color": "cyan", "patterns": ["docs.python.org"]},
        {"pattern": "readthedocs.io", "title": "Docs"},
        {"pattern": "docs.rs", "title": "Docs", "color": "orange"},
    ]

    rules, migrated = load_grouping_rules(raw)

    assert migrated is True
    assert rules == [
        GroupingRule(title="Docs", color="cyan", patterns=("docs.python.org",)),
        GroupingRule(title="Docs", color="orange", patterns=("readthedocs.io", "docs.rs")),
    ]


def test_current_rules_with_repeated_titles_keep_stored_order():
    raw = [
        {"title": "A", "color": "blue", "patterns": ["a.com"]},
        {"title": "B", "color": "red", "patterns": ["*.b.com"]},
        {"title": "A", "color": "blue", "patterns": ["s.b.com"]},
    ]

    rules, migrated = load_grouping_rules(raw)

    assert migrated is False
    assert [(r.title, r.patterns) for r in rules] == [("A", ("a.com",)), ("B", ("*.b.com",)), ("A", ("s.b.com",))]
    assert match_tab(Tab(id=1, window_id=1, url="https://s.b.com/"), rules) == RuleMatch("B", "red")


def test_legacy_auto_close_strings_imply_one_second():
    rules, migrated = load_auto_close_rules(["  zoom.us/j/*  ", "", "teams.microsoft.com"])

    assert migrated is True
    assert rules == [
        AutoCloseRule(pattern="zoom.us/j/*", delay_seconds=1),
        AutoCloseRule(pattern="teams.microsoft.com", delay_seconds=1),
    ]


def test_auto_close_delays_are_floored_and_clamped():
    raw = [
        {"pattern": "a.com", "delaySeconds": 3},
        {"pattern": "b.com", "delaySeconds": 4.9},
        {"pattern": "c.com", "delaySeconds": 0},
        {"pattern": "d.com", "delaySeconds": 99},
        {"pattern": "e.com", "delaySeconds": "abc"},
        {"pattern": "f.com", "delaySeconds": float("nan")},
        {"pattern": "g.com"},
        {"pattern": "   "},
        {"delaySeconds": 3},
    ]

    rules, migrated = load_auto_close_rules(raw)

    assert migrated is False
    assert [(r.pattern, r.delay_seconds) for r in rules] == [
        ("a.com", 3),
        ("b.com", 4),
        ("c.com", 1),
        ("d.com", 10),
        ("e.com", 1),
        ("f.com", 1),
        ("g.com", 1),
    ]


def test_auto_close_legacy_delay_key_is_migrated():
    rules, migrated = load_auto_close_rules([{"pattern": "a.com", "delay": "5"}])

    assert migrated is True
    assert rules == [AutoCloseRule(pattern="a.com", delay_seconds=5)]
    assert rules[0].to_dict() == {"pattern": "a.com", "delaySeconds": 5}
