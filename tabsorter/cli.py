#!/usr/bin/env python3
"""Offline tooling for tab grouping rules.

Commands:
- match <url>             which group (and auto-close rule) a URL would get
- migrate                 rewrite legacy rule shapes in the rule file
- validate                check stored rules the way the options page does
- simulate <layout.json>  run the engine over a described set of windows

Options: --rules PATH (default: $TABSORTER_RULES_PATH or the configured
rulesPath), --json, -v/--verbose.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from tabsorter.config import load_runtime_cfg, router_from_cfg, rule_store_from_cfg
from tabsorter.engine.assigner import match_tab
from tabsorter.engine.autoclose import auto_close_rule_for
from tabsorter.engine.directory import Tab
from tabsorter.host.memory import MemoryDirectory
from tabsorter.rules.loader import load_auto_close_rules, load_grouping_rules
from tabsorter.rules.store import RuleStore
from tabsorter.rules.validate import RuleValidationError, validate_rules
from tabsorter.tab_policy.taxonomy import AUTO_CLOSE_RULES_KEY, GROUPING_RULES_KEY, normalize_color

COMMANDS = {"match", "migrate", "validate", "simulate"}
USAGE = "usage: tabsorter [--rules PATH] [--json] [-v] {match <url>|migrate|validate|simulate <layout.json>}"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[tabsorter] %(asctime)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def parse_args(argv: List[str]) -> Dict:
    opts: Dict = {"rules": None, "json": False, "verbose": False, "command": None, "args": []}
    args = list(argv[1:])
    idx = 0
    while idx < len(args):
        arg = args[idx]
        if arg in ("-v", "--verbose"):
            opts["verbose"] = True
        elif arg == "--json":
            opts["json"] = True
        elif arg == "--rules":
            if idx + 1 >= len(args):
                raise SystemExit("--rules requires a path")
            idx += 1
            opts["rules"] = args[idx]
        elif arg.startswith("--rules="):
            opts["rules"] = arg.split("=", 1)[1]
        elif arg in ("-h", "--help"):
            print(USAGE, file=sys.stderr)
            raise SystemExit(0)
        elif opts["command"] is None:
            if arg not in COMMANDS:
                raise SystemExit(f"unknown command: {arg}")
            opts["command"] = arg
        else:
            opts["args"].append(arg)
        idx += 1
    if opts["command"] is None:
        raise SystemExit(USAGE)
    return opts


def _emit(payload: Dict, as_json: bool, text: str) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        print(text)


async def cmd_match(store: RuleStore, url: str, as_json: bool) -> int:
    tab = Tab(id=0, window_id=0, url=url)
    grouping = await store.grouping_rules()
    auto_close = await store.auto_close_rules()
    match = match_tab(tab, grouping)
    closing = auto_close_rule_for(tab, auto_close)
    payload = {
        "url": url,
        "group": {"title": match.title, "color": match.color} if match else None,
        "autoClose": closing.to_dict() if closing else None,
    }
    lines = [f"group: {match.title} ({match.color})" if match else "group: (none)"]
    if closing:
        lines.append(f"auto-close: after {closing.delay_seconds}s ({closing.pattern})")
    _emit(payload, as_json, "\n".join(lines))
    return 0


async def cmd_migrate(store: RuleStore, as_json: bool) -> int:
    grouping = await store.grouping_rules()
    auto_close = await store.auto_close_rules()
    payload = {"groupingRules": len(grouping), "autoClosePatterns": len(auto_close)}
    _emit(payload, as_json, f"{len(grouping)} grouping rule(s), {len(auto_close)} auto-close rule(s)")
    return 0


async def cmd_validate(store: RuleStore, as_json: bool) -> int:
    raw = await store.sync.get({GROUPING_RULES_KEY: [], AUTO_CLOSE_RULES_KEY: []})
    grouping, _ = load_grouping_rules(raw.get(GROUPING_RULES_KEY))
    auto_close, _ = load_auto_close_rules(raw.get(AUTO_CLOSE_RULES_KEY))
    try:
        validate_rules(grouping, auto_close)
    except RuleValidationError as exc:
        _emit({"ok": False, "error": str(exc), "field": exc.field}, as_json, f"invalid: {exc}")
        return 1
    _emit({"ok": True}, as_json, "ok")
    return 0


def _load_layout(path: Path) -> List[List[dict]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    windows = data.get("windows", []) if isinstance(data, dict) else data
    out = []
    for window in windows or []:
        tabs = window.get("tabs", []) if isinstance(window, dict) else window
        out.append([t if isinstance(t, dict) else {"url": str(t)} for t in tabs or []])
    return out


def _populate(directory: MemoryDirectory, layout: List[List[dict]]) -> None:
    for tabs in layout:
        window_id = directory.open_window()
        by_title: Dict[str, List[int]] = {}
        colors: Dict[str, str] = {}
        for spec in tabs:
            tab = directory.add_tab(
                window_id,
                spec.get("url"),
                pinned=bool(spec.get("pinned")),
                active=bool(spec.get("active")),
            )
            group = spec.get("group")
            if isinstance(group, str):
                group = {"title": group}
            if isinstance(group, dict) and not tab.pinned:
                title = str(group.get("title") or "")
                by_title.setdefault(title, []).append(tab.id)
                colors.setdefault(title, normalize_color(group.get("color")))
        for title, tab_ids in by_title.items():
            directory.add_group(window_id, tab_ids, title=title, color=colors[title])


async def _describe(directory: MemoryDirectory) -> List[dict]:
    windows: Dict[int, List[dict]] = {}
    for tab in await directory.query_tabs():
        group: Optional[dict] = None
        if tab.grouped:
            meta = await directory.get_group(tab.group_id)
            group = {"id": meta.id, "title": meta.title, "color": meta.color}
        windows.setdefault(tab.window_id, []).append(
            {"id": tab.id, "url": tab.current_url, "pinned": tab.pinned, "group": group}
        )
    return [{"id": window_id, "tabs": tabs} for window_id, tabs in sorted(windows.items())]


async def cmd_simulate(cfg: Dict, store: RuleStore, layout_path: Path, as_json: bool) -> int:
    directory = MemoryDirectory()
    _populate(directory, _load_layout(layout_path))
    router = router_from_cfg(directory, cfg, rules=store)
    directory.listener = router.dispatch
    await router.on_startup()
    await router.settle()
    await router.shutdown()

    windows = await _describe(directory)
    lines = []
    for window in windows:
        lines.append(f"window {window['id']}:")
        for tab in window["tabs"]:
            if tab["pinned"]:
                label = "pinned"
            elif tab["group"]:
                label = f"{tab['group']['title']}/{tab['group']['color']}"
            else:
                label = "-"
            lines.append(f"  [{label}] {tab['url']}")
    _emit({"windows": windows}, as_json, "\n".join(lines))
    return 0


async def run(opts: Dict, cfg: Dict) -> int:
    store = rule_store_from_cfg(cfg)
    command = opts["command"]
    args = opts["args"]
    as_json = bool(opts.get("json"))

    if command == "match":
        if len(args) != 1:
            raise SystemExit("match requires exactly one URL")
        return await cmd_match(store, args[0], as_json)
    if command == "migrate":
        return await cmd_migrate(store, as_json)
    if command == "validate":
        return await cmd_validate(store, as_json)
    if len(args) != 1:
        raise SystemExit("simulate requires a layout file")
    layout_path = Path(args[0]).expanduser()
    if not layout_path.exists():
        print(f"Layout not found: {layout_path}", file=sys.stderr)
        return 2
    return await cmd_simulate(cfg, store, layout_path, as_json)


def main(argv: List[str]) -> int:
    opts = parse_args(argv)
    override = {"rulesPath": opts["rules"]} if opts.get("rules") else None
    cfg = load_runtime_cfg(override)
    _configure_logging(bool(opts["verbose"] or cfg.get("verbose")))
    return asyncio.run(run(opts, cfg))


def entrypoint() -> None:
    raise SystemExit(main(sys.argv))


if __name__ == "__main__":
    entrypoint()
