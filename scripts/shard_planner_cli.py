#!/usr/bin/env python3
"""Command-line front-end for the MD shard planner over a local state file."""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import asdict
from typing import Any, Mapping

from modules.shard_planner.catalog import load_catalog
from modules.shard_planner.operations import OperationResult, ShardPlanner
from modules.shard_planner.projections import (
    format_actual_average,
    format_boxes,
    format_runs_left_actual,
    format_runs_left_theoretical,
    overview,
)
from modules.shard_planner.store import DEFAULT_STATE_KEY, JsonFileBackend, StateStore

DEFAULT_STATE_PATH = "data/md_shards.json"


def _dump(data: Mapping[str, Any]) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def _report(result: OperationResult) -> int:
    stream = sys.stdout if result.ok else sys.stderr
    stream.write(f"{result.message}\n")
    return 0 if result.ok else 1


def _status(planner: ShardPlanner, sinner: str | None) -> int:
    name = None
    if sinner:
        name = planner.catalog.resolve_sinner(sinner)
        if name is None:
            sys.stderr.write(f"Unknown Sinner: {sinner}.\n")
            return 1
    projection = planner.projection(name)
    payload = asdict(projection)
    payload["runs_left_display"] = format_runs_left_theoretical(projection)
    payload["actual_average_display"] = format_actual_average(projection)
    payload["runs_left_actual_display"] = format_runs_left_actual(projection)
    payload["boxes_needed_display"] = format_boxes(projection.boxes_needed_avg)
    _dump(payload)
    return 0


def _overview(planner: ShardPlanner) -> int:
    rows = overview(planner.record, planner.catalog)
    _dump({"active": planner.record.active_sinner, "sinners": [asdict(row) for row in rows]})
    return 0


def _goal(planner: ShardPlanner, query: str, value: bool) -> int:
    resolved = planner.catalog.resolve_item(query)
    if resolved is None:
        sys.stderr.write("No ID or EGO found with that name.\n")
        return 1
    sinner, item = resolved
    return _report(planner.set_goal(sinner, item.id, value))


def _confirmed(planner: ShardPlanner, result: OperationResult, yes: bool) -> int:
    if not result.ok or result.proposal is None:
        return _report(result)
    if not yes:
        sys.stdout.write(f"{result.proposal.description}\nRe-run with --yes to confirm.\n")
        return 1
    return _report(planner.commit(result.proposal))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--state",
        default=os.getenv("SHARD_STATE_PATH") or DEFAULT_STATE_PATH,
        help=f"State file path (default: $SHARD_STATE_PATH or {DEFAULT_STATE_PATH})",
    )
    parser.add_argument(
        "--key",
        default=os.getenv("SHARD_STATE_KEY") or DEFAULT_STATE_KEY,
        help="Slot key inside the state file",
    )
    parser.add_argument(
        "--catalog",
        default=os.getenv("SHARD_CATALOG_PATH") or None,
        help="Optional catalog JSON (default: built-in catalog)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Projection for the active (or given) Sinner")
    status.add_argument("--sinner")
    sub.add_parser("overview", help="Progress for every Sinner")

    for name, help_text in (
        ("run", "Log a finished run"),
        ("bonus", "Add bonus shards"),
        ("boxes", "Set unopened boxes"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("amount")

    sinner = sub.add_parser("sinner", help="Switch the active Sinner")
    sinner.add_argument("name")

    goal = sub.add_parser("goal", help="Add (or with --off remove) an ID/EGO goal")
    goal.add_argument("item")
    goal.add_argument("--off", action="store_true")

    got = sub.add_parser("got", help="Mark a goal ID/EGO as obtained")
    got.add_argument("item")
    got.add_argument("--yes", action="store_true")

    reset = sub.add_parser("reset", help="Reset all progress")
    reset.add_argument("--yes", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    catalog = load_catalog(args.catalog)
    store = StateStore(JsonFileBackend(args.state), catalog, key=args.key)
    planner = ShardPlanner(store, catalog)

    if args.command == "status":
        return _status(planner, args.sinner)
    if args.command == "overview":
        return _overview(planner)
    if args.command == "run":
        return _report(planner.log_run(args.amount))
    if args.command == "bonus":
        return _report(planner.log_bonus(args.amount))
    if args.command == "boxes":
        return _report(planner.set_unopened_boxes(args.amount))
    if args.command == "sinner":
        name = catalog.resolve_sinner(args.name)
        if name is None:
            sys.stderr.write(f"Unknown Sinner: {args.name}.\n")
            return 1
        return _report(planner.switch_sinner(name))
    if args.command == "goal":
        return _goal(planner, args.item, not args.off)
    if args.command == "got":
        resolved = catalog.resolve_item(args.item)
        if resolved is None:
            sys.stderr.write("No ID or EGO found with that name.\n")
            return 1
        sinner_name, item = resolved
        return _confirmed(planner, planner.propose_mark_obtained(sinner_name, item.id), args.yes)
    if args.command == "reset":
        return _confirmed(planner, planner.propose_reset(), args.yes)
    return 2  # pragma: no cover - argparse enforces the choices


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
