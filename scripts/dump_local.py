#!/usr/bin/env python3
"""Dump what a pytrackfit store holds locally.

Opens the configured store (file-backed when ``TRACKFIT_STORAGE_DIR`` or
``--storage-dir`` is set), prints the captured entries, the sync queue
status and the dashboard summary. Optionally runs one sync cycle first,
or moves data in and out as an export bundle.

Usage
-----
::

    export TRACKFIT_STORAGE_DIR=~/.trackfit
    python scripts/dump_local.py

Options::

    --storage-dir DIR   Store directory (overrides TRACKFIT_STORAGE_DIR)
    --sync              Run one sync cycle against the portals first
    --token TOKEN       Bearer token for --sync (default: stored authToken)
    --export FILE       Write an export bundle to FILE
    --import FILE       Load an export bundle from FILE before dumping
    --limit N           Entries to list (default 20)
    --json              Output as machine-readable JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pytrackfit import StaticTokenAuth, TrackfitClient, TrackfitConfig, TrackingEntry  # noqa: E402
from pytrackfit.exceptions import TrackfitError  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _entry_line(entry: TrackingEntry) -> str:
    stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M")
    error = f"  !! {entry.sync_error}" if entry.sync_error else ""
    return f"  {stamp}  {entry.kind.value:<10} {entry.sync_state.value:<8} {entry.subject_id}  ({entry.id}){error}"


def _print_fields(data: dict[str, Any], out: list[str]) -> None:
    for key, value in data.items():
        if isinstance(value, list):
            out.append(f"  {key}: <{len(value)} items>")
        elif isinstance(value, dict):
            out.append(f"  {key}: {json.dumps(value, default=str)}")
        else:
            out.append(f"  {key}: {value}")


# ── main ─────────────────────────────────────────────────────


async def main() -> int:
    parser = argparse.ArgumentParser(description="Dump local pytrackfit data for debugging / development.")
    parser.add_argument("--storage-dir", help="Store directory (overrides TRACKFIT_STORAGE_DIR)")
    parser.add_argument("--sync", action="store_true", help="Run one sync cycle before dumping")
    parser.add_argument("--token", help="Bearer token used for --sync")
    parser.add_argument("--export", dest="export_path", help="Write an export bundle to FILE")
    parser.add_argument("--import", dest="import_path", help="Load an export bundle from FILE")
    parser.add_argument("--limit", type=int, default=20, help="Entries to list (default 20)")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    if args.storage_dir:
        overrides["storage_dir"] = str(Path(args.storage_dir).expanduser())
    try:
        config = TrackfitConfig.from_env(**overrides)
    except TrackfitError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    auth = StaticTokenAuth(args.token) if args.token else None
    result: dict[str, Any] = {"storage_dir": config.storage_dir}
    out: list[str] = [_section("pytrackfit dump_local"), f"  store     : {config.storage_dir or '<memory>'}"]

    async with TrackfitClient(config, auth=auth) as client:
        if args.import_path:
            raw = json.loads(Path(args.import_path).read_text(encoding="utf-8"))
            summary = await client.import_data(raw)
            out.append(f"  imported  : {summary.imported}/{summary.total} ({summary.skipped} skipped)")
            result["import"] = summary.to_json_dict()

        if args.sync:
            report = await client.trigger_sync()
            out.append(_section("SYNC CYCLE"))
            _print_fields(report.to_json_dict(), out)
            result["sync"] = report.to_json_dict()

        entries = await client.recent_activity(limit=args.limit)
        out.append(_section(f"ENTRIES (newest {len(entries)})"))
        out.extend(_entry_line(entry) for entry in entries)
        result["entries"] = [entry.to_json_dict() for entry in entries]

        status = client.sync_status()
        out.append(_section("SYNC STATUS"))
        _print_fields(status.to_json_dict(), out)
        for failure in status.failures:
            out.append(f"    - {failure.entry_id}: {failure.error_kind} {failure.error}")
        result["status"] = status.to_json_dict()

        dashboard = await client.dashboard_summary()
        out.append(_section("DASHBOARD"))
        _print_fields(dashboard.to_json_dict(), out)
        result["dashboard"] = dashboard.to_json_dict()

        if args.export_path:
            bundle = await client.export_data()
            Path(args.export_path).write_text(
                json.dumps(bundle.to_json_dict(), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            out.append(f"\n  exported {bundle.total_entries} entries to {args.export_path}")

    if args.json_mode:
        print(json.dumps(result, indent=2, default=str, ensure_ascii=False))
    else:
        print("\n".join(out))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
