"""Operator CLI for the trail tracker.

Run:
    python -m trail_tracker.cli backup
    python -m trail_tracker.cli replay --trip trips/sample_walk.json
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from trail_tracker.archive import JsonArchiver
from trail_tracker.config import Settings, settings
from trail_tracker.core.engine import build_tracker
from trail_tracker.core.models import format_elapsed
from trail_tracker.sampling import ReplaySource

log = logging.getLogger(__name__)


def _settings_from_args(args: argparse.Namespace) -> Settings:
    updates: Dict[str, Any] = {}
    if args.backend:
        updates["backup_backend"] = args.backend
    if args.backup_dir:
        updates["backup_dir"] = args.backup_dir
    if args.archive_dir:
        updates["archive_dir"] = args.archive_dir
    if args.device:
        updates["device_id"] = args.device
    # The CLI exits right after each command; write checkpoints inline
    updates["backup_async"] = False
    return settings.model_copy(update=updates)


def _fmt_ms(epoch_ms: Optional[int]) -> str:
    if not epoch_ms:
        return ""
    return datetime.fromtimestamp(epoch_ms / 1000.0).isoformat(sep=" ", timespec="seconds")


def _read_trip(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("routeData") or data.get("points") or []
    return list(data)


def _cmd_backup(args: argparse.Namespace, console: Console) -> int:
    tracker = build_tracker(_settings_from_args(args))
    snap = tracker.check_for_backup()
    if snap is None:
        console.print("No unsaved route backup.")
        return 0

    s = snap.summary()
    table = Table(title="Unsaved route backup")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Backed up", _fmt_ms(s.backup_time))
    table.add_row("Distance", f"{s.total_distance_km:.2f} km")
    table.add_row("Elapsed", s.elapsed_text)
    table.add_row("GPS points", str(s.location_points))
    table.add_row("Photos", str(s.photos))
    table.add_row("Notes", str(s.notes))
    console.print(table)

    if args.json:
        console.print_json(json.dumps(snap.to_record()))
    return 0


def _cmd_discard(args: argparse.Namespace, console: Console) -> int:
    tracker = build_tracker(_settings_from_args(args))
    result = tracker.clear_backup()
    if not result.ok:
        console.print(f"[red]Could not clear backup:[/red] {result.reason}")
        return 1
    console.print("Backup slot cleared.")
    return 0


def _cmd_replay(args: argparse.Namespace, console: Console) -> int:
    fixes = _read_trip(Path(args.trip))
    source = ReplaySource(fixes)
    tracker = build_tracker(_settings_from_args(args), source=source)

    if tracker.check_for_backup() is not None and not args.force:
        console.print("[yellow]An unsaved route backup exists; run 'discard' first or pass --force.[/yellow]")
        return 1

    result = tracker.start()
    if not result.ok:
        console.print(f"[red]Start failed:[/red] {result.error or result.reason}")
        return 1

    table = Table(title=f"Replay: {Path(args.trip).name}")
    table.add_column("#")
    table.add_column("Type")
    table.add_column("Time")
    table.add_column("Accepted")
    table.add_column("Dist km")
    table.add_column("Note")

    prev_ts: Optional[int] = None
    for i, fix in enumerate(fixes):
        ts = fix.get("timestamp") if isinstance(fix, dict) else None
        if isinstance(ts, int) and prev_ts is not None and ts >= prev_ts:
            tracker.tick(ts - prev_ts)
        if isinstance(ts, int):
            prev_ts = ts
        out = source.play(1)
        res = out[0] if out else None
        note = ""
        if res is not None and not res.ok:
            note = res.error.code if res.error is not None else res.reason
        table.add_row(
            str(i + 1),
            str(fix.get("type", "?")) if isinstance(fix, dict) else "?",
            _fmt_ms(ts) if isinstance(ts, int) else "",
            "yes" if res is not None and res.ok else "no",
            f"{tracker.get_total_distance():.3f}",
            note,
        )
    console.print(table)

    done = tracker.stop()
    if not done.ok:
        console.print(f"[red]Stop failed:[/red] {done.error or done.reason}")
        return 1
    finished = done.value
    console.print(
        f"Route: {len(finished.route_points)} points, {finished.total_distance_km:.3f} km, "
        f"{format_elapsed(finished.elapsed_ms)}"
    )
    if done.reason:
        console.print(f"Saved: {done.reason}")
    return 0


def _cmd_archives(args: argparse.Namespace, console: Console) -> int:
    cfg = _settings_from_args(args)
    rows = JsonArchiver(cfg.archive_dir).list_routes()
    if not rows:
        console.print("No archived routes.")
        return 0

    table = Table(title="Archived routes")
    table.add_column("File")
    table.add_column("Started")
    table.add_column("Points")
    table.add_column("Photos")
    table.add_column("Notes")
    table.add_column("Dist km")
    table.add_column("Elapsed")
    for r in rows:
        table.add_row(
            r["file"],
            _fmt_ms(r["started_at"]),
            str(r["points"]),
            str(r["photos"]),
            str(r["notes"]),
            f"{float(r['total_distance_km'] or 0.0):.2f}",
            format_elapsed(float(r["elapsed_ms"] or 0.0)),
        )
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="trail-tracker")
    p.add_argument("--backend", default=None, help="auto | redis | file | memory")
    p.add_argument("--backup-dir", default=None)
    p.add_argument("--archive-dir", default=None)
    p.add_argument("--device", default=None, help="device id (one backup slot per device)")
    p.add_argument("--debug", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_bk = sub.add_parser("backup", help="show the unsaved route backup, if any")
    p_bk.add_argument("--json", action="store_true", help="also print the raw snapshot")
    p_bk.set_defaults(func=_cmd_backup)

    p_ds = sub.add_parser("discard", help="clear the backup slot")
    p_ds.set_defaults(func=_cmd_discard)

    p_rp = sub.add_parser("replay", help="drive a full session from a recorded trip file")
    p_rp.add_argument("--trip", required=True, help="JSON list of route points")
    p_rp.add_argument("--force", action="store_true", help="overwrite an existing backup")
    p_rp.set_defaults(func=_cmd_replay)

    p_ar = sub.add_parser("archives", help="list archived routes")
    p_ar.set_defaults(func=_cmd_archives)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [trail-tracker] %(levelname)s %(message)s",
    )
    return int(args.func(args, Console()))


if __name__ == "__main__":
    raise SystemExit(main())
