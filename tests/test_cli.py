from __future__ import annotations

import json

import pytest

from conftest import loc, note, photo
from trail_tracker.cli import main
from trail_tracker.storage.file_store import FileBackupStore


@pytest.fixture
def dirs(tmp_path):
    return {"backup": tmp_path / "backup", "routes": tmp_path / "routes"}


def _run(dirs, *args):
    return main(
        [
            "--backend", "file",
            "--backup-dir", str(dirs["backup"]),
            "--archive-dir", str(dirs["routes"]),
            "--device", "test-device",
            *args,
        ]
    )


def _trip(tmp_path, points):
    path = tmp_path / "trip.json"
    path.write_text(json.dumps(points), encoding="utf-8")
    return path


def test_backup_reports_empty_slot(dirs, capsys):
    assert _run(dirs, "backup") == 0
    assert "No unsaved route backup" in capsys.readouterr().out


def test_backup_shows_summary(dirs, capsys):
    FileBackupStore(dirs["backup"], "test-device").write(
        {"routeData": [loc(1), loc(2), photo(3)], "totalDistance": 1.25, "elapsedTime": 65000, "backupTime": 4}
    )
    assert _run(dirs, "backup") == 0
    out = capsys.readouterr().out
    assert "Unsaved route backup" in out
    assert "1.25 km" in out
    assert "1m 5s" in out


def test_discard_clears_slot(dirs, capsys):
    st = FileBackupStore(dirs["backup"], "test-device")
    st.write({"routeData": [loc(1)]})
    assert _run(dirs, "discard") == 0
    assert st.read() is None
    assert "cleared" in capsys.readouterr().out


def test_replay_archives_route(tmp_path, dirs):
    trip = _trip(tmp_path, [loc(1000, 45.0, 7.0), photo(1500), loc(61000, 45.01, 7.0), note(62000)])
    assert _run(dirs, "replay", "--trip", str(trip)) == 0

    files = list(dirs["routes"].glob("route-*.json"))
    assert len(files) == 1
    data = json.loads(files[0].read_text(encoding="utf-8"))
    assert [p["type"] for p in data["routeData"]] == ["location", "photo", "location", "text"]
    assert data["elapsedTime"] == 61000
    assert data["totalDistance"] == pytest.approx(1.112, abs=0.001)
    # a finished session leaves nothing to restore
    assert FileBackupStore(dirs["backup"], "test-device").read() is None


def test_replay_accepts_route_data_wrapper(tmp_path, dirs):
    path = tmp_path / "wrapped.json"
    path.write_text(json.dumps({"routeData": [loc(1), loc(2)]}), encoding="utf-8")
    assert _run(dirs, "replay", "--trip", str(path)) == 0
    assert len(list(dirs["routes"].glob("route-*.json"))) == 1


def test_replay_skips_bad_fixes(tmp_path, dirs):
    trip = _trip(tmp_path, [loc(1000), {"type": "location", "timestamp": 2000}, loc(3000, 45.001)])
    assert _run(dirs, "replay", "--trip", str(trip)) == 0
    data = json.loads(next(dirs["routes"].glob("route-*.json")).read_text(encoding="utf-8"))
    assert len(data["routeData"]) == 2


def test_replay_refuses_to_overwrite_backup(tmp_path, dirs, capsys):
    FileBackupStore(dirs["backup"], "test-device").write({"routeData": [loc(1)]})
    trip = _trip(tmp_path, [loc(1000)])
    assert _run(dirs, "replay", "--trip", str(trip)) == 1
    assert "discard" in capsys.readouterr().out
    assert not dirs["routes"].exists()

    assert _run(dirs, "replay", "--trip", str(trip), "--force") == 0


def test_archives_listing(tmp_path, dirs, capsys):
    assert _run(dirs, "archives") == 0
    assert "No archived routes" in capsys.readouterr().out

    trip = _trip(tmp_path, [loc(1000), loc(2000, 45.001)])
    _run(dirs, "replay", "--trip", str(trip))
    capsys.readouterr()
    assert _run(dirs, "archives") == 0
    assert "Archived routes" in capsys.readouterr().out


def test_unknown_command_exits(dirs):
    with pytest.raises(SystemExit):
        _run(dirs, "teleport")
