from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent


def _write_parts(path: Path, parts) -> str:
    path.write_text(json.dumps({"parts": [p.to_dict() for p in parts]}), encoding="utf-8")
    return str(path)


def _run(script: str, *args: str) -> subprocess.CompletedProcess:
    cmd = [sys.executable, str(REPO_ROOT / "scripts" / script), *args]
    return subprocess.run(cmd, capture_output=True, text=True)


def test_analyze_prints_report(table_parts, tmp_path: Path):
    parts_file = _write_parts(tmp_path / "table.json", table_parts)
    proc = _run("analyze_assembly.py", parts_file, "--heat", "--kdtree")
    assert proc.returncode == 0, proc.stderr
    report = json.loads(proc.stdout)
    assert report["stats"]["woodPartCount"] == 5
    assert set(report["heatColors"]) == {p.part_id for p in table_parts}
    assert report["stress"]["scenario"] == "baseline"


def test_analyze_with_scenario_writes_output(table_parts, tmp_path: Path):
    parts_file = _write_parts(tmp_path / "table.json", table_parts)
    out = tmp_path / "report.json"
    proc = _run(
        "analyze_assembly.py", parts_file,
        "--scenario", "torsion-twist", "--intensity", "0.9", "--output", str(out),
    )
    assert proc.returncode == 0, proc.stderr
    saved = json.loads(out.read_text(encoding="utf-8"))
    assert saved["stress"]["label"] == "Twist Torque"
    assert saved["stress"]["intensity"] == 0.9


def test_analyze_rejects_bad_input(tmp_path: Path):
    bad = tmp_path / "bad.json"
    bad.write_text("[{\"id\": \"x\", \"type\": \"plastic\", \"dimensions\": [1, 1, 1]}]")
    proc = _run("analyze_assembly.py", str(bad))
    assert proc.returncode == 2
    assert "could not load parts" in proc.stderr

    proc = _run("analyze_assembly.py", str(tmp_path / "missing.json"))
    assert proc.returncode == 2

    for text in ("[1, 2]", "[{\"id\": \"x\", \"type\": \"lumber\", \"dimensions\": null}]"):
        bad.write_text(text)
        proc = _run("analyze_assembly.py", str(bad))
        assert proc.returncode == 2
        assert "could not load parts" in proc.stderr


def test_place_fasteners_writes_updated_parts(butt_joint_parts, tmp_path: Path):
    parts_file = _write_parts(tmp_path / "boards.json", butt_joint_parts)
    out = tmp_path / "joined.json"
    proc = _run(
        "place_fasteners.py", parts_file,
        "--first", "board-a", "--second", "board-b", "--output", str(out),
    )
    assert proc.returncode == 0, proc.stderr
    result = json.loads(proc.stdout)
    assert result["ok"] is True
    assert result["screwCount"] == 2
    assert result["reason"] is None

    saved = json.loads(out.read_text(encoding="utf-8"))["parts"]
    assert len(saved) == 4
    assert sum(1 for p in saved if p.get("hardwareKind") == "fastener") == 2


def test_place_fasteners_reports_failure(make_part, tmp_path: Path):
    parts = [
        make_part("a", (1.5, 3.5, 24.0), (0.0, 1.75, 0.0)),
        make_part("b", (1.5, 3.5, 24.0), (0.0, 1.75, 40.0)),
    ]
    parts_file = _write_parts(tmp_path / "apart.json", parts)
    out = tmp_path / "joined.json"
    proc = _run(
        "place_fasteners.py", parts_file, "--first", "a", "--second", "b", "--output", str(out),
    )
    assert proc.returncode == 1
    result = json.loads(proc.stdout)
    assert result["ok"] is False
    assert result["reason"] == "not_touching"
    assert result["fasteners"] == []
    assert not out.exists()
