import json

import pytest

import main
from src.core.mesh_loader import MeshLoader


CUBE = {
    "geometry_object": {
        "vertices": [
            0, 0, 0, 1, 0, 0, 1, 1, 0, 0, 1, 0,
            0, 0, 1, 1, 0, 1, 1, 1, 1, 0, 1, 1,
        ],
        "triangles": [
            0, 1, 2, 0, 2, 3,
            4, 6, 5, 4, 7, 6,
            0, 5, 1, 0, 4, 5,
            3, 2, 6, 3, 6, 7,
            0, 3, 7, 0, 7, 4,
            1, 5, 6, 1, 6, 2,
        ],
    }
}


@pytest.fixture
def cube_path(tmp_path, monkeypatch, clean_root_logger):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    path = tmp_path / "cube.json"
    path.write_text(json.dumps(CUBE), encoding="utf-8")
    return path


def test_help(cube_path, capsys):
    assert main.run_cli(["--help"]) == 0
    out = capsys.readouterr().out
    assert "--subdivide" in out
    assert ".json" in out
    assert ".stl" in out


def test_info(cube_path, capsys):
    assert main.run_cli(["--info", str(cube_path)]) == 0
    out = capsys.readouterr().out
    assert "n_triangles: 12" in out


def test_stats(cube_path, capsys):
    assert main.run_cli(["--stats", str(cube_path)]) == 0
    out = capsys.readouterr().out
    assert "Triangle Area Statistics:" in out
    assert "Max: 0.500000" in out
    assert "Min: 0.500000" in out
    assert "Avg: 0.500000" in out


def test_inside_and_outside(cube_path, capsys):
    assert main.run_cli(["--inside", str(cube_path), "0.5", "0.25", "0.5"]) == 0
    assert "is inside" in capsys.readouterr().out
    assert main.run_cli(["--inside", str(cube_path), "2", "2", "2"]) == 0
    assert "is outside" in capsys.readouterr().out


def test_inside_rejects_bad_coordinates(cube_path, capsys):
    assert main.run_cli(["--inside", str(cube_path), "a", "b", "c"]) == 2


def test_subdivide_writes_refined_mesh(cube_path, tmp_path, capsys):
    out_path = tmp_path / "fine.json"
    assert main.run_cli(["--subdivide", str(cube_path), "2", str(out_path)]) == 0
    refined = MeshLoader().load(out_path)
    assert refined.n_triangles == 12 * 16


def test_subdivide_default_output_name(cube_path, capsys):
    assert main.run_cli(["--subdivide", str(cube_path)]) == 0
    assert (cube_path.parent / "cube.subdivided1.json").exists()


def test_subdivide_level_guard(cube_path, monkeypatch, capsys):
    assert main.run_cli(["--subdivide", str(cube_path), "0"]) == 2
    assert main.run_cli(["--subdivide", str(cube_path), "many"]) == 2
    too_many = str(main.DEFAULTS.max_subdivision_levels + 1)
    assert main.run_cli(["--subdivide", str(cube_path), too_many]) == 2


def test_full_report_saves_statistics(cube_path, capsys):
    assert main.run_cli([str(cube_path)]) == 0
    doc = json.loads((cube_path.parent / "cube.stats.json").read_text(encoding="utf-8"))
    assert doc["n_triangles"] == 12
    assert doc["statistics"]["max_area"] == pytest.approx(0.5)


def test_invalid_mesh_reports_error(tmp_path, cube_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"geometry_object": {"vertices": [0, 0, 0], "triangles": [0, 1, 2]}}), encoding="utf-8")
    assert main.run_cli(["--stats", str(bad)]) == 1
    out = capsys.readouterr().out
    assert "Invalid topology" in out
    assert main._LOG_PATH is not None
    assert f"see log file: {main._LOG_PATH}" in out


def test_unknown_command(cube_path, capsys):
    assert main.run_cli(["--nope"]) == 2
    assert "Unknown command" in capsys.readouterr().out
