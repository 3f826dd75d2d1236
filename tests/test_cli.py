"""
Unit tests for the grid2parquet CLI.

These tests verify that the command-line interface:
1. Runs the flag-free per-mode programs
2. Executes a dry-run without errors
3. Lists available fields correctly
4. Returns a non-zero exit code for directories it cannot open

"""

import os
import subprocess
import sys

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from grid2parquet.cli import main, run_program

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

@pytest.fixture
def pq_dir(tmp_path):
    """One small Parquet file in the layout the re-chunker expects."""
    d = tmp_path / "pq"
    d.mkdir()
    n = 6
    table = pa.table(
        {
            "timestep": pa.array([0] * n, pa.int32()),
            "rowid": pa.array(range(n), pa.int32()),
            "v02": pa.array(np.arange(n) / 2, pa.float32()),
            "v03": pa.array(-np.arange(n) / 2, pa.float32()),
        }
    )
    pq.write_table(table, str(d / "frame.parquet"))
    return d


# ──────────────────────────────────────────────────────────────
# Per-mode programs
# ──────────────────────────────────────────────────────────────

def test_pqt2pqt_program(pq_dir):
    assert run_program("pqt2pqt", [str(pq_dir)]) == 0
    assert sorted(os.listdir(pq_dir)) == ["frame.parquet", "frame.parquet.0"]
    assert pq.read_table(str(pq_dir / "frame.parquet.0")).num_rows == 6


def test_program_empty_directory(tmp_path):
    assert run_program("vti2pqtv2b", [str(tmp_path), str(tmp_path)]) == 0
    assert os.listdir(tmp_path) == []


def test_program_missing_input_dir(tmp_path):
    assert run_program("vti2pqt", [str(tmp_path / "missing"), str(tmp_path)]) == 1


def test_program_missing_output_dir(tmp_path):
    assert run_program("vti2pqt", [str(tmp_path), str(tmp_path / "missing")]) == 1


def test_program_usage_error(tmp_path):
    with pytest.raises(SystemExit) as err:
        run_program("pqt2pqt", [str(tmp_path), str(tmp_path)])
    assert err.value.code == 2


# ──────────────────────────────────────────────────────────────
# Umbrella command
# ──────────────────────────────────────────────────────────────

def test_cli_invalid_folder():
    """Check that the CLI returns a non-zero exit code for a non-existent folder."""
    result = subprocess.run(
        [sys.executable, "-m", "grid2parquet.cli", "vti2pqt", "/non/existent/path"],
        capture_output=True,
        text=True,
    )
    assert result.returncode != 0
    assert "fail to open dir" in result.stderr.lower()


def test_cli_list_fields(pq_dir, capsys):
    assert main(["pqt2pqt", str(pq_dir), "--list-fields"]) == 0
    out = capsys.readouterr().out
    assert "Available fields:" in out
    assert " - v02" in out


def test_cli_list_fields_no_inputs(tmp_path, capsys):
    assert main(["vti2pqt", str(tmp_path), "--list-fields"]) == 0
    assert "No .vti files found" in capsys.readouterr().out


def test_cli_dry_run(pq_dir, caplog):
    with caplog.at_level("INFO", logger="grid2parquet"):
        assert main(["pqt2pqt", str(pq_dir), "--dry-run", "--verbose"]) == 0
    assert os.listdir(pq_dir) == ["frame.parquet"]
    assert "[dry-run]" in caplog.text


def test_cli_skip_failed(tmp_path):
    (tmp_path / "broken.parquet").write_bytes(b"broken")
    assert main(["pqt2pqt", str(tmp_path)]) == 1
    assert main(["pqt2pqt", str(tmp_path), "--skip-failed"]) == 0


def test_cli_unknown_mode(tmp_path):
    with pytest.raises(SystemExit):
        main(["vti2xyz", str(tmp_path)])
