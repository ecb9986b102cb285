"""
Operator CLI (scripts/run_ingest.py).

Runs ``main(argv)`` against a temporary SQLite file and checks exit codes
and printed summaries.
"""

import importlib.util
import re
from pathlib import Path

import pytest

from recovery_kernel.db.engine import reset_engine

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_ingest.py"

EXPORT = (
    "TRGID,ReceivedOn,OrderClosedDate,Sale Price (Discount applied),"
    "Marketplace Profile Sold On,Tag_ClientSource,CategoryName\n"
    "T1,2/1/2025,2/20/2025,$50.00,eBay,WMUS,Home\n"
    "T2,2/2/2025,,,,WMUS,Toys\n"
)

REFERENCE = (
    "trgid,3PMP,checkIn,marketing,merchant,overbox,packaging,pps,refund,refurb,revshare,shipping\n"
    "T1,$6.00,0,0,0,0,0,0,0,0,0,0\n"
)


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("run_ingest", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def db_args(tmp_path):
    yield ["--db-url", f"sqlite:///{tmp_path / 'cli.db'}"]
    reset_engine()


@pytest.fixture
def export_file(tmp_path):
    path = tmp_path / "WMUS Sales 03.01.2025.csv"
    path.write_text(EXPORT)
    return path


class TestRunIngestCli:

    def test_probe(self, cli, db_args, export_file, capsys):
        assert cli.main(db_args + ["probe", str(export_file)]) == 0

        out = capsys.readouterr().out
        assert "Rows: 2" in out
        assert "Lines: 3" in out

    def test_ingest_then_delete(self, cli, db_args, export_file, capsys):
        assert cli.main(db_args + ["ingest", str(export_file), "--quiet"]) == 0
        out = capsys.readouterr().out
        assert "Status: completed" in out
        assert "business date: 2025-03-01" in out

        upload_id = re.search(r"File upload: ([0-9a-f-]{36})", out).group(1)
        assert cli.main(db_args + ["delete", upload_id]) == 0
        assert "Deleted 2 events" in capsys.readouterr().out

    def test_ingest_prints_progress(self, cli, db_args, export_file, capsys):
        assert cli.main(db_args + ["ingest", str(export_file), "--batch-size", "1"]) == 0

        out = capsys.readouterr().out
        assert "batch size 1" in out
        assert "100.00%" in out

    def test_delete_unknown_upload(self, cli, db_args, capsys):
        code = cli.main(db_args + ["delete", "00000000-0000-0000-0000-000000000000"])

        assert code == 1
        assert "File upload not found" in capsys.readouterr().err

    def test_missing_header_column_fails(self, cli, db_args, tmp_path, capsys):
        path = tmp_path / "Sales 03.01.2025.csv"
        path.write_text("Serial,Price\nA,1\n")

        assert cli.main(db_args + ["ingest", str(path), "--quiet"]) == 1
        assert "MISSING_REQUIRED_COLUMN" in capsys.readouterr().err

    def test_variance(self, cli, db_args, export_file, tmp_path, capsys):
        reference = tmp_path / "expected.csv"
        reference.write_text(REFERENCE)
        cli.main(db_args + ["ingest", str(export_file), "--quiet"])
        capsys.readouterr()

        assert cli.main(db_args + ["variance", str(reference)]) == 0
        assert "Units compared: 1" in capsys.readouterr().out

    def test_funnel(self, cli, db_args, export_file, capsys):
        cli.main(db_args + ["ingest", str(export_file), "--quiet"])
        capsys.readouterr()

        assert cli.main(db_args + ["funnel"]) == 0
        out = capsys.readouterr().out
        assert "Received" in out
        assert "Sold" in out

    def test_missing_config(self, cli, db_args, tmp_path, capsys):
        code = cli.main(db_args + ["--config", str(tmp_path / "absent.yaml"), "funnel"])

        assert code == 1
        assert "Failed to load config" in capsys.readouterr().err
