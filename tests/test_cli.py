"""Tests for the rxfold command line."""

import json
import sys

import pytest

from rxfold.cli import main


def _run(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["rxfold", *args])
    main()


@pytest.fixture
def paths(tmp_path):
    return {"db": str(tmp_path / "cli.db"), "config": str(tmp_path / "rxfold.toml")}


class TestImportCommand:
    def test_import_prints_summary(self, monkeypatch, capsys, paths, walgreens_csv):
        _run(monkeypatch, "import", walgreens_csv, "--db", paths["db"], "--config", paths["config"])
        out = capsys.readouterr().out
        assert "Imported walgreens export" in out
        assert "Patient: Rune Larsen" in out
        assert "medicinesCreated" in out

    def test_import_json(self, monkeypatch, capsys, paths, generic_csv):
        _run(monkeypatch, "import", generic_csv, "--db", paths["db"],
             "--config", paths["config"], "--json", "--user-id", "u7")
        data = json.loads(capsys.readouterr().out)
        assert data["format"] == "generic"
        assert data["summary"]["totalRecords"] == 2
        assert {m["user_id"] for m in data["medicines"]} == {"u7"}

    def test_import_uses_config_user(self, monkeypatch, capsys, paths, walgreens_csv):
        with open(paths["config"], "w") as f:
            f.write('[user]\nid = "rune"\nfirst_name = "Rune"\nlast_name = "Larsen"\n')
        _run(monkeypatch, "import", walgreens_csv, "--db", paths["db"], "--config", paths["config"])
        capsys.readouterr()
        _run(monkeypatch, "medicines", "--db", paths["db"], "--user-id", "rune")
        out = capsys.readouterr().out
        assert "Cyclobenzaprine" in out
        assert "Rune Larsen" in out

    def test_unsupported_file(self, monkeypatch, capsys, paths, tmp_path):
        path = tmp_path / "records.txt"
        path.write_text("nope")
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "import", str(path), "--db", paths["db"], "--config", paths["config"])
        assert exc.value.code == 1
        assert "Error: Unsupported file type: .txt" in capsys.readouterr().err


class TestBrowseCommands:
    def test_summary_and_logs(self, monkeypatch, capsys, paths, walgreens_csv):
        _run(monkeypatch, "import", walgreens_csv, "--db", paths["db"],
             "--config", paths["config"], "--user-id", "local")
        capsys.readouterr()

        _run(monkeypatch, "summary", "--db", paths["db"])
        out = capsys.readouterr().out
        assert "medication_logs" in out
        assert "Import History" in out

        _run(monkeypatch, "logs", "--db", paths["db"])
        out = capsys.readouterr().out
        assert "2025-09-08" in out
        assert "Rx#: 185848411643" in out

    def test_empty_medicines(self, monkeypatch, capsys, paths):
        _run(monkeypatch, "medicines", "--db", paths["db"])
        assert "No medicines found." in capsys.readouterr().out

    def test_init_config(self, monkeypatch, capsys, paths):
        _run(monkeypatch, "init-config", "--output", paths["config"])
        assert "Config written to" in capsys.readouterr().out
        with open(paths["config"]) as f:
            assert "[import]" in f.read()

    def test_no_command(self, monkeypatch):
        with pytest.raises(SystemExit):
            _run(monkeypatch)


class TestSetupLogging:
    def test_sets_root_level(self):
        import logging

        from rxfold.logging_config import setup_logging

        setup_logging("debug")
        assert logging.getLogger().level == logging.DEBUG
        setup_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level(self):
        from rxfold.logging_config import setup_logging

        with pytest.raises(ValueError):
            setup_logging("chatty")
