"""Tests for the DR form CLI and CSV export."""

import csv
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from PIL import Image

from src.cli import (
    _find_images,
    _print_summary,
    _result_row,
    _write_csv,
    extract_single,
    init_db,
    main,
    process_folder,
    to_payload,
)
from src.extraction.dr_form_parser import ExtractedResult, VoterStats
from src.ocr.dr_form_processor import ProcessResult, fallback_result
from src.utils.config import AppConfig, DatabaseConfig


def _make_test_image(path: Path) -> None:
    """Create a minimal test PNG image at the given path."""
    img = Image.fromarray(np.zeros((100, 200, 3), dtype=np.uint8))
    img.save(path, format="PNG")


def _success() -> ProcessResult:
    return ProcessResult(
        success=True,
        results=[ExtractedResult("John Doe", 234), ExtractedResult("Jane Smith", 189)],
        voter_stats=VoterStats(200, 210, 13, 423),
    )


class TestFindImages:
    """Tests for image discovery."""

    def test_find_mixed_extensions(self, tmp_path: Path) -> None:
        _make_test_image(tmp_path / "a.png")
        (tmp_path / "b.jpg").write_bytes(b"")
        (tmp_path / "notes.txt").write_text("ignore")
        names = [p.name for p in _find_images(tmp_path)]
        assert names == ["a.png", "b.jpg"]

    def test_find_uppercase_extensions(self, tmp_path: Path) -> None:
        (tmp_path / "FORM.JPG").write_bytes(b"")
        assert [p.name for p in _find_images(tmp_path)] == ["FORM.JPG"]

    def test_find_no_images(self, tmp_path: Path) -> None:
        assert _find_images(tmp_path) == []


class TestPayload:
    """Tests for the wire-format payload."""

    def test_to_payload(self) -> None:
        payload = to_payload(_success())
        assert payload["success"] is True
        assert payload["error"] is None
        assert payload["results"][0] == {"candidateName": "John Doe", "votes": 234}
        assert payload["voterStats"] == {
            "maleVoters": 200,
            "femaleVoters": 210,
            "wastedBallots": 13,
            "totalVoters": 423,
        }

    def test_to_payload_fallback(self) -> None:
        payload = to_payload(fallback_result("no text"))
        assert payload["success"] is False
        assert len(payload["results"]) == 2


class TestCSVExport:
    """Tests for CSV row building and writing."""

    def test_result_row_success(self) -> None:
        row = _result_row("a.png", _success())
        assert row["status"] == "success"
        assert row["John Doe"] == 234
        assert row["total_voters"] == 423

    def test_result_row_failure_has_no_candidates(self) -> None:
        row = _result_row("a.png", fallback_result("no text"))
        assert row["status"] == "failed"
        assert row["error"] == "no text"
        assert "" not in row

    def test_meta_columns_first(self, tmp_path: Path) -> None:
        output = tmp_path / "out" / "results.csv"
        rows = [
            {**_result_row("a.png", _success()), "processing_time_s": 0.5},
            {**_result_row("b.png", fallback_result("x")), "processing_time_s": 0.1},
        ]
        _write_csv(rows, output)

        with open(output) as f:
            reader = csv.DictReader(f)
            records = list(reader)
            header = reader.fieldnames
        assert header[:3] == ["filename", "status", "processing_time_s"]
        assert header[-2:] == ["Jane Smith", "John Doe"]
        assert records[0]["John Doe"] == "234"
        assert records[1]["John Doe"] == ""

    def test_write_csv_empty(self, tmp_path: Path) -> None:
        output = tmp_path / "results.csv"
        _write_csv([], output)
        assert not output.exists()

    def test_print_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        _print_summary({"total": 3, "successful": 2, "failed": 1}, Path("r.csv"))
        captured = capsys.readouterr()
        assert "DR Form Batch Complete" in captured.out
        assert "Failed:     1" in captured.out


class TestProcessFolder:
    """Tests for batch processing with a mocked processor."""

    @patch("src.cli.DRFormProcessor")
    @patch("src.cli.load_config")
    def test_process_folder_counts(
        self, mock_config: MagicMock, mock_processor_cls: MagicMock, tmp_path: Path
    ) -> None:
        mock_config.return_value = AppConfig()
        mock_processor_cls.return_value.process.side_effect = [
            _success(),
            fallback_result("No candidate results could be extracted"),
        ]
        _make_test_image(tmp_path / "a.png")
        _make_test_image(tmp_path / "b.png")
        output = tmp_path / "results.csv"

        summary = process_folder(tmp_path, output)
        assert summary == {"total": 2, "successful": 1, "failed": 1}
        assert output.exists()

    @patch("src.cli.load_config")
    def test_process_folder_empty(self, mock_config: MagicMock, tmp_path: Path) -> None:
        mock_config.return_value = AppConfig()
        summary = process_folder(tmp_path, tmp_path / "results.csv")
        assert summary == {"total": 0, "successful": 0, "failed": 0}

    @patch("src.cli.DRFormProcessor")
    @patch("src.cli.load_config")
    def test_process_folder_verbose(
        self,
        mock_config: MagicMock,
        mock_processor_cls: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        mock_config.return_value = AppConfig()
        mock_processor_cls.return_value.process.return_value = _success()
        _make_test_image(tmp_path / "a.png")

        process_folder(tmp_path, tmp_path / "results.csv", verbose=True)
        assert "Processing [1/1]: a.png" in capsys.readouterr().out

    @patch("src.cli.DRFormProcessor")
    @patch("src.cli.load_config")
    def test_extract_single(
        self, mock_config: MagicMock, mock_processor_cls: MagicMock, tmp_path: Path
    ) -> None:
        mock_config.return_value = AppConfig()
        mock_processor_cls.return_value.process.return_value = _success()
        path = tmp_path / "a.png"

        payload = extract_single(path)
        assert payload["success"] is True
        mock_processor_cls.return_value.process.assert_called_once_with(str(path))
        mock_processor_cls.assert_called_once_with(
            mock_config.return_value, allow_local_files=True
        )


class TestInitDb:
    """Tests for database initialisation."""

    @patch("src.cli.load_config")
    def test_init_db_with_seed(self, mock_config: MagicMock, tmp_path: Path) -> None:
        url = f"sqlite:///{tmp_path / 'votesnap.db'}"
        mock_config.return_value = AppConfig(database=DatabaseConfig(url=url))
        assert init_db(seed=True) is True
        assert init_db(seed=True) is False
        assert (tmp_path / "votesnap.db").exists()

    @patch("src.cli.load_config")
    def test_init_db_without_seed(self, mock_config: MagicMock) -> None:
        mock_config.return_value = AppConfig(database=DatabaseConfig(url="sqlite://"))
        assert init_db() is False


class TestMain:
    """Tests for argument parsing and dispatch."""

    def test_no_command_shows_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0

    def test_batch_nonexistent_directory(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["batch", "/nonexistent/dir"])
        assert exc_info.value.code == 1
        assert "is not a directory" in capsys.readouterr().err

    def test_extract_nonexistent_file(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", "/nonexistent/form.png"])
        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err

    @patch("src.cli.process_folder")
    def test_batch_command(self, mock_pf: MagicMock, tmp_path: Path) -> None:
        main(["batch", str(tmp_path), "-o", str(tmp_path / "out.csv"), "-v"])
        mock_pf.assert_called_once_with(tmp_path, tmp_path / "out.csv", True)

    @patch("src.cli.extract_single")
    def test_extract_command_writes_json(
        self, mock_extract: MagicMock, tmp_path: Path
    ) -> None:
        image = tmp_path / "form.png"
        _make_test_image(image)
        mock_extract.return_value = to_payload(_success())
        output = tmp_path / "out" / "form.json"

        main(["extract", str(image), "-o", str(output)])
        assert json.loads(output.read_text())["results"][1]["votes"] == 189

    @patch("src.cli.init_db")
    def test_init_db_command(
        self, mock_init: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        mock_init.return_value = True
        main(["init-db", "--seed"])
        mock_init.assert_called_once_with(True)
        assert "with demo data" in capsys.readouterr().out
