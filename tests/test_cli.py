"""Tests for the command line interface."""
import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from conversation_summarizer import cli
from conversation_summarizer.summaries import SummaryRecord


@pytest.fixture
def run(tmp_path):
    data_dir = tmp_path / "data"

    def invoke(*args):
        return cli.main(["--data-dir", str(data_dir), "--provider", "mock", *args])

    invoke.data_dir = data_dir
    return invoke


class TestSummarizeCommand:
    def test_summarize_arguments(self, run, capsys):
        assert run("summarize", "The quick brown fox jumps.") == 0
        out = capsys.readouterr().out
        assert "Word Count: 5" in out
        assert "Source: cli" in out
        assert "This is a 3-sentence summary of 5 words." in out

        payload = json.loads((run.data_dir / "summaries.json").read_text(encoding="utf-8"))
        assert len(payload) == 1
        assert payload[0]["source"] == "cli"

    def test_summarize_stdin(self, run, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("text from a pipe\n"))
        assert run("summarize", "--source", "stdin") == 0
        assert "Source: stdin" in capsys.readouterr().out

    def test_summarize_file(self, run, capsys, tmp_path):
        source = tmp_path / "notes.txt"
        source.write_text("notes in a file", encoding="utf-8")
        assert run("summarize", "--file", str(source)) == 0
        assert "Word Count: 4" in capsys.readouterr().out

    def test_rejects_blank_text(self, run, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("   \n"))
        with pytest.raises(SystemExit):
            run("summarize")

    def test_backend_failure_exits_non_zero(self, run, capsys, tmp_path):
        exit_code = cli.main(
            [
                "--data-dir",
                str(run.data_dir),
                "--provider",
                "openai",
                "summarize",
                "needs a key",
            ]
        )
        assert exit_code == 1
        assert "Failed to create summary" in capsys.readouterr().err
        assert not (run.data_dir / "summaries.json").exists()


class TestListShowClearExport:
    def test_list_empty(self, run, capsys):
        assert run("list") == 0
        assert "No summaries stored" in capsys.readouterr().out

    def test_list_newest_first(self, run, capsys):
        run("summarize", "older entry")
        run("summarize", "newer entry here")
        capsys.readouterr()

        assert run("list") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[1].split()[:3] == ["Idx", "Id", "Words"]
        assert lines[2].split()[2] == "3"
        assert lines[3].split()[2] == "2"

    def test_show_by_index_and_id(self, run, capsys):
        run("summarize", "show this one")
        record_id = json.loads((run.data_dir / "summaries.json").read_text(encoding="utf-8"))[0]["id"]
        capsys.readouterr()

        assert run("show", "1") == 0
        assert "show this one" in capsys.readouterr().out
        assert run("show", record_id) == 0
        assert f"Id: {record_id}" in capsys.readouterr().out

    def test_show_out_of_range(self, run):
        run("summarize", "only one")
        with pytest.raises(SystemExit):
            run("show", "5")

    def test_clear_and_export_nothing(self, run, capsys, tmp_path):
        run("summarize", "to be cleared")
        assert run("clear") == 0
        capsys.readouterr()

        target = tmp_path / "out.md"
        assert run("export", str(target)) == 0
        assert "No summaries to export" in capsys.readouterr().out
        assert not target.exists()

    def test_clear_with_welcome(self, run, capsys):
        assert run("clear", "--welcome") == 0
        payload = json.loads((run.data_dir / "summaries.json").read_text(encoding="utf-8"))
        assert [entry["source"] for entry in payload] == ["welcome", "welcome"]

    def test_export_file(self, run, capsys, tmp_path):
        run("summarize", "export me")
        target = tmp_path / "out.json"
        assert run("export", str(target)) == 0
        assert f"Summaries exported to {target}" in capsys.readouterr().out
        assert len(json.loads(target.read_text(encoding="utf-8"))) == 1

    def test_export_stdout(self, run, capsys):
        run("summarize", "export me")
        capsys.readouterr()
        assert run("export", "--stdout", "--format", "txt") == 0
        assert capsys.readouterr().out.startswith("AI Conversation Summaries")

    def test_test_connection(self, run, capsys):
        assert run("test-connection") == 0
        assert capsys.readouterr().out.startswith("Connection successful.")

    def test_config(self, run, capsys):
        assert run("config") == 0
        out = capsys.readouterr().out
        assert "provider: mock" in out
        assert "openai_api_key: missing" in out

    def test_invalid_config_file(self, tmp_path):
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("max_summary_length: -2\n", encoding="utf-8")
        with pytest.raises(SystemExit):
            cli.main(["--config", str(config_path), "list"])


class TestFormatting:
    def test_time_ago(self):
        now = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
        assert cli.format_time_ago(now - timedelta(seconds=30), now) == "now"
        assert cli.format_time_ago(now - timedelta(minutes=5), now) == "5m"
        assert cli.format_time_ago(now - timedelta(hours=3), now) == "3h"
        assert cli.format_time_ago(now - timedelta(days=2), now) == "2d"

    def test_describe_record(self):
        now = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
        record = SummaryRecord.create(
            "id", "a b c", "Short.", created_at=now - timedelta(minutes=90)
        )
        assert cli.describe_record(record, now) == "3w • 1h"

    def test_table_truncates_long_summaries(self):
        record = SummaryRecord.create("id", "text", "x" * 200)
        header, lines = cli.format_summary_table([record])
        assert header.startswith("Idx")
        assert lines[0].endswith("...")
        assert len(lines[0].split()[-1]) == cli.SUMMARY_PREVIEW_WIDTH
