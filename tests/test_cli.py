# tests/test_cli.py
"""Tests for the spanlabel CLI."""

import json

from click.testing import CliRunner

GOLD = [{"start": 2, "end": 8, "role": "subject.identity", "text": "cowboy"}]


def _write_dataset(path, predicted):
    path.write_text(
        json.dumps({"text": "A cowboy rides", "predicted": predicted, "ground_truth": GOLD}) + "\n",
        encoding="utf-8",
    )
    return path


class TestCLI:

    def test_help(self):
        from spanlabel.cli import cli

        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("label", "evaluate", "config"):
            assert command in result.output

    def test_version(self):
        from spanlabel.cli import cli

        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_config_show(self):
        from spanlabel.cli import cli

        result = CliRunner().invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "max_spans" in result.output
        assert "camera_review_mode" in result.output

    def test_config_without_subcommand_shows(self):
        from spanlabel.cli import cli

        result = CliRunner().invoke(cli, ["config"])
        assert result.exit_code == 0
        assert "chunk_max_words" in result.output

    def test_config_masks_api_key(self, monkeypatch):
        from spanlabel.cli import cli

        monkeypatch.setenv("SPANLABEL_API_KEY", "sk-abcdefghijklmnop")
        result = CliRunner().invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "sk-abcdefghijklmnop" not in result.output


class TestLabelCommand:

    def test_label_requires_text(self):
        from spanlabel.cli import cli

        result = CliRunner().invoke(cli, ["label"])
        assert result.exit_code == 2

    def test_label_rejects_text_and_file(self, tmp_path):
        from spanlabel.cli import cli

        path = tmp_path / "concept.txt"
        path.write_text("A cowboy rides at dawn", encoding="utf-8")
        result = CliRunner().invoke(cli, ["label", "A dog", "--file", str(path)])
        assert result.exit_code == 2

    def test_label_json_via_fast_path(self):
        from spanlabel.cli import cli

        text = "Wide shot, the camera pans left across a foggy harbor at golden hour, 35mm film, 24fps."
        result = CliRunner().invoke(cli, ["label", text, "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["meta"]["source"] == "fastpath"
        assert payload["isAdversarial"] is False
        assert payload["meta"]["nlpAttempted"] is True
        for span in payload["spans"]:
            assert text[span["start"]:span["end"]] == span["text"]

    def test_label_table_and_output_file(self, tmp_path):
        from spanlabel.cli import cli

        out = tmp_path / "result.json"
        text = "Wide shot, the camera pans left across a foggy harbor at golden hour, 35mm film, 24fps."
        result = CliRunner().invoke(cli, ["label", text, "--timings", "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "SPANS" in result.output
        saved = json.loads(out.read_text(encoding="utf-8"))
        assert "total" in saved["meta"]["timings"]


class TestEvaluateCommand:

    def test_passing_dataset(self, tmp_path):
        from spanlabel.cli import cli

        path = _write_dataset(tmp_path / "eval.jsonl", GOLD)
        result = CliRunner().invoke(cli, ["evaluate", str(path)])
        assert result.exit_code == 0, result.output
        assert "All quality targets met" in result.output

    def test_failing_dataset_exits_nonzero(self, tmp_path):
        from spanlabel.cli import cli

        path = _write_dataset(tmp_path / "eval.jsonl", [])
        result = CliRunner().invoke(cli, ["evaluate", str(path)])
        assert result.exit_code == 1
        assert "below target" in result.output

    def test_json_report(self, tmp_path):
        from spanlabel.cli import cli

        path = _write_dataset(tmp_path / "eval.jsonl", GOLD)
        result = CliRunner().invoke(cli, ["evaluate", str(path), "--json"])
        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["summary"]["relaxed_f1"] == 1.0
        assert payload["checks"]["passed"] is True

    def test_malformed_dataset(self, tmp_path):
        from spanlabel.cli import cli

        path = tmp_path / "bad.jsonl"
        path.write_text("{oops\n", encoding="utf-8")
        result = CliRunner().invoke(cli, ["evaluate", str(path)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output
