"""End-to-end tests for the command line interface"""

import json

import pytest
from click.testing import CliRunner

from slack_transform.cli import cli
from slack_transform.import_stats import ImportFileStats
from tests.fixtures import sample_export_zip

CLEAN_ENV = {"REDIS_ENDPOINT": None, "REDIS_LOGIN": None, "REDIS_PASSWORD": None}


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run from an empty directory so no local config file is picked up"""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def export_zip(workspace):
    return sample_export_zip(workspace / "export.zip")


def run_transform(export_zip, workspace, *extra):
    runner = CliRunner()
    args = [
        "transform",
        "--team", "myteam",
        "--file", str(export_zip),
        "--output", str(workspace / "bulk-export.jsonl"),
        "--attachments-dir", str(workspace / "attachments"),
        "--no-debug",
        *extra,
    ]
    return runner.invoke(cli, args, env=CLEAN_ENV)


def read_lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestTransformCommand:
    """Test the transform command end to end"""

    def test_transform_export(self, export_zip, workspace):
        result = run_transform(export_zip, workspace)

        assert result.exit_code == 0, result.output
        assert "Transformation succeeded" in result.output

        lines = read_lines(workspace / "bulk-export.jsonl")
        assert [line["type"] for line in lines] == [
            "version", "channel", "user", "user", "direct_channel", "post", "post", "direct_post",
        ]

        thread = lines[5]["post"]
        assert thread["team"] == "myteam"
        assert thread["channel"] == "engineering"
        assert thread["message"] == "**Deploy** starts now"
        assert thread["create_at"] == 1697654321000
        assert [reply["message"] for reply in thread["replies"]] == ["Reply from @john.doe"]

        file_post = lines[6]["post"]
        assert file_post["attachments"] == [{"path": str(workspace / "attachments" / "F001_deploy.log")}]
        assert (workspace / "attachments" / "F001_deploy.log").read_bytes() == b"deploy ok\n"

        direct = lines[7]["direct_post"]
        assert direct["channel_members"] == ["john.doe", "jane.smith"]
        assert direct["message"] == "hi"

    def test_skip_attachments(self, export_zip, workspace):
        result = run_transform(export_zip, workspace, "--skip-attachments")

        assert result.exit_code == 0, result.output
        assert not (workspace / "attachments").exists()
        posts = [line["post"] for line in read_lines(workspace / "bulk-export.jsonl") if line["type"] == "post"]
        assert all(post["attachments"] == [] for post in posts)

    def test_skip_convert_posts(self, export_zip, workspace):
        result = run_transform(export_zip, workspace, "--skip-convert-posts", "-a")

        assert result.exit_code == 0, result.output
        lines = read_lines(workspace / "bulk-export.jsonl")
        assert lines[5]["post"]["message"] == "*Deploy* starts now"

    def test_skip_channels(self, export_zip, workspace):
        result = run_transform(export_zip, workspace, "--skip-channels", "-a")

        assert result.exit_code == 0, result.output
        types = [line["type"] for line in read_lines(workspace / "bulk-export.jsonl")]
        assert types == ["version", "user", "user"]

    def test_config_file_options(self, export_zip, workspace):
        (workspace / ".slack-transform.yaml").write_text("transform:\n  skip_posts: true\n  skip_attachments: true\n")

        result = run_transform(export_zip, workspace)

        assert result.exit_code == 0, result.output
        types = [line["type"] for line in read_lines(workspace / "bulk-export.jsonl")]
        assert "post" not in types
        assert "channel" in types

    def test_invalid_redis_endpoint(self, export_zip, workspace):
        result = run_transform(export_zip, workspace, "--redis-endpoint", "nohost")

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_output_is_directory(self, export_zip, workspace):
        output_dir = workspace / "out"
        output_dir.mkdir()

        result = CliRunner().invoke(cli, [
            "transform", "-t", "myteam", "-f", str(export_zip), "-o", str(output_dir), "-a", "--no-debug",
        ], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "is a directory" in result.output

    def test_corrupt_archive(self, workspace):
        broken = workspace / "broken.zip"
        broken.write_bytes(b"not a zip")

        result = run_transform(broken, workspace, "-a")

        assert result.exit_code == 1
        assert "Cannot read" in result.output

    def test_unwritable_output(self, export_zip, workspace):
        result = CliRunner().invoke(cli, [
            "transform", "-t", "myteam", "-f", str(export_zip),
            "-o", str(workspace / "missing" / "bulk-export.jsonl"), "-a", "--no-debug",
        ], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "Cannot write" in result.output


class TestStatsCommand:
    """Test summarizing a produced import file"""

    @pytest.fixture
    def import_file(self, export_zip, workspace):
        result = run_transform(export_zip, workspace, "-a")
        assert result.exit_code == 0, result.output
        return workspace / "bulk-export.jsonl"

    def test_import_file_stats(self, import_file):
        stats = ImportFileStats(str(import_file))

        assert stats.line_counts() == {
            "channel": 1,
            "direct_channel": 1,
            "direct_post": 1,
            "post": 2,
            "user": 2,
            "version": 1,
        }
        assert stats.thread_counts() == [
            {"channel": "(direct)", "threads": 1, "replies": 0},
            {"channel": "engineering", "threads": 2, "replies": 1},
        ]

    def test_stats_json(self, import_file):
        result = CliRunner().invoke(cli, ["stats", str(import_file), "--format", "json"])

        assert result.exit_code == 0, result.output
        summary = json.loads(result.output)
        assert summary["lines"]["post"] == 2
        assert summary["channels"][1]["channel"] == "engineering"

    def test_stats_table(self, import_file):
        result = CliRunner().invoke(cli, ["stats", str(import_file)])

        assert result.exit_code == 0, result.output
        assert "Import File Statistics" in result.output
        assert "engineering" in result.output
