"""Integration tests for CLI commands."""

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from npm_scout import __version__
from npm_scout.cli import app
from npm_scout.csv_export import read_csv, write_csv
from npm_scout.errors import FeedUnavailable, WebhookError
from npm_scout.models import DiscoveryResult, PackageInfo

runner = CliRunner()


def _package(name="fresh-tool") -> PackageInfo:
    return PackageInfo(
        name=name,
        latest_version="0.2.0",
        description="Brand new tool",
        first_published_at=datetime(2025, 6, 14, tzinfo=timezone.utc),
        npm_url=f"https://www.npmjs.com/package/{name}",
        version_count=2,
        has_executable=True,
    )


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger = logging.getLogger("npm_scout")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_discover(monkeypatch):
    """Replace the network-backed discovery with a recorder."""
    calls = []
    state = {"packages": [_package()], "error": None}

    async def _discover(spec, budget, now):
        calls.append((spec, budget, now))
        if state["error"] is not None:
            raise state["error"]
        result = DiscoveryResult(packages=list(state["packages"]), pages_fetched=2, candidates_checked=37)
        for pkg in result.packages:
            result.track_published(pkg.first_published_at)
        result.stop_reason = "feed_exhausted"
        return result

    monkeypatch.setattr("npm_scout.cli.discover_packages", _discover)
    monkeypatch.setattr("npm_scout.cli.claude_available", lambda: False)
    _discover.calls = calls
    _discover.state = state
    return _discover


class TestRootCommand:

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"npm-scout v{__version__}" in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "search" in result.output
        assert "process-csv" in result.output
        assert "config" in result.output


class TestSearchCommand:

    def test_non_interactive_run_writes_csv(self, fake_discover, temp_dir: Path):
        out_dir = temp_dir / "out"
        result = runner.invoke(
            app, ["search", "--no-input", "--range", "3d", "--search", "Tool", "-o", str(out_dir)]
        )

        assert result.exit_code == 0, result.output
        assert "Checked 37 package(s) across 2 page(s)." in result.output
        assert "Found 1 package(s)!" in result.output
        assert "CSV file saved" in result.output

        (spec, budget, _now) = fake_discover.calls[0]
        assert spec.search_terms == ("tool",)
        assert spec.min_source_lines is None
        assert spec.require_executable is False
        assert budget.recency_window_days == 3
        assert budget.page_size == 200
        assert budget.max_results == 30

        (csv_file,) = out_dir.glob("npm-packages-*.csv")
        assert [p.name for p in read_csv(csv_file)] == ["fresh-tool"]

    def test_options_reach_budget_and_spec(self, fake_discover, temp_dir: Path):
        result = runner.invoke(
            app,
            [
                "search", "--no-input", "-r", "2w", "--whole-word", "--min-lines", "0",
                "--max-results", "5", "--changes-limit", "50", "--max-pages", "3",
                "-c", "4", "--require-bin", "-o", str(temp_dir),
            ],
        )

        assert result.exit_code == 0, result.output
        spec, budget, _ = fake_discover.calls[0]
        assert spec.partial_match is False
        assert spec.min_source_lines == 0
        assert spec.require_executable is True
        assert (budget.recency_window_days, budget.max_results, budget.page_size) == (14, 5, 50)
        assert (budget.max_pages, budget.concurrency) == (3, 4)

    def test_config_defaults_apply(self, fake_discover, temp_dir: Path):
        runner.invoke(app, ["config", "set", "discovery.range", "1m"])
        runner.invoke(app, ["config", "set", "discovery.concurrency", "2"])

        result = runner.invoke(app, ["search", "--no-input", "-o", str(temp_dir)])

        assert result.exit_code == 0, result.output
        _, budget, _ = fake_discover.calls[0]
        assert budget.recency_window_days == 30
        assert budget.concurrency == 2

    def test_interactive_prompts(self, fake_discover, temp_dir: Path):
        # query, range, partial match, min lines, require bin, summaries
        answers = "parser\n3d\ny\n50\nn\nn\n"
        result = runner.invoke(app, ["search", "-o", str(temp_dir)], input=answers)

        assert result.exit_code == 0, result.output
        spec, budget, _ = fake_discover.calls[0]
        assert budget.recency_window_days == 3
        assert spec.search_terms == ("parser",)
        assert spec.partial_match is True
        assert spec.min_source_lines == 50
        assert "Claude Code CLI not detected" in result.output

    def test_search_prompt_comes_before_range(self, fake_discover, temp_dir: Path):
        result = runner.invoke(app, ["search", "-o", str(temp_dir)], input="\n\n\n\nn\n")

        assert result.exit_code == 0, result.output
        assert result.output.index("Search for packages") < result.output.index("Date range for packages")

    def test_min_lines_prompt_rejects_non_ascii_digits(self, fake_discover, temp_dir: Path):
        answers = "\n3d\n\u00b2\n-4\n12\nn\nn\n"
        result = runner.invoke(app, ["search", "-o", str(temp_dir)], input=answers)

        assert result.exit_code == 0, result.output
        assert result.output.count("Must be a non-negative number or empty") == 2
        spec, _, _ = fake_discover.calls[0]
        assert spec.min_source_lines == 12

    def test_no_results(self, fake_discover, temp_dir: Path):
        fake_discover.state["packages"] = []
        result = runner.invoke(app, ["search", "--no-input", "-o", str(temp_dir)])

        assert result.exit_code == 0
        assert "No new packages found" in result.output
        assert list(temp_dir.iterdir()) == []

    def test_invalid_range(self, fake_discover):
        result = runner.invoke(app, ["search", "--no-input", "--range", "soon"])
        assert result.exit_code == 2
        assert fake_discover.calls == []

    def test_feed_unavailable_exits_nonzero(self, fake_discover, temp_dir: Path):
        fake_discover.state["error"] = FeedUnavailable("Change feed returned 503")
        result = runner.invoke(app, ["search", "--no-input", "-o", str(temp_dir)])

        assert result.exit_code == 1
        assert "Change feed unavailable" in result.output

    def test_posts_to_webhook_from_env(self, fake_discover, temp_dir: Path, monkeypatch):
        posted = []

        def _post(packages, url):
            posted.append((list(packages), url))
            return 1

        monkeypatch.setattr("npm_scout.cli.post_packages", _post)
        monkeypatch.setenv("MATTERMOST_WEBHOOK_URL", "https://chat.test/hooks/x")

        result = runner.invoke(app, ["search", "--no-input", "-o", str(temp_dir)])

        assert result.exit_code == 0, result.output
        assert posted[0][1] == "https://chat.test/hooks/x"
        assert "Posted to Mattermost" in result.output

    def test_webhook_failure_exits_nonzero(self, fake_discover, temp_dir: Path, monkeypatch):
        def _post(packages, url):
            raise WebhookError("Mattermost webhook failed: 500")

        monkeypatch.setattr("npm_scout.cli.post_packages", _post)
        runner.invoke(app, ["config", "set", "output.webhook_url", "https://chat.test/hooks/y"])

        result = runner.invoke(app, ["search", "--no-input", "-o", str(temp_dir)])

        assert result.exit_code == 1
        assert "Mattermost webhook failed" in result.output
        assert len(list(temp_dir.glob("*.csv"))) == 1


class TestProcessCsvCommand:

    def test_reload_and_save(self, temp_dir: Path):
        source = write_csv([_package("a"), _package("b")], temp_dir / "in")
        out_dir = temp_dir / "again"

        result = runner.invoke(app, ["process-csv", str(source), "--no-input", "-o", str(out_dir)])

        assert result.exit_code == 0, result.output
        assert "Loaded 2 package(s) from CSV!" in result.output
        (written,) = out_dir.glob("*.csv")
        assert [p.name for p in read_csv(written)] == ["a", "b"]

    def test_bad_csv(self, temp_dir: Path):
        path = temp_dir / "bad.csv"
        path.write_text("Foo,Bar\n1,2\n", encoding="utf-8")

        result = runner.invoke(app, ["process-csv", str(path), "--no-input"])

        assert result.exit_code == 1
        assert "Failed to process CSV" in result.output

    def test_undecodable_csv(self, temp_dir: Path):
        path = temp_dir / "binary.csv"
        path.write_bytes(b"foo\xff")

        result = runner.invoke(app, ["process-csv", str(path), "--no-input"])

        assert result.exit_code == 1
        assert "Failed to process CSV" in result.output
        assert not isinstance(result.exception, UnicodeDecodeError)

    def test_missing_file(self, temp_dir: Path):
        result = runner.invoke(app, ["process-csv", str(temp_dir / "nope.csv")])
        assert result.exit_code != 0

    def test_summaries_requested_without_claude(self, temp_dir: Path, monkeypatch):
        monkeypatch.setattr("npm_scout.cli.claude_available", lambda: False)
        source = write_csv([_package()], temp_dir / "in")

        result = runner.invoke(
            app, ["process-csv", str(source), "--no-input", "--summaries", "-o", str(temp_dir / "out")]
        )

        assert result.exit_code == 0, result.output
        assert "Claude Code CLI not found" in result.output


class TestConfigCommands:

    def test_show_defaults(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "discovery.page_size" in result.output
        assert "200" in result.output

    def test_set_and_show_masks_webhook(self):
        result = runner.invoke(app, ["config", "set", "output.webhook_url", "https://secret.test/h"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["config", "show"])
        assert "(set)" in result.output
        assert "secret.test" not in result.output

    def test_set_int(self):
        result = runner.invoke(app, ["config", "set", "discovery.page_size", "50"])
        assert result.exit_code == 0
        assert "discovery.page_size = 50" in result.output

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "nope.key", "1"])
        assert result.exit_code == 1
        assert "Unknown setting" in result.output

    def test_set_bad_int(self):
        result = runner.invoke(app, ["config", "set", "discovery.max_pages", "many"])
        assert result.exit_code == 1
        assert "not a valid value" in result.output

    def test_reset(self):
        runner.invoke(app, ["config", "set", "discovery.page_size", "50"])
        result = runner.invoke(app, ["config", "reset"])
        assert result.exit_code == 0
        assert "reset to defaults" in result.output
