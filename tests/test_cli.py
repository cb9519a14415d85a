"""Tests for CLI commands."""

from unittest.mock import Mock, patch

import pytest
import requests
from click.testing import CliRunner

from pdfwatcher.cli import cli
from pdfwatcher.extractor import ScrapeError
from pdfwatcher.models import Record

DOCS = [
    {"date": "2023-10-25", "type": "Grafik", "title": "Plan A", "url": "http://example.com/a.pdf"},
    {"date": "2023-10-26", "type": "NFZ", "title": "Zarządzenie", "url": "http://example.com/b.pdf"},
]


def _ok_response(data) -> Mock:
    response = Mock()
    response.raise_for_status = Mock()
    response.json.return_value = data
    return response


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Environment pointing the client cache at a temporary database."""
    monkeypatch.chdir(tmp_path)
    return {
        "PDFWATCHER_DB": str(tmp_path / "cache.db"),
        "API_BASE_URL": "http://scraper.example.com",
        "TARGET_URL": None,
    }


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestScrapeCommand:
    """Tests for the scrape command."""

    def test_requires_url(self, runner, env):
        result = runner.invoke(cli, ["scrape"], env=env)

        assert result.exit_code == 1
        assert "TARGET_URL is not set" in result.output

    @patch("pdfwatcher.cli.fetch_documents")
    def test_prints_documents(self, mock_fetch, runner, env):
        mock_fetch.return_value = [Record.from_dict(d) for d in DOCS]

        result = runner.invoke(cli, ["scrape", "--url", "https://intranet.example.com/iso"], env=env)

        assert result.exit_code == 0
        assert "Found 2 document(s)" in result.output
        assert "Plan A" in result.output
        assert mock_fetch.call_args.args == ("https://intranet.example.com/iso",)

    @patch("pdfwatcher.cli.fetch_documents")
    def test_no_documents(self, mock_fetch, runner, env):
        mock_fetch.return_value = []

        result = runner.invoke(cli, ["scrape", "--url", "https://intranet.example.com/iso"], env=env)

        assert result.exit_code == 0
        assert "No documents found." in result.output

    @patch("pdfwatcher.cli.fetch_documents")
    def test_scrape_error(self, mock_fetch, runner, env):
        mock_fetch.side_effect = ScrapeError("Failed to fetch page: 401")

        result = runner.invoke(cli, ["scrape", "--url", "https://intranet.example.com/iso"], env=env)

        assert result.exit_code == 1
        assert "Error: Failed to fetch page: 401" in result.output


class TestClientCommands:
    """Tests for refresh, documents and seen."""

    @patch("pdfwatcher.service.requests.get")
    def test_refresh(self, mock_get, runner, env):
        mock_get.return_value = _ok_response(DOCS)

        result = runner.invoke(cli, ["refresh", "--force"], env=env)

        assert result.exit_code == 0
        assert "Refreshing document list..." in result.output
        assert "2 new document(s)!" in result.output
        assert "Loaded 2 documents." in result.output

    @patch("pdfwatcher.service.requests.get")
    def test_refresh_failure(self, mock_get, runner, env):
        mock_get.side_effect = requests.ConnectionError("down")

        result = runner.invoke(cli, ["refresh"], env=env)

        assert result.exit_code == 0
        assert "Could not load the document list." in result.output

    def test_documents_before_refresh(self, runner, env):
        result = runner.invoke(cli, ["documents"], env=env)

        assert result.exit_code == 0
        assert "No documents cached yet" in result.output

    @patch("pdfwatcher.service.requests.get")
    def test_documents_newest_first_and_search(self, mock_get, runner, env):
        mock_get.return_value = _ok_response(DOCS)
        runner.invoke(cli, ["refresh"], env=env)

        result = runner.invoke(cli, ["documents"], env=env)

        assert result.exit_code == 0
        assert result.output.index("Zarządzenie") < result.output.index("Plan A")

        result = runner.invoke(cli, ["documents", "--search", "grafik"], env=env)

        assert "Plan A" in result.output
        assert "Zarządzenie" not in result.output

        result = runner.invoke(cli, ["documents", "-s", "nothing"], env=env)

        assert "No results." in result.output

    @patch("pdfwatcher.service.requests.get")
    def test_seen_clears_badge(self, mock_get, runner, env):
        mock_get.return_value = _ok_response(DOCS)
        runner.invoke(cli, ["refresh"], env=env)

        result = runner.invoke(cli, ["seen"], env=env)
        assert result.exit_code == 0
        assert "No new documents." in result.output

        mock_get.return_value = _ok_response(DOCS + [dict(DOCS[0], title="Plan C")])
        result = runner.invoke(cli, ["refresh"], env=env)
        assert "1 new document(s)!" in result.output

    def test_seen_without_cache(self, runner, env):
        result = runner.invoke(cli, ["seen"], env=env)

        assert result.exit_code == 0
        assert "No documents cached yet." in result.output


class TestStatusCommand:
    """Tests for the status command."""

    @patch("pdfwatcher.service.requests.get")
    def test_status(self, mock_get, runner, env):
        mock_get.return_value = _ok_response(
            {
                "documentsCount": 2,
                "lastScrapingTime": "2024-01-01T10:00:00+00:00",
                "isScrapingInProgress": False,
                "scrapingError": "Failed to fetch page: 502",
                "uptime": 12.5,
            }
        )

        result = runner.invoke(cli, ["status"], env=env)

        assert result.exit_code == 0
        assert "Documents: 2" in result.output
        assert "2024-01-01T10:00:00+00:00" in result.output
        assert "Error: Failed to fetch page: 502" in result.output

    @patch("pdfwatcher.service.requests.get")
    def test_status_unavailable(self, mock_get, runner, env):
        mock_get.side_effect = requests.ConnectionError("down")

        result = runner.invoke(cli, ["status"], env=env)

        assert result.exit_code == 1
        assert "Server status unavailable" in result.output


class TestWatchCommand:
    """Tests for the watch command."""

    @patch("pdfwatcher.cli.time.sleep", side_effect=KeyboardInterrupt)
    @patch("pdfwatcher.service.EventStreamListener")
    @patch("pdfwatcher.service.requests.get")
    def test_refreshes_and_subscribes(self, mock_get, mock_listener, mock_sleep, runner, env):
        """Test that watch refreshes once, subscribes and shuts down cleanly on Ctrl+C."""
        mock_get.return_value = _ok_response(DOCS)

        result = runner.invoke(cli, ["watch", "--interval", "5"], env=env)

        assert result.exit_code == 0
        assert "Loaded 2 documents." in result.output
        mock_get.assert_called_once_with("http://scraper.example.com/api/pdfs", timeout=30)
        assert mock_listener.call_args.args[0] == "http://scraper.example.com/api/events"
        mock_listener.return_value.start.assert_called_once()
        mock_listener.return_value.start.return_value.stop.assert_called_once()
        mock_sleep.assert_called_once_with(5)


class TestConfigErrors:
    """Tests for invalid configuration."""

    def test_invalid_number(self, runner, env):
        result = runner.invoke(cli, ["documents"], env=dict(env, SCRAPING_INTERVAL="hourly"))

        assert result.exit_code == 1
        assert "Error: SCRAPING_INTERVAL must be an integer" in result.output
