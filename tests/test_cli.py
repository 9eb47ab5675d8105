"""Tests for the command-line interface."""

import httpx
import orjson
import pytest
from typer.testing import CliRunner

from conftest import repos
from trendwatch import __version__
from trendwatch.cli.main import app
from trendwatch.core.orchestrator import runner as runner_module


cli = CliRunner()


@pytest.fixture
def github(monkeypatch):
    """Route the GitHub controller through a mock transport.

    Returns the dict of page number -> response factory used by the mock.
    """
    pages = {}
    real_build = runner_module.build_github_controller

    def handler(request):
        page = int(request.url.params["page"])
        factory = pages.get(page)
        if factory is None:
            return httpx.Response(200, json={"items": []})
        return factory()

    def build(config, **kwargs):
        return real_build(config, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(runner_module, "build_github_controller", build)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return pages


def test_version():
    result = cli.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_init_writes_config(tmp_path):
    path = tmp_path / "configs" / "app.yaml"

    result = cli.invoke(app, ["init", "--path", str(path)])

    assert result.exit_code == 0
    assert path.exists()


def test_init_refuses_to_overwrite(tmp_path):
    path = tmp_path / "app.yaml"
    path.write_text("feed: {}\n")

    result = cli.invoke(app, ["init", "--path", str(path)])

    assert result.exit_code == 1
    assert path.read_text() == "feed: {}\n"


def test_config_validate(tmp_path):
    good = tmp_path / "good.yaml"
    good.write_text("feed:\n  max_pages: 2\n")
    bad = tmp_path / "bad.yaml"
    bad.write_text("github:\n  per_page: 1000\n")

    assert cli.invoke(app, ["config", "validate", str(good)]).exit_code == 0
    assert cli.invoke(app, ["config", "validate", str(bad)]).exit_code == 1


def test_config_show_masks_token(tmp_path):
    path = tmp_path / "app.yaml"
    path.write_text("github:\n  token: supersecret\n")

    result = cli.invoke(app, ["config", "show", "--config", str(path)])

    assert result.exit_code == 0
    assert "supersecret" not in result.stdout
    assert "***" in result.stdout


def test_feed_run_json(tmp_path, github):
    github[1] = lambda: httpx.Response(200, json={"items": repos(1, 2)})
    github[2] = lambda: httpx.Response(200, json={"items": repos(2, 3)})

    result = cli.invoke(
        app,
        ["feed", "run", "--json", "--max-pages", "2", "--config", str(tmp_path / "missing.yaml")],
    )

    assert result.exit_code == 0
    lines = [orjson.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
    assert [item["id"] for item in lines] == [1, 2, 3]


def test_feed_run_gives_up(tmp_path, github):
    config = tmp_path / "app.yaml"
    config.write_text("retry:\n  max_attempts: 1\n")
    github[1] = lambda: httpx.Response(500)

    result = cli.invoke(app, ["feed", "run", "--config", str(config)])

    assert result.exit_code == 1


def test_feed_page_rate_limited(tmp_path, github):
    github[1] = lambda: httpx.Response(403, headers={"X-RateLimit-Reset": "1234567890"})

    result = cli.invoke(app, ["feed", "page", "1", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 2


def test_feed_page_table(tmp_path, github):
    github[3] = lambda: httpx.Response(200, json={"items": repos(7)})

    result = cli.invoke(app, ["feed", "page", "3", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 0
    assert "user/repo7" in result.stdout
