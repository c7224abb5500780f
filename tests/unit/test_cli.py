"""CLI tests via ``typer.testing.CliRunner``."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from shopscrape.cli.app import app
from shopscrape.exceptions import ErrorKind, ScrapeFailed
from shopscrape.models.scrape import AttemptMethod, ScrapeAttempt, ScrapeResult

runner = CliRunner()


class FakeService:
    def __init__(self, result: ScrapeResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.requests = []
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def scrape(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result

    async def forget(self, url: str) -> str:
        return "shopscrape:product:abc"

    async def shutdown(self) -> None:
        self.stopped = True


def install(monkeypatch, service: FakeService) -> None:
    monkeypatch.setattr("shopscrape.service.build_service", lambda *args, **kwargs: service)
    monkeypatch.setattr("shopscrape.cli.scrape_cmd._setup", lambda: None)


class TestTopLevel:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("shopscrape ")


class TestSettingsCli:
    def test_show_masks_secrets(self, monkeypatch) -> None:
        monkeypatch.setenv("SHOPSCRAPE_CAPTCHA__API_KEY", "super-secret")
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "super-secret" not in result.output
        assert json.loads(result.stdout)["captcha"]["api_key"] == "***"

    def test_validate(self) -> None:
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "Settings are valid" in result.output


class TestSolverCli:
    def test_balance_without_key(self, monkeypatch) -> None:
        monkeypatch.setenv("SHOPSCRAPE_CAPTCHA__API_KEY", "")
        result = runner.invoke(app, ["solver", "balance"])
        assert result.exit_code == 1
        assert "No captcha API key" in result.output


class TestScrapeCli:
    def test_success_json(self, monkeypatch) -> None:
        record = {"title": "Water Bottle", "price": None, "images": []}
        service = FakeService(
            ScrapeResult(
                url="https://shop.example/item/1",
                record=record,
                method=AttemptMethod.FETCH,
                attempts=[ScrapeAttempt(index=1, method=AttemptMethod.FETCH)],
            )
        )
        install(monkeypatch, service)

        result = runner.invoke(app, ["scrape", "url", "https://shop.example/item/1", "--no-browser", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["record"]["title"] == "Water Bottle"
        assert service.requests[0].use_browser is False
        assert not service.started
        assert service.stopped

    def test_request_options(self, monkeypatch) -> None:
        service = FakeService(ScrapeResult(url="u", record={"title": "Mug"}, cached=True))
        install(monkeypatch, service)

        result = runner.invoke(app, ["scrape", "url", "shop.example/mug", "-r", "4", "--headed", "--force-refresh"])

        assert result.exit_code == 0
        assert "Mug" in result.output
        request = service.requests[0]
        assert (request.retries, request.headless, request.force_refresh) == (4, False, True)
        assert service.started

    def test_failure_exits_nonzero(self, monkeypatch) -> None:
        attempts = [ScrapeAttempt(index=1, method=AttemptMethod.BROWSER, kind=ErrorKind.BLOCKED_BY_ANTI_BOT)]
        install(monkeypatch, FakeService(error=ScrapeFailed(ErrorKind.BLOCKED_BY_ANTI_BOT, "challenge", attempts)))

        result = runner.invoke(app, ["scrape", "url", "https://shop.example/item/1"])

        assert result.exit_code == 1
        assert "blocked_by_anti_bot" in result.output

    def test_forget(self, monkeypatch) -> None:
        install(monkeypatch, FakeService())
        result = runner.invoke(app, ["scrape", "forget", "https://shop.example/item/1"])
        assert result.exit_code == 0
        assert "shopscrape:product:abc" in result.output
