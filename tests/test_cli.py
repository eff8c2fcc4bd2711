import pytest
from aiohttp import web

from pixelwarden import __version__, cli
from pixelwarden.config import ENV_ACCESS_TOKEN


def test_cli_parse_args():
    args = cli.parse_args(
        ["--token", "abc", "--orders-url", "http://o/o.json", "--once", "--reauth"]
    )
    assert args.token == "abc"
    assert args.orders_url == "http://o/o.json"
    assert args.once is True
    assert args.reauth is True
    assert args.page_url is None
    assert args.log_level == "INFO"


def test_cli_rejects_unknown_log_level():
    with pytest.raises(SystemExit):
        cli.parse_args(["--log-level", "LOUD"])


@pytest.mark.asyncio
async def test_cli_version(capsys):
    assert await cli.run_async(["--version"]) == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.asyncio
async def test_cli_credential_failure_exits_nonzero(monkeypatch, start_app):
    monkeypatch.delenv(ENV_ACCESS_TOKEN, raising=False)

    async def handler(request: web.Request) -> web.Response:
        return web.Response(text="maintenance", status=500)

    app = web.Application()
    app.router.add_get("/r/place/", handler)
    runner, base = await start_app(app)
    try:
        code = await cli.run_async(["--page-url", f"{base}/r/place/", "--once"])
    finally:
        await runner.cleanup()
    assert code == 1
