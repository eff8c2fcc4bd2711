from __future__ import annotations

import asyncio
import json
from typing import Any

import aiohttp
import pytest
from aiohttp import web

from pixelwarden.core.context import AgentContext
from pixelwarden.core.models import EMPTY_TIERS, NoticeKind, Order
from pixelwarden.remote.orders import OrderStore


def _orders_app(responses: list[tuple[int, str]]) -> tuple[web.Application, dict]:
    """Serve a sequence of (status, text) answers; the last one repeats."""
    state: dict[str, Any] = {"idx": 0, "hits": 0}

    async def handler(request: web.Request) -> web.Response:
        i = min(state["idx"], len(responses) - 1)
        status, text = responses[i]
        state["idx"] += 1
        state["hits"] += 1
        return web.Response(text=text, status=status, content_type="application/json")

    app = web.Application()
    app.router.add_get("/orders.json", handler)
    return app, state


@pytest.mark.asyncio
async def test_refresh_replaces_orders_and_notifies(
    start_app, load_fixture, notifier
) -> None:
    doc = json.dumps(load_fixture("orders_sample.json"))
    app, _ = _orders_app([(200, doc)])
    runner, base = await start_app(app)
    ctx = AgentContext()
    try:
        async with aiohttp.ClientSession() as session:
            store = OrderStore(
                f"{base}/orders.json", ctx=ctx, session=session, notifier=notifier
            )
            assert await store.refresh() is True
    finally:
        await runner.cleanup()

    assert len(ctx.orders) == 3
    assert ctx.orders[0][0] == Order(x=0, y=0, color_index=27)
    assert ctx.orders[1][2] == Order(x=5, y=3, color_index=13)
    assert notifier.kinds() == [NoticeKind.ORDERS_UPDATED]
    assert notifier.items[0].text == "Obtained new orders for a total of 8 pixels"


@pytest.mark.asyncio
async def test_identical_document_does_not_notify_again(
    start_app, load_fixture, notifier
) -> None:
    doc = json.dumps(load_fixture("orders_sample.json"))
    changed = json.dumps([[[1, 1, 2]]])
    app, _ = _orders_app([(200, doc), (200, doc), (200, changed)])
    runner, base = await start_app(app)
    ctx = AgentContext()
    try:
        async with aiohttp.ClientSession() as session:
            store = OrderStore(
                f"{base}/orders.json", ctx=ctx, session=session, notifier=notifier
            )
            assert await store.refresh() is True
            first = ctx.orders
            assert await store.refresh() is False
            assert ctx.orders is first
            assert await store.refresh() is True
    finally:
        await runner.cleanup()

    assert notifier.kinds() == [NoticeKind.ORDERS_UPDATED, NoticeKind.ORDERS_UPDATED]
    assert ctx.orders == ((Order(x=1, y=1, color_index=2),),)
    assert store.refreshes == 3
    assert store.failures == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,text",
    [
        (500, "oops"),
        (200, "not json at all"),
        (200, json.dumps({"orders": []})),
        (200, json.dumps([[[-1, 0, 2]]])),
        (200, json.dumps([[[1, 2]]])),
    ],
)
async def test_bad_fetch_keeps_previous_orders(
    status: int, text: str, start_app, notifier
) -> None:
    good = json.dumps([[[3, 4, 13]]])
    app, _ = _orders_app([(200, good), (status, text)])
    runner, base = await start_app(app)
    ctx = AgentContext()
    try:
        async with aiohttp.ClientSession() as session:
            store = OrderStore(
                f"{base}/orders.json", ctx=ctx, session=session, notifier=notifier
            )
            await store.refresh()
            before = ctx.orders
            assert await store.refresh() is False
    finally:
        await runner.cleanup()

    assert ctx.orders is before
    assert store.failures == 1
    assert notifier.kinds() == [NoticeKind.ORDERS_UPDATED]


@pytest.mark.asyncio
async def test_unreachable_endpoint_is_not_fatal(notifier) -> None:
    ctx = AgentContext()
    async with aiohttp.ClientSession() as session:
        # Port 9 (discard) on localhost is expected to refuse connections
        store = OrderStore(
            "http://127.0.0.1:9/orders.json",
            ctx=ctx,
            session=session,
            notifier=notifier,
        )
        assert await store.refresh() is False
    assert ctx.orders == EMPTY_TIERS
    assert store.failures == 1
    assert notifier.items == []


@pytest.mark.asyncio
async def test_run_polls_until_stopped(start_app, notifier) -> None:
    app, state = _orders_app([(200, json.dumps([[[0, 0, 31]]]))])
    runner, base = await start_app(app)
    ctx = AgentContext()
    try:
        async with aiohttp.ClientSession() as session:
            store = OrderStore(
                f"{base}/orders.json",
                ctx=ctx,
                session=session,
                notifier=notifier,
                interval_s=0.02,
            )
            assert await store.refresh() is True
            task = asyncio.create_task(store.run())
            for _ in range(200):
                if state["hits"] >= 3:
                    break
                await asyncio.sleep(0.01)
            await store.stop()
            await asyncio.wait_for(task, timeout=2.0)
    finally:
        await runner.cleanup()

    assert state["hits"] >= 3
    # Same document every time: one replacement, one notice
    assert notifier.kinds() == [NoticeKind.ORDERS_UPDATED]
    assert ctx.orders == ((Order(x=0, y=0, color_index=31),),)
