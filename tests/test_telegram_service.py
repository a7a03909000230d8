import json

import httpx
import pytest

from storefront.core.config import settings
from storefront.flow.callbacks import Verb
from storefront.schemas.replies import OutboundMessage, Reply
from storefront.services.telegram_service import TelegramSink
from storefront.utils import constants as c
from storefront.utils.keyboards import button


def _sink(monkeypatch, handler):
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setattr(settings, "TELEGRAM_SEND_DELAY_SECONDS", 0)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramSink(client=client)


@pytest.mark.asyncio
async def test_send_reply_in_order(monkeypatch):
    calls = []

    def handler(request):
        calls.append((request.url.path.rsplit("/", 1)[-1], json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": {}})

    sink = _sink(monkeypatch, handler)
    reply = Reply.text("first", inline_keyboard=[[button("🛒 Cart", Verb.CART)]])
    reply.messages.append(OutboundMessage(text="card", photo="file-1"))
    reply.notify(42, "for the admin")
    reply.callback_answer = "Done"

    delivered = await sink.send_reply(7, reply, callback_id="cbq")
    await sink.close()

    assert delivered == 3
    assert [method for method, _ in calls] == [
        "answerCallbackQuery", "sendMessage", "sendPhoto", "sendMessage"
    ]
    assert calls[0][1] == {"callback_query_id": "cbq", "text": "Done"}
    assert calls[1][1]["reply_markup"] == {
        "inline_keyboard": [[{"text": "🛒 Cart", "callback_data": "cart"}]]
    }
    assert calls[2][1]["caption"] == "card"
    assert calls[3][1]["chat_id"] == 42


@pytest.mark.asyncio
async def test_rate_limit_is_retried_once(monkeypatch):
    responses = [
        httpx.Response(429, json={"ok": False, "parameters": {"retry_after": 0}}),
        httpx.Response(200, json={"ok": True, "result": {"message_id": 1}}),
    ]

    sink = _sink(monkeypatch, lambda request: responses.pop(0))
    result = await sink.call("sendMessage", {"chat_id": 1, "text": "hi"})
    await sink.close()

    assert result == {"message_id": 1}
    assert responses == []


@pytest.mark.asyncio
async def test_failed_message_does_not_stop_the_rest(monkeypatch):
    def handler(request):
        body = json.loads(request.content)
        if body["chat_id"] == 13:
            return httpx.Response(403, json={"ok": False, "description": "bot was blocked"})
        return httpx.Response(200, json={"ok": True, "result": {}})

    sink = _sink(monkeypatch, handler)
    reply = Reply.text(c.MAIN_MENU_MESSAGE)
    reply.notify(13, "blocked admin")
    reply.notify(14, "other admin")

    assert await sink.send_reply(7, reply) == 2
    await sink.close()


@pytest.mark.asyncio
async def test_html_error_page_does_not_stop_the_rest(monkeypatch):
    calls = []

    def handler(request):
        calls.append(json.loads(request.content)["chat_id"])
        if len(calls) == 1:
            return httpx.Response(502, text="<html>Bad Gateway</html>")
        return httpx.Response(200, json={"ok": True, "result": {}})

    sink = _sink(monkeypatch, handler)
    reply = Reply.text("first")
    reply.messages.append(OutboundMessage(text="second"))
    reply.notify(42, "for the admin")

    assert await sink.send_reply(7, reply) == 2
    await sink.close()

    assert calls == [7, 7, 42]


@pytest.mark.asyncio
async def test_html_rate_limit_page_is_retried(monkeypatch):
    responses = [
        httpx.Response(429, text="<html>Too Many Requests</html>"),
        httpx.Response(200, json={"ok": True, "result": {"message_id": 2}}),
    ]
    monkeypatch.setattr("storefront.services.telegram_service.asyncio.sleep", _no_sleep)

    sink = _sink(monkeypatch, lambda request: responses.pop(0))
    result = await sink.call("sendMessage", {"chat_id": 1, "text": "hi"})
    await sink.close()

    assert result == {"message_id": 2}


async def _no_sleep(seconds):
    return None


@pytest.mark.asyncio
async def test_without_token_nothing_is_sent(monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", None)
    sink = TelegramSink()

    assert not sink.is_configured()
    assert await sink.send_reply(7, Reply.text("hi")) == 0
