import pytest
from fastapi.testclient import TestClient

from conftest import RecordingSink
from storefront.api.webhook import get_sink
from storefront.core.config import settings
from storefront.flow.dispatcher import Dispatcher, get_dispatcher
from storefront.main import app
from storefront.schemas.updates import EventKind, parse_telegram_update

WEBHOOK = f"{settings.API_PREFIX}/webhook"


@pytest.fixture
def recorder():
    sink = RecordingSink()
    dispatcher = Dispatcher()
    app.dependency_overrides[get_sink] = lambda: sink
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield sink
    app.dependency_overrides.clear()


@pytest.fixture
def client(recorder):
    # Lifespan installs a fresh memory store
    with TestClient(app) as test_client:
        yield test_client


def _message(text, chat_id=555):
    return {
        "update_id": 1,
        "message": {
            "message_id": 10,
            "chat": {"id": chat_id},
            "from": {"first_name": "Jane", "username": "jane"},
            "text": text,
        },
    }


def test_start_message_is_dispatched(client, recorder):
    response = client.post(WEBHOOK, json=_message("/start"))

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

    [(chat_id, reply, callback_id)] = recorder.sent
    assert chat_id == 555
    assert callback_id is None
    assert "Welcome to the shop, Jane" in reply.messages[0].text


def test_callback_query_is_dispatched(client, recorder):
    update = {
        "update_id": 2,
        "callback_query": {
            "id": "cbq-1",
            "from": {"id": 555, "first_name": "Jane"},
            "message": {"message_id": 11, "chat": {"id": 555}},
            "data": "cart",
        },
    }
    response = client.post(WEBHOOK, json=update)

    assert response.status_code == 200
    [(chat_id, reply, callback_id)] = recorder.sent
    assert callback_id == "cbq-1"
    assert "cart is empty" in reply.messages[0].text


def test_unsupported_update_is_acknowledged(client, recorder):
    response = client.post(WEBHOOK, json={"update_id": 3, "poll": {"id": "1"}})

    assert response.status_code == 200
    assert recorder.sent == []


def test_invalid_json_is_acknowledged(client, recorder):
    response = client.post(WEBHOOK, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert recorder.sent == []


def test_secret_token_is_checked(client, recorder, monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_SECRET", "s3cret")

    response = client.post(WEBHOOK, json=_message("/start"))
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"

    response = client.post(
        WEBHOOK, json=_message("/start"), headers={"X-Telegram-Bot-Api-Secret-Token": "wrong"}
    )
    assert response.status_code == 401

    response = client.post(
        WEBHOOK, json=_message("/start"), headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"}
    )
    assert response.status_code == 200
    assert len(recorder.sent) == 1


def test_webhook_status(client):
    response = client.get(WEBHOOK)
    assert response.status_code == 200
    assert response.json()["message"] == "Webhook endpoint is active"


def test_health_reports_memory_store(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "healthy"


def test_parse_contact_and_photo_updates():
    event = parse_telegram_update({
        "update_id": 4,
        "message": {
            "message_id": 12,
            "chat": {"id": 9},
            "contact": {"phone_number": "+79001234567"},
        },
    })
    assert event.kind == EventKind.CONTACT
    assert event.phone == "+79001234567"

    event = parse_telegram_update({
        "update_id": 5,
        "message": {
            "message_id": 13,
            "chat": {"id": 9},
            "photo": [{"file_id": "small"}, {"file_id": "large"}],
            "caption": "front",
        },
    })
    assert event.kind == EventKind.PHOTO
    assert event.photo_file_id == "large"
    assert event.text == "front"
