from datetime import timedelta

import pytest

from conftest import CUSTOMER_ID, callback, load_user, make_user, text
from storefront.core.config import settings
from storefront.core.exceptions import InvalidTransitionError
from storefront.db.repositories import get_store
from storefront.flow.states import (
    NORMAL,
    STATE_METADATA,
    ConversationState,
    Flow,
    State,
    is_valid_transition,
    steps_of,
)
from storefront.models.user import Role, User, utcnow
from storefront.services import session_service

S = ConversationState


def test_state_round_trip():
    state = State(S.EDITING_PRODUCT_MENU, 42)
    assert state.encode() == "EDITING_PRODUCT_MENU:42"
    assert State.parse("EDITING_PRODUCT_MENU:42") == state
    assert State.parse("WAITING_FOR_PHONE") == State(S.WAITING_FOR_PHONE)


def test_normal_is_stored_as_none():
    assert NORMAL.encode() is None
    assert State.parse(None) == NORMAL
    assert State.parse("") == NORMAL
    assert str(NORMAL) == "NORMAL"


def test_legacy_composite_tags_decode():
    assert State.parse("EDITING_PRODUCT_42") == State(S.EDITING_PRODUCT_MENU, 42)
    assert State.parse("EDITING_CATEGORY_7") == State(S.EDITING_CATEGORY_MENU, 7)


@pytest.mark.parametrize("raw", [
    "NOT_A_STATE",
    "EDITING_PRODUCT_MENU",        # missing the product id
    "EDITING_PRODUCT_MENU:abc",
    "WAITING_FOR_PHONE:5",         # takes no id
])
def test_malformed_states_decode_to_normal(raw):
    assert State.parse(raw) == NORMAL


def test_parameterized_steps_require_an_id():
    with pytest.raises(ValueError):
        State(S.EDITING_CATEGORY_MENU)
    with pytest.raises(ValueError):
        State(S.ADDING_PRODUCT_NAME, 3)


def test_with_step_keeps_entity():
    state = State(S.EDITING_PRODUCT_MENU, 9).with_step(S.EDITING_PRODUCT_PRICE)
    assert state == State(S.EDITING_PRODUCT_PRICE, 9)
    assert state.flow == Flow.EDIT_PRODUCT


def test_transition_table():
    assert is_valid_transition(S.NORMAL, S.ADDING_PRODUCT_NAME)
    assert is_valid_transition(S.ADDING_PRODUCT_NAME, S.ADDING_PRODUCT_PRICE)
    assert is_valid_transition(S.WAITING_FOR_COMMENT, S.CONFIRMING_ORDER)
    assert is_valid_transition(S.CONFIRMING_ORDER, S.NORMAL)
    assert not is_valid_transition(S.ADDING_PRODUCT_NAME, S.ADDING_PRODUCT_IMAGE)
    assert not is_valid_transition(S.NORMAL, S.CONFIRMING_ORDER)


def test_every_flow_step_has_metadata():
    for flow in Flow:
        if flow == Flow.NONE:
            continue
        assert steps_of(flow), flow
    assert set(STATE_METADATA) == set(ConversationState)


@pytest.mark.asyncio
async def test_set_state_enforces_transitions(store):
    user = await make_user(CUSTOMER_ID)

    with pytest.raises(InvalidTransitionError):
        await session_service.set_state(user, State(S.CONFIRMING_ORDER))

    await session_service.set_state(user, State(S.WAITING_FOR_PHONE), {"mode": "cart"})
    stored = await load_user(CUSTOMER_ID)
    assert stored.state == "WAITING_FOR_PHONE"
    assert session_service.get_scratch(stored) == {"mode": "cart"}


@pytest.mark.asyncio
async def test_save_scratch_merges(store):
    user = await make_user(CUSTOMER_ID)
    await session_service.begin(user, State(S.WAITING_FOR_PHONE), {"mode": "cart"})
    await session_service.save_scratch(user, {"phone": "+79001234567"})

    stored = await load_user(CUSTOMER_ID)
    assert session_service.get_scratch(stored) == {"mode": "cart", "phone": "+79001234567"}


@pytest.mark.asyncio
async def test_reset_clears_state_and_scratch(store):
    user = await make_user(CUSTOMER_ID)
    await session_service.begin(user, State(S.WAITING_FOR_PHONE), {"mode": "cart"})
    await session_service.reset(user)

    stored = await load_user(CUSTOMER_ID)
    assert stored.state is None
    assert stored.scratch is None


def test_corrupt_scratch_reads_as_empty():
    assert session_service.get_scratch(User(chat_id=1, scratch="{not json")) == {}
    assert session_service.get_scratch(User(chat_id=1, scratch="[1, 2]")) == {}


async def _save(user):
    await get_store().users.save(user)


def _parked_state(step: ConversationState) -> State:
    return State(step, 1) if STATE_METADATA[step].parameterized else State(step)


@pytest.mark.asyncio
@pytest.mark.parametrize("step", [s for s in ConversationState if s != S.NORMAL])
async def test_cancel_resets_every_step(dispatcher, step):
    user = await make_user(CUSTOMER_ID, Role.ADMIN)
    user.state = _parked_state(step).encode()
    user.scratch = '{"name": "draft"}'
    await _save(user)

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "cancel"))

    stored = await load_user(CUSTOMER_ID)
    assert stored.state is None
    assert stored.scratch is None
    assert reply.handled
    assert reply.messages[0].reply_keyboard  # main menu


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["Back", "/cancel", "/back", "❌ Cancel", "отмена", "НАЗАД"])
async def test_escape_token_variants(dispatcher, token):
    user = await make_user(CUSTOMER_ID)
    user.state = "WAITING_FOR_COMMENT"
    await _save(user)

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, token))

    assert (await load_user(CUSTOMER_ID)).state is None
    assert "Cancelled" in reply.messages[0].text


@pytest.mark.asyncio
async def test_cancel_while_idle_shows_main_menu(dispatcher):
    await make_user(CUSTOMER_ID)
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "cancel"))
    assert reply.messages[0].text == "🏠 Main menu"


@pytest.mark.asyncio
async def test_start_resets_and_welcomes(dispatcher):
    user = await make_user(CUSTOMER_ID)
    user.state = "WAITING_FOR_ADDRESS"
    await _save(user)

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "/start@shop_bot"))

    assert (await load_user(CUSTOMER_ID)).state is None
    assert "Welcome" in reply.messages[0].text


@pytest.mark.asyncio
async def test_unaccepted_callback_leaves_wizard_alone(dispatcher):
    user = await make_user(CUSTOMER_ID)
    user.state = "WAITING_FOR_ADDRESS"
    user.scratch = '{"mode": "cart", "phone": "+79001234567"}'
    await _save(user)

    # Browsing the catalog mid-checkout is allowed
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "catalog"))

    assert reply.handled
    assert (await load_user(CUSTOMER_ID)).state == "WAITING_FOR_ADDRESS"


def test_session_expiry_follows_step_timeout():
    user_fields = {"chat_id": CUSTOMER_ID, "state": "WAITING_FOR_PHONE"}

    fresh = User(**user_fields)
    assert not session_service.check_session_expiry(fresh)["expired"]

    stale = User(**user_fields, last_interaction=utcnow() - timedelta(minutes=31))
    status = session_service.check_session_expiry(stale)
    assert status["expired"]
    assert status["timeout_minutes"] == 30

    idle = User(chat_id=CUSTOMER_ID, last_interaction=utcnow() - timedelta(days=3))
    assert not session_service.check_session_expiry(idle)["expired"]


@pytest.mark.asyncio
async def test_idle_wizard_is_expired_when_enabled(dispatcher, monkeypatch):
    monkeypatch.setattr(settings, "WIZARD_IDLE_EXPIRY_ENABLED", True)
    await make_user(
        CUSTOMER_ID,
        state="WAITING_FOR_ADDRESS",
        last_interaction=utcnow() - timedelta(hours=1),
    )

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "1 Main St"))

    assert "timed out" in reply.messages[0].text
    assert (await load_user(CUSTOMER_ID)).state is None


@pytest.mark.asyncio
async def test_idle_wizard_survives_when_expiry_disabled(dispatcher):
    await make_user(
        CUSTOMER_ID,
        state="WAITING_FOR_ADDRESS",
        last_interaction=utcnow() - timedelta(hours=1),
    )

    assert not await session_service.expire_if_idle(await load_user(CUSTOMER_ID))
    assert (await load_user(CUSTOMER_ID)).state == "WAITING_FOR_ADDRESS"
