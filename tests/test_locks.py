import asyncio

import pytest

from conftest import CUSTOMER_ID, callback, make_product
from storefront.db.repositories import get_store
from storefront.services.locks import KeyedLocks, user_locks


@pytest.mark.asyncio
async def test_same_key_runs_one_at_a_time():
    locks = KeyedLocks("test")
    events = []

    async def worker(name):
        async with locks.hold("k"):
            events.append(f"{name} in")
            await asyncio.sleep(0.01)
            events.append(f"{name} out")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a in", "a out", "b in", "b out"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_different_keys_do_not_wait_for_each_other():
    locks = KeyedLocks("test")
    inside = asyncio.Event()

    async def first():
        async with locks.hold(1):
            await inside.wait()

    async def second():
        async with locks.hold(2):
            inside.set()

    await asyncio.wait_for(asyncio.gather(first(), second()), timeout=1)
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_entry_is_dropped_after_an_error():
    locks = KeyedLocks("test")

    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            assert locks.is_locked("k")
            raise RuntimeError("boom")

    assert not locks.is_locked("k")
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_parallel_add_to_cart_for_one_user_against_last_item(dispatcher):
    product = await make_product(stock=1)

    replies = await asyncio.gather(
        dispatcher.dispatch(callback(CUSTOMER_ID, f"add_to_cart:{product.id}")),
        dispatcher.dispatch(callback(CUSTOMER_ID, f"add_to_cart:{product.id}")),
    )

    added = [r for r in replies if (r.callback_answer or "").startswith("✅ Added to cart")]
    assert len(added) == 1

    [line] = await get_store().carts.list_lines(CUSTOMER_ID)
    assert line.quantity == 1
    assert len(user_locks) == 0
