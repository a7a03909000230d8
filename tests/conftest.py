import os

# Settings are read at import time
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ADMIN_CHAT_IDS", "1000")
os.environ.setdefault("ENVIRONMENT", "development")

from decimal import Decimal
from typing import List, Optional, Tuple

import pytest

from storefront.db.memory import build_memory_store
from storefront.db.repositories import get_store, set_store
from storefront.flow.dispatcher import Dispatcher
from storefront.models.catalog import Category, Product
from storefront.models.user import Role, User
from storefront.schemas.replies import MessageSink, Reply
from storefront.schemas.updates import EventKind, InboundEvent

ADMIN_ID = 1000
MANAGER_ID = 2000
CUSTOMER_ID = 3000
OTHER_CUSTOMER_ID = 4000


class RecordingSink(MessageSink):
    """Keeps every reply instead of talking to Telegram."""

    def __init__(self):
        self.sent: List[Tuple[int, Reply, Optional[str]]] = []

    async def send_reply(self, chat_id, reply, callback_id=None):
        self.sent.append((chat_id, reply, callback_id))
        return len(reply.messages) + len(reply.notifications)


@pytest.fixture
def store():
    memory = build_memory_store()
    set_store(memory)
    yield memory
    set_store(None)


@pytest.fixture
def dispatcher(store):
    return Dispatcher()


@pytest.fixture
def sink():
    return RecordingSink()


# ---- event builders ----

def text(chat_id: int, value: str) -> InboundEvent:
    kind = EventKind.COMMAND if value.startswith("/") else EventKind.TEXT
    return InboundEvent(kind=kind, chat_id=chat_id, text=value, first_name="Test")


def callback(chat_id: int, data: str) -> InboundEvent:
    return InboundEvent(
        kind=EventKind.CALLBACK, chat_id=chat_id, callback_data=data, callback_id=f"cb-{chat_id}"
    )


def photo(chat_id: int, file_id: str = "AgACAgIAAxkBAAI") -> InboundEvent:
    return InboundEvent(kind=EventKind.PHOTO, chat_id=chat_id, photo_file_id=file_id)


def contact(chat_id: int, phone: str) -> InboundEvent:
    return InboundEvent(kind=EventKind.CONTACT, chat_id=chat_id, phone=phone)


# ---- seed helpers ----

async def make_user(chat_id: int, role: Role = Role.USER, **fields) -> User:
    return await get_store().users.insert(User(chat_id=chat_id, role=role, **fields))


async def load_user(chat_id: int) -> User:
    return await get_store().users.get(chat_id)


async def make_category(name: str = "Shoes", slug: Optional[str] = None) -> Category:
    return await get_store().categories.insert(
        Category(name=name, slug=slug or name.lower().replace(" ", "-"))
    )


async def make_product(
    name: str = "Sneakers",
    price: str = "100.00",
    stock: int = 5,
    category: Optional[Category] = None,
) -> Product:
    return await get_store().products.insert(Product(
        name=name,
        price=Decimal(price),
        stock=stock,
        category_id=category.id if category else None,
    ))


def texts(reply: Reply) -> str:
    return "\n".join(m.text for m in reply.messages)
