"""
storefront/flow/states.py

Purpose: Defines all conversation states

- Closed enumeration of wizard steps (NORMAL when no wizard is active)
- Tagged State value: step + optional entity id ("EDITING_PRODUCT_MENU:42")
- Metadata for each step (flow, timeout, accepted input)
- State transition validation
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from storefront.core.logging import get_logger

logger = get_logger(__name__)


class ConversationState(str, Enum):
    """
    Every step a user can be parked on between two updates.
    """

    NORMAL = "NORMAL"

    # Add product wizard
    ADDING_PRODUCT_NAME = "ADDING_PRODUCT_NAME"
    ADDING_PRODUCT_PRICE = "ADDING_PRODUCT_PRICE"
    ADDING_PRODUCT_STOCK = "ADDING_PRODUCT_STOCK"
    ADDING_PRODUCT_CATEGORY = "ADDING_PRODUCT_CATEGORY"
    ADDING_PRODUCT_DESCRIPTION = "ADDING_PRODUCT_DESCRIPTION"
    ADDING_PRODUCT_IMAGE = "ADDING_PRODUCT_IMAGE"

    # Edit product wizard (parameterized by product id)
    EDITING_PRODUCT_MENU = "EDITING_PRODUCT_MENU"
    EDITING_PRODUCT_NAME = "EDITING_PRODUCT_NAME"
    EDITING_PRODUCT_PRICE = "EDITING_PRODUCT_PRICE"
    EDITING_PRODUCT_STOCK = "EDITING_PRODUCT_STOCK"
    EDITING_PRODUCT_CATEGORY = "EDITING_PRODUCT_CATEGORY"
    EDITING_PRODUCT_DESCRIPTION = "EDITING_PRODUCT_DESCRIPTION"
    EDITING_PRODUCT_IMAGE = "EDITING_PRODUCT_IMAGE"

    # Add category wizard
    ADDING_CATEGORY_NAME = "ADDING_CATEGORY_NAME"
    ADDING_CATEGORY_DESCRIPTION = "ADDING_CATEGORY_DESCRIPTION"

    # Edit category wizard (parameterized by category id)
    EDITING_CATEGORY_MENU = "EDITING_CATEGORY_MENU"
    EDITING_CATEGORY_NAME = "EDITING_CATEGORY_NAME"
    EDITING_CATEGORY_DESCRIPTION = "EDITING_CATEGORY_DESCRIPTION"

    # Checkout
    WAITING_FOR_PHONE = "WAITING_FOR_PHONE"
    WAITING_FOR_ADDRESS = "WAITING_FOR_ADDRESS"
    WAITING_FOR_COMMENT = "WAITING_FOR_COMMENT"
    CONFIRMING_ORDER = "CONFIRMING_ORDER"

    # Staff management
    ADDING_MANAGER = "ADDING_MANAGER"
    CHANGING_USER_ROLE = "CHANGING_USER_ROLE"

    # Shop settings
    EDITING_SHOP_CONTACTS = "EDITING_SHOP_CONTACTS"
    EDITING_SHOP_SUPPORT = "EDITING_SHOP_SUPPORT"
    EDITING_SHOP_ABOUT = "EDITING_SHOP_ABOUT"
    EDITING_SHOP_HOURS = "EDITING_SHOP_HOURS"


class Flow(str, Enum):
    NONE = "NONE"
    ADD_PRODUCT = "ADD_PRODUCT"
    EDIT_PRODUCT = "EDIT_PRODUCT"
    ADD_CATEGORY = "ADD_CATEGORY"
    EDIT_CATEGORY = "EDIT_CATEGORY"
    CHECKOUT = "CHECKOUT"
    ADD_MANAGER = "ADD_MANAGER"
    CHANGE_ROLE = "CHANGE_ROLE"
    SHOP_SETTINGS = "SHOP_SETTINGS"


class InputKind(str, Enum):
    TEXT = "TEXT"
    PHOTO = "PHOTO"
    CONTACT = "CONTACT"


TEXT_ONLY = frozenset({InputKind.TEXT})


@dataclass
class StateMetadata:
    """
    Metadata associated with each conversation state.
    """
    name: ConversationState
    display_name: str
    flow: Flow = Flow.NONE
    parameterized: bool = False  # Carries an entity id
    timeout_minutes: int = 60  # Idle expiry, only when enabled
    accepts: FrozenSet[InputKind] = TEXT_ONLY
    description: str = ""


def _meta(state, display_name, flow, description="", **kwargs) -> StateMetadata:
    return StateMetadata(
        name=state, display_name=display_name, flow=flow, description=description, **kwargs
    )


S = ConversationState

# State metadata configuration
STATE_METADATA: Dict[ConversationState, StateMetadata] = {
    S.NORMAL: _meta(S.NORMAL, "Idle", Flow.NONE, "No wizard active", timeout_minutes=0),

    S.ADDING_PRODUCT_NAME: _meta(S.ADDING_PRODUCT_NAME, "Product name", Flow.ADD_PRODUCT),
    S.ADDING_PRODUCT_PRICE: _meta(S.ADDING_PRODUCT_PRICE, "Product price", Flow.ADD_PRODUCT),
    S.ADDING_PRODUCT_STOCK: _meta(S.ADDING_PRODUCT_STOCK, "Product stock", Flow.ADD_PRODUCT),
    S.ADDING_PRODUCT_CATEGORY: _meta(
        S.ADDING_PRODUCT_CATEGORY, "Product category", Flow.ADD_PRODUCT,
        "Index into the category list or a select_category button"
    ),
    S.ADDING_PRODUCT_DESCRIPTION: _meta(
        S.ADDING_PRODUCT_DESCRIPTION, "Product description", Flow.ADD_PRODUCT
    ),
    S.ADDING_PRODUCT_IMAGE: _meta(
        S.ADDING_PRODUCT_IMAGE, "Product image", Flow.ADD_PRODUCT,
        "Photo upload, image URL or skip",
        accepts=frozenset({InputKind.TEXT, InputKind.PHOTO})
    ),

    S.EDITING_PRODUCT_MENU: _meta(
        S.EDITING_PRODUCT_MENU, "Edit product", Flow.EDIT_PRODUCT,
        "Numbered field menu", parameterized=True
    ),
    S.EDITING_PRODUCT_NAME: _meta(
        S.EDITING_PRODUCT_NAME, "Edit name", Flow.EDIT_PRODUCT, parameterized=True
    ),
    S.EDITING_PRODUCT_PRICE: _meta(
        S.EDITING_PRODUCT_PRICE, "Edit price", Flow.EDIT_PRODUCT, parameterized=True
    ),
    S.EDITING_PRODUCT_STOCK: _meta(
        S.EDITING_PRODUCT_STOCK, "Edit stock", Flow.EDIT_PRODUCT, parameterized=True
    ),
    S.EDITING_PRODUCT_CATEGORY: _meta(
        S.EDITING_PRODUCT_CATEGORY, "Edit category", Flow.EDIT_PRODUCT, parameterized=True
    ),
    S.EDITING_PRODUCT_DESCRIPTION: _meta(
        S.EDITING_PRODUCT_DESCRIPTION, "Edit description", Flow.EDIT_PRODUCT,
        parameterized=True
    ),
    S.EDITING_PRODUCT_IMAGE: _meta(
        S.EDITING_PRODUCT_IMAGE, "Edit image", Flow.EDIT_PRODUCT, parameterized=True,
        accepts=frozenset({InputKind.TEXT, InputKind.PHOTO})
    ),

    S.ADDING_CATEGORY_NAME: _meta(S.ADDING_CATEGORY_NAME, "Category name", Flow.ADD_CATEGORY),
    S.ADDING_CATEGORY_DESCRIPTION: _meta(
        S.ADDING_CATEGORY_DESCRIPTION, "Category description", Flow.ADD_CATEGORY
    ),

    S.EDITING_CATEGORY_MENU: _meta(
        S.EDITING_CATEGORY_MENU, "Edit category", Flow.EDIT_CATEGORY,
        "Numbered field menu", parameterized=True
    ),
    S.EDITING_CATEGORY_NAME: _meta(
        S.EDITING_CATEGORY_NAME, "Edit category name", Flow.EDIT_CATEGORY, parameterized=True
    ),
    S.EDITING_CATEGORY_DESCRIPTION: _meta(
        S.EDITING_CATEGORY_DESCRIPTION, "Edit category description", Flow.EDIT_CATEGORY,
        parameterized=True
    ),

    S.WAITING_FOR_PHONE: _meta(
        S.WAITING_FOR_PHONE, "Phone", Flow.CHECKOUT, timeout_minutes=30,
        accepts=frozenset({InputKind.TEXT, InputKind.CONTACT})
    ),
    S.WAITING_FOR_ADDRESS: _meta(S.WAITING_FOR_ADDRESS, "Address", Flow.CHECKOUT, timeout_minutes=30),
    S.WAITING_FOR_COMMENT: _meta(S.WAITING_FOR_COMMENT, "Comment", Flow.CHECKOUT, timeout_minutes=30),
    S.CONFIRMING_ORDER: _meta(
        S.CONFIRMING_ORDER, "Confirm order", Flow.CHECKOUT, "Order summary shown",
        timeout_minutes=30
    ),

    S.ADDING_MANAGER: _meta(S.ADDING_MANAGER, "Manager chat id", Flow.ADD_MANAGER, timeout_minutes=15),
    S.CHANGING_USER_ROLE: _meta(
        S.CHANGING_USER_ROLE, "User role", Flow.CHANGE_ROLE, '"<chat id> <role>"', timeout_minutes=15
    ),

    S.EDITING_SHOP_CONTACTS: _meta(
        S.EDITING_SHOP_CONTACTS, "Shop contacts", Flow.SHOP_SETTINGS, '"phone | email | website"'
    ),
    S.EDITING_SHOP_SUPPORT: _meta(S.EDITING_SHOP_SUPPORT, "Support text", Flow.SHOP_SETTINGS),
    S.EDITING_SHOP_ABOUT: _meta(S.EDITING_SHOP_ABOUT, "About text", Flow.SHOP_SETTINGS),
    S.EDITING_SHOP_HOURS: _meta(S.EDITING_SHOP_HOURS, "Working hours", Flow.SHOP_SETTINGS),
}

_PRODUCT_FIELDS = [
    S.EDITING_PRODUCT_NAME,
    S.EDITING_PRODUCT_PRICE,
    S.EDITING_PRODUCT_STOCK,
    S.EDITING_PRODUCT_CATEGORY,
    S.EDITING_PRODUCT_DESCRIPTION,
    S.EDITING_PRODUCT_IMAGE,
]

_CATEGORY_FIELDS = [S.EDITING_CATEGORY_NAME, S.EDITING_CATEGORY_DESCRIPTION]

_SHOP_FIELDS = [
    S.EDITING_SHOP_CONTACTS,
    S.EDITING_SHOP_SUPPORT,
    S.EDITING_SHOP_ABOUT,
    S.EDITING_SHOP_HOURS,
]

# Valid state transitions. Staying on the same step and resetting to NORMAL
# are always allowed and are not listed.
STATE_TRANSITIONS: Dict[ConversationState, List[ConversationState]] = {
    S.NORMAL: [
        S.ADDING_PRODUCT_NAME,
        S.EDITING_PRODUCT_MENU,
        S.ADDING_CATEGORY_NAME,
        S.EDITING_CATEGORY_MENU,
        S.WAITING_FOR_PHONE,
        S.WAITING_FOR_ADDRESS,  # Phone already on file
        S.ADDING_MANAGER,
        S.CHANGING_USER_ROLE,
        *_SHOP_FIELDS,
    ],
    S.ADDING_PRODUCT_NAME: [S.ADDING_PRODUCT_PRICE],
    S.ADDING_PRODUCT_PRICE: [S.ADDING_PRODUCT_STOCK],
    S.ADDING_PRODUCT_STOCK: [S.ADDING_PRODUCT_CATEGORY],
    S.ADDING_PRODUCT_CATEGORY: [S.ADDING_PRODUCT_DESCRIPTION],
    S.ADDING_PRODUCT_DESCRIPTION: [S.ADDING_PRODUCT_IMAGE],
    S.ADDING_PRODUCT_IMAGE: [],
    S.EDITING_PRODUCT_MENU: list(_PRODUCT_FIELDS),
    **{step: [S.EDITING_PRODUCT_MENU] for step in _PRODUCT_FIELDS},
    S.ADDING_CATEGORY_NAME: [S.ADDING_CATEGORY_DESCRIPTION],
    S.ADDING_CATEGORY_DESCRIPTION: [],
    S.EDITING_CATEGORY_MENU: list(_CATEGORY_FIELDS),
    **{step: [S.EDITING_CATEGORY_MENU] for step in _CATEGORY_FIELDS},
    S.WAITING_FOR_PHONE: [S.WAITING_FOR_ADDRESS],
    S.WAITING_FOR_ADDRESS: [S.WAITING_FOR_COMMENT],
    S.WAITING_FOR_COMMENT: [S.CONFIRMING_ORDER],
    S.CONFIRMING_ORDER: [],
    S.ADDING_MANAGER: [],
    S.CHANGING_USER_ROLE: [],
    **{step: [] for step in _SHOP_FIELDS},
}

# Older records encoded the edited entity directly in the tag
_LEGACY_EDITING = re.compile(r"^EDITING_(PRODUCT|CATEGORY)_(\d+)$")


@dataclass(frozen=True)
class State:
    """
    A conversation state value: the step plus the entity it is bound to.

    Persisted as "STEP" or "STEP:<id>"; ``parse`` is the only decoder.
    """
    step: ConversationState = ConversationState.NORMAL
    entity_id: Optional[int] = None

    def __post_init__(self):
        if self.metadata.parameterized and self.entity_id is None:
            raise ValueError(f"{self.step.value} requires an entity id")
        if not self.metadata.parameterized and self.entity_id is not None:
            raise ValueError(f"{self.step.value} does not take an entity id")

    @classmethod
    def parse(cls, raw: Optional[str]) -> "State":
        """
        Decodes a persisted state string.

        Args:
            raw: Stored value (None or empty means NORMAL)

        Returns:
            The decoded State; malformed values decode to NORMAL
        """
        if not raw:
            return NORMAL

        legacy = _LEGACY_EDITING.match(raw)
        if legacy:
            step = S.EDITING_PRODUCT_MENU if legacy.group(1) == "PRODUCT" else S.EDITING_CATEGORY_MENU
            return cls(step, int(legacy.group(2)))

        tag, _, param = raw.partition(":")
        try:
            step = ConversationState(tag)
            entity_id = int(param) if param else None
            return cls(step, entity_id)
        except ValueError:
            logger.warning(f"⚠️ Discarding malformed conversation state: {raw!r}")
            return NORMAL

    def encode(self) -> Optional[str]:
        if self.is_normal:
            return None
        if self.entity_id is None:
            return self.step.value
        return f"{self.step.value}:{self.entity_id}"

    def with_step(self, step: ConversationState) -> "State":
        """Same entity, different step (edit menus <-> field steps)."""
        return State(step, self.entity_id)

    @property
    def is_normal(self) -> bool:
        return self.step == ConversationState.NORMAL

    @property
    def metadata(self) -> StateMetadata:
        return get_state_metadata(self.step)

    @property
    def flow(self) -> Flow:
        return self.metadata.flow

    def __str__(self) -> str:
        return self.encode() or ConversationState.NORMAL.value


def is_valid_transition(from_state: ConversationState, to_state: ConversationState) -> bool:
    """
    Checks if a state transition is valid.

    Args:
        from_state: Current step
        to_state: Target step

    Returns:
        True if transition is allowed, False otherwise
    """
    if to_state == ConversationState.NORMAL or to_state == from_state:
        return True
    return to_state in STATE_TRANSITIONS.get(from_state, [])


def get_state_metadata(state: ConversationState) -> StateMetadata:
    """
    Retrieves metadata for a given state.

    Args:
        state: Conversation state

    Returns:
        StateMetadata for the state
    """
    return STATE_METADATA.get(state, StateMetadata(
        name=state,
        display_name=state.value,
        description="Unknown state"
    ))


def steps_of(flow: Flow) -> List[ConversationState]:
    return [step for step, meta in STATE_METADATA.items() if meta.flow == flow]


# Built after get_state_metadata exists: __post_init__ reads the metadata
NORMAL = State()
