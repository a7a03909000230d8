"""
storefront/flow/callbacks.py

Purpose: Inline button callback codec

- Closed verb enumeration; each verb declares its argument kinds
- Token grammar: verb[:arg[:arg]], at most 64 bytes (Telegram limit)
- decode() raises CallbackDecodeError on anything it cannot parse
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from storefront.core.exceptions import CallbackDecodeError

MAX_TOKEN_BYTES = 64
SEPARATOR = ":"

_DIGITS = re.compile(r"^\d{1,12}$", re.ASCII)
_SLUG = re.compile(r"^[a-z0-9][a-z0-9-]*$", re.ASCII)


class Verb(str, Enum):
    # Catalog
    CATALOG = "catalog"
    CATEGORY = "category"
    MORE = "more"
    BACK = "back"
    ADD_TO_CART = "add_to_cart"
    DIRECT_BUY = "direct_buy"
    HOME = "home"

    # Cart
    CART = "cart"
    CART_MINUS = "cart_minus"
    CART_PLUS = "cart_plus"
    CART_REMOVE = "cart_remove"
    CART_CLEAR = "cart_clear"
    CART_CHECKOUT = "cart_checkout"

    # Checkout
    CONFIRM_ORDER = "confirm_order"
    CANCEL_ORDER = "cancel_order"

    # Orders
    MY_ORDERS = "my_orders"
    ORDER_DETAILS = "order_details"
    ADMIN_ORDERS = "admin_orders"
    ACCEPT_ORDER = "accept_order"
    COMPLETE_ORDER = "complete_order"
    ADMIN_CANCEL_ORDER = "admin_cancel_order"

    # Admin catalog management
    ADMIN = "admin"
    ADMIN_PRODUCTS = "admin_products"
    ADD_PRODUCT = "add_product"
    EDIT_PRODUCT = "edit_product"
    SELECT_CATEGORY = "select_category"
    ADMIN_CATEGORIES = "admin_categories"
    ADD_CATEGORY = "add_category"
    EDIT_CATEGORY = "edit_category"
    DELETE_CATEGORY = "delete_category"

    # Staff and shop settings
    ADD_MANAGER = "add_manager"
    ADMIN_USERS = "admin_users"
    CHANGE_ROLE = "change_role"
    SHOP_SETTINGS = "shop_settings"
    EDIT_SHOP_CONTACTS = "edit_shop_contacts"
    EDIT_SHOP_SUPPORT = "edit_shop_support"
    EDIT_SHOP_ABOUT = "edit_shop_about"
    EDIT_SHOP_HOURS = "edit_shop_hours"


class Arg(str, Enum):
    ID = "id"  # Required non-negative integer
    SLUG = "slug"  # Required category slug
    PAGE = "page"  # Optional trailing non-negative integer, defaults to 0


VERB_ARGS: Dict[Verb, Tuple[Arg, ...]] = {
    Verb.CATALOG: (),
    Verb.CATEGORY: (Arg.SLUG, Arg.PAGE),
    Verb.MORE: (),
    Verb.BACK: (),
    Verb.ADD_TO_CART: (Arg.ID,),
    Verb.DIRECT_BUY: (Arg.ID,),
    Verb.HOME: (),
    Verb.CART: (),
    Verb.CART_MINUS: (Arg.ID,),
    Verb.CART_PLUS: (Arg.ID,),
    Verb.CART_REMOVE: (Arg.ID,),
    Verb.CART_CLEAR: (),
    Verb.CART_CHECKOUT: (),
    Verb.CONFIRM_ORDER: (),
    Verb.CANCEL_ORDER: (),
    Verb.MY_ORDERS: (Arg.PAGE,),
    Verb.ORDER_DETAILS: (Arg.ID,),
    Verb.ADMIN_ORDERS: (Arg.PAGE,),
    Verb.ACCEPT_ORDER: (Arg.ID,),
    Verb.COMPLETE_ORDER: (Arg.ID,),
    Verb.ADMIN_CANCEL_ORDER: (Arg.ID,),
    Verb.ADMIN: (),
    Verb.ADMIN_PRODUCTS: (Arg.PAGE,),
    Verb.ADD_PRODUCT: (),
    Verb.EDIT_PRODUCT: (Arg.ID,),
    Verb.SELECT_CATEGORY: (Arg.ID,),
    Verb.ADMIN_CATEGORIES: (),
    Verb.ADD_CATEGORY: (),
    Verb.EDIT_CATEGORY: (Arg.ID,),
    Verb.DELETE_CATEGORY: (Arg.ID,),
    Verb.ADD_MANAGER: (),
    Verb.ADMIN_USERS: (Arg.PAGE,),
    Verb.CHANGE_ROLE: (),
    Verb.SHOP_SETTINGS: (),
    Verb.EDIT_SHOP_CONTACTS: (),
    Verb.EDIT_SHOP_SUPPORT: (),
    Verb.EDIT_SHOP_ABOUT: (),
    Verb.EDIT_SHOP_HOURS: (),
}

ArgValue = Union[int, str]


@dataclass(frozen=True)
class CallbackAction:
    """A decoded callback token."""
    verb: Verb
    args: Tuple[ArgValue, ...] = ()

    def _arg(self, kind: Arg) -> Optional[ArgValue]:
        for declared, value in zip(VERB_ARGS[self.verb], self.args):
            if declared == kind:
                return value
        return None

    @property
    def id(self) -> Optional[int]:
        return self._arg(Arg.ID)

    @property
    def slug(self) -> Optional[str]:
        return self._arg(Arg.SLUG)

    @property
    def page(self) -> int:
        return self._arg(Arg.PAGE) or 0


def _check_arg(verb: Verb, kind: Arg, value) -> str:
    text = str(value)
    if kind in (Arg.ID, Arg.PAGE):
        if isinstance(value, bool) or not _DIGITS.match(text):
            raise ValueError(f"{verb.value}: {kind.value} must be a non-negative integer, got {value!r}")
    elif not _SLUG.match(text):
        raise ValueError(f"{verb.value}: invalid slug {value!r}")
    return text


def encode(verb: Verb, *args: ArgValue) -> str:
    """
    Builds a callback token.

    Args:
        verb: Action verb
        *args: Arguments in the order the verb declares them

    Returns:
        Token such as "cart_plus:17" or "category:shoes:2"

    Raises:
        ValueError: On arity or type mismatch, or tokens over 64 bytes
    """
    kinds = VERB_ARGS[verb]
    required = sum(1 for kind in kinds if kind != Arg.PAGE)
    if not required <= len(args) <= len(kinds):
        raise ValueError(f"{verb.value} takes {required}..{len(kinds)} arguments, got {len(args)}")

    parts = [verb.value] + [_check_arg(verb, kind, value) for kind, value in zip(kinds, args)]
    token = SEPARATOR.join(parts)
    if len(token.encode("utf-8")) > MAX_TOKEN_BYTES:
        raise ValueError(f"Callback token exceeds {MAX_TOKEN_BYTES} bytes: {token!r}")
    return token


def decode(token: Optional[str]) -> CallbackAction:
    """
    Parses a callback token.

    Args:
        token: Raw callback data from the button

    Returns:
        CallbackAction with integer ids/pages and string slugs

    Raises:
        CallbackDecodeError: Unknown verb, wrong arity or unparseable argument
    """
    if not token:
        raise CallbackDecodeError("Empty callback token", token=token)
    if len(token.encode("utf-8")) > MAX_TOKEN_BYTES:
        raise CallbackDecodeError("Callback token too long", token=token)

    head, *raw_args = token.split(SEPARATOR)
    try:
        verb = Verb(head)
    except ValueError:
        raise CallbackDecodeError(f"Unknown callback verb: {head!r}", token=token) from None

    kinds = VERB_ARGS[verb]
    required = sum(1 for kind in kinds if kind != Arg.PAGE)
    if not required <= len(raw_args) <= len(kinds):
        raise CallbackDecodeError(
            f"{verb.value} expects {required}..{len(kinds)} arguments, got {len(raw_args)}",
            token=token,
        )

    args = []
    for kind, raw in zip(kinds, raw_args):
        if kind == Arg.SLUG:
            if not _SLUG.match(raw):
                raise CallbackDecodeError(f"Invalid slug in callback: {raw!r}", token=token)
            args.append(raw)
        else:
            if not _DIGITS.match(raw):
                raise CallbackDecodeError(
                    f"{verb.value}: {kind.value} is not an integer: {raw!r}", token=token
                )
            args.append(int(raw))

    return CallbackAction(verb, tuple(args))
