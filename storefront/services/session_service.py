"""
storefront/services/session_service.py

Purpose: Session and state management

- Reads and advances the per-user conversation state
- Owns the scratch slot holding the active wizard's draft
- Enforces valid state transitions
- Optional idle expiry of abandoned wizards
"""

import json
from datetime import timedelta
from typing import Any, Dict, Optional

from storefront.core.config import settings
from storefront.core.exceptions import InvalidTransitionError
from storefront.core.logging import LogContext, get_logger
from storefront.db.repositories import get_store
from storefront.flow.states import State, is_valid_transition
from storefront.models.user import User, utcnow

logger = get_logger(__name__)

# Sentinel: leave scratch as it is
KEEP = object()


def get_state(user: User) -> State:
    """
    Decodes the user's current state. Side-effect free.

    Args:
        user: Loaded user document

    Returns:
        Decoded State (NORMAL when idle or malformed)
    """
    return State.parse(user.state)


def get_scratch(user: User) -> Dict[str, Any]:
    """
    Retrieves the wizard draft for a user.

    Args:
        user: Loaded user document

    Returns:
        Scratch dict; empty if missing or corrupt
    """
    if not user.scratch:
        return {}
    try:
        data = json.loads(user.scratch)
    except ValueError:
        logger.warning("Corrupt scratch data discarded", extra={"chat_id": user.chat_id})
        return {}
    return data if isinstance(data, dict) else {}


async def set_state(
    user: User,
    state: State,
    scratch: Any = KEEP,
    validate_transition: bool = True
) -> User:
    """
    Advances the user's conversation state. The only way to move a wizard on.

    Args:
        user: Loaded user document (updated in place)
        state: Target state
        scratch: New draft dict, None to clear, or KEEP to leave unchanged
        validate_transition: Whether to enforce state transition rules

    Returns:
        The saved user

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    current = get_state(user)

    with LogContext(chat_id=user.chat_id, state=str(state)):
        if validate_transition and not is_valid_transition(current.step, state.step):
            logger.warning(f"Invalid state transition attempted: {current} -> {state}")
            raise InvalidTransitionError(
                f"Invalid state transition: {current} -> {state}",
                details={"from": str(current), "to": str(state)}
            )

        user.state = state.encode()
        if state.is_normal:
            user.scratch = None
        elif scratch is not KEEP:
            user.scratch = json.dumps(scratch, default=str) if scratch else None
        user.last_interaction = utcnow()

        await get_store().users.save(user)

        if current != state:
            logger.info(f"State updated: {current} -> {state}")

    return user


async def begin(user: User, state: State, scratch: Optional[Dict[str, Any]] = None) -> User:
    """
    Starts a wizard, abandoning whatever the user was doing.

    Args:
        user: Loaded user document
        state: First step of the wizard
        scratch: Initial draft

    Returns:
        The saved user
    """
    if not get_state(user).is_normal:
        logger.info(
            f"Abandoning {get_state(user)} to start {state}",
            extra={"chat_id": user.chat_id}
        )
    user.state = None
    user.scratch = None
    return await set_state(user, state, scratch=scratch or {})


async def save_scratch(user: User, data: Dict[str, Any], merge: bool = True) -> User:
    """
    Saves wizard draft data without changing the step.

    Args:
        user: Loaded user document
        data: Values to store
        merge: If True, merges with existing data; if False, replaces it

    Returns:
        The saved user
    """
    if merge:
        data = {**get_scratch(user), **data}
    return await set_state(user, get_state(user), scratch=data, validate_transition=False)


async def reset(user: User, reason: str = "manual") -> User:
    """
    Returns the user to NORMAL and clears scratch unconditionally.

    Args:
        user: Loaded user document
        reason: Reason for reset (for logging)

    Returns:
        The saved user
    """
    previous = get_state(user)
    user.state = None
    user.scratch = None
    user.last_interaction = utcnow()
    await get_store().users.save(user)

    if not previous.is_normal:
        logger.info(
            f"Session reset from {previous}",
            extra={"chat_id": user.chat_id, "reason": reason}
        )
    return user


def check_session_expiry(user: User) -> Dict[str, Any]:
    """
    Checks if the user's wizard step has been idle past its timeout.

    Args:
        user: Loaded user document

    Returns:
        Dict with expired (bool), remaining_time (timedelta) and timeout_minutes
    """
    state = get_state(user)
    timeout_minutes = state.metadata.timeout_minutes

    if state.is_normal or timeout_minutes <= 0:
        return {"expired": False, "remaining_time": None, "timeout_minutes": timeout_minutes}

    expiry_time = user.last_interaction + timedelta(minutes=timeout_minutes)
    now = utcnow()
    expired = now > expiry_time

    return {
        "expired": expired,
        "remaining_time": timedelta(0) if expired else expiry_time - now,
        "timeout_minutes": timeout_minutes
    }


async def expire_if_idle(user: User) -> bool:
    """
    Resets an abandoned wizard when idle expiry is enabled.

    Args:
        user: Loaded user document

    Returns:
        True if the wizard was expired
    """
    if not settings.WIZARD_IDLE_EXPIRY_ENABLED:
        return False

    status = check_session_expiry(user)
    if not status["expired"]:
        return False

    logger.info(
        "Session expired",
        extra={
            "chat_id": user.chat_id,
            "last_interaction": user.last_interaction.isoformat(),
            "timeout_minutes": status["timeout_minutes"]
        }
    )
    await reset(user, reason="idle_expiry")
    return True
