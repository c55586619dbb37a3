"""
Routes normalised chat events to the user's active dialog.

Dispatch table is keyed by (event kind, active flow). Events that no
active flow accepts come back NOT_HANDLED so the aiogram layer can answer
them (stale button presses, free text outside any dialog).
"""

import asyncio
import logging
import weakref
from enum import Enum

from bot.flows import (
    courier_registration, order_creation, order_edit, order_selection, shop_registration,
)
from bot.flows.base import Event, FlowContext, FlowResult, FlowStateError, Reply
from bot.session import SessionStore
from bot.states.base import FlowType

logger = logging.getLogger(__name__)

FLOWS = {
    FlowType.ORDER_CREATION: order_creation,
    FlowType.ORDER_EDIT: order_edit,
    FlowType.SHOP_REGISTRATION: shop_registration,
    FlowType.COURIER_REGISTRATION: courier_registration,
    FlowType.ORDER_SELECTION: order_selection,
}

RESET_TEXT = "⚠️ Something went wrong and this dialog was reset. Please start again with /start."


class DispatchStatus(str, Enum):
    HANDLED = "HANDLED"
    NOT_HANDLED = "NOT_HANDLED"


def build_table() -> dict:
    return {
        (kind, flow_type): module.handle
        for flow_type, module in FLOWS.items()
        for kind in module.ACCEPTS
    }


class FlowDispatcher:
    def __init__(self, sessions: SessionStore, ctx: FlowContext):
        self.sessions = sessions
        self.ctx = ctx
        self.table = build_table()
        # One in-flight transition per user; entries vanish once no task holds them
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def start(self, flow: FlowType, user_id: int, **kwargs) -> list[Reply]:
        """Begin a flow; one active flow per user, so any previous one is abandoned."""
        async with self._lock(user_id):
            return await self._start(flow, user_id, **kwargs)

    async def _start(self, flow: FlowType, user_id: int, **kwargs) -> list[Reply]:
        previous = await self.sessions.get(user_id)
        if previous is not None:
            logger.info(
                "User %s started %s, abandoning %s at step %s",
                user_id, flow.value, previous.flow.value, previous.fsm_state,
            )
            await self.sessions.clear(user_id)

        try:
            result = await FLOWS[flow].start(self.ctx, user_id, **kwargs)
        except FlowStateError:
            logger.exception("Flow %s failed to start for user %s", flow.value, user_id)
            await self.sessions.clear(user_id)
            return [Reply(RESET_TEXT)]
        await self._apply(user_id, result)
        return result.replies

    async def dispatch(self, event: Event) -> tuple[DispatchStatus, list[Reply]]:
        """
        Run one event through the active flow.

        The session is read and stored back under the user's lock, so a second
        press of the same button sees the state the first one left behind.
        """
        async with self._lock(event.user_id):
            return await self._dispatch(event)

    async def _dispatch(self, event: Event) -> tuple[DispatchStatus, list[Reply]]:
        state = await self.sessions.get(event.user_id)
        if state is None:
            return DispatchStatus.NOT_HANDLED, []

        handler = self.table.get((event.kind, state.flow))
        if handler is None:
            logger.debug("No %s handler for %s (user %s)", event.kind.value, state.flow.value, event.user_id)
            return DispatchStatus.NOT_HANDLED, []

        try:
            result = await handler(self.ctx, event, state)
        except FlowStateError:
            logger.exception("Dialog state invalid for user %s in %s", event.user_id, state.fsm_state)
            await self.sessions.clear(event.user_id)
            return DispatchStatus.HANDLED, [Reply(RESET_TEXT)]

        await self._apply(event.user_id, result)
        return DispatchStatus.HANDLED, result.replies

    async def cancel(self, user_id: int) -> bool:
        """Drop the active dialog, if any."""
        async with self._lock(user_id):
            state = await self.sessions.get(user_id)
            if state is None:
                return False
            await self.sessions.clear(user_id)
        logger.info("User %s cancelled %s", user_id, state.fsm_state)
        return True

    async def _apply(self, user_id: int, result: FlowResult) -> None:
        if result.state is None:
            await self.sessions.clear(user_id)
        else:
            await self.sessions.set(user_id, result.state)
