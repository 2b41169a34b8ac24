"""
Conversation engine: one inbound SMS in, one reply out.

Global commands are handled here ahead of any state dispatch. Everything
else runs one turn of the state graph against the active conversation,
validates the resulting transition, writes the updates, then runs effects.
"""
import logging
from typing import Any, Dict, Optional
from uuid import UUID

from core.utils_datetime import is_idle
from domain.enums import (
    ConversationState,
    EffectKind,
    GlobalCommand,
    MessageDirection,
    is_allowed_transition,
)
from domain.models import ConversationSnapshot
from graph.build_graph import get_graph
from graph.state import TurnState
from services.booking_finalizer import BookingFinalizer
from services.context import BookingContext
from services.errors import InvalidTransitionError
from services import sms_templates as t


logger = logging.getLogger(__name__)


class ConversationEngine:
    """Routes inbound messages through global commands and the state graph."""

    def __init__(self, context: BookingContext, graph=None):
        self.ctx = context
        self.store = context.store
        self.graph = graph or get_graph()
        self.finalizer = BookingFinalizer(context)

    def handle_inbound(self, phone: str, text: str, raw_payload: Optional[Dict[str, Any]] = None) -> str:
        """
        Process one inbound message and return the reply text.

        Every inbound message is logged before the reply is produced, and
        every reply is logged as outbound.
        """
        text = text or ""
        command = GlobalCommand.parse(text)

        if command is not None and command != GlobalCommand.BOOK:
            return self._handle_command(command, phone, text, raw_payload)

        conversation = self.store.get_active_conversation(phone)
        expired = False
        if conversation is not None and is_idle(
            conversation.last_inbound_at,
            self.ctx.clock(),
            self.ctx.settings.conversation_idle_minutes,
        ):
            self.store.deactivate_active_conversations(phone, ConversationState.EXPIRED)
            logger.info(
                "Conversation expired on inbound",
                extra={"phone": phone, "conversation_id": str(conversation.id)},
            )
            conversation = None
            expired = True

        if command == GlobalCommand.BOOK:
            return self._start_booking(phone, text, raw_payload)

        if conversation is None:
            self.store.log_message(None, phone, MessageDirection.INBOUND, text, raw_payload)
            reply = t.expired_message() if expired else t.no_conversation_message()
            return self._reply(None, phone, reply)

        self.store.log_message(conversation.id, phone, MessageDirection.INBOUND, text, raw_payload)
        conversation = self.store.update_conversation(conversation.id, last_inbound_at=self.ctx.clock())
        logger.info(
            "Inbound message",
            extra={"phone": phone, "conversation_id": str(conversation.id), "state": conversation.current_state.value},
        )
        return self._run_turn(conversation, text)

    # ========================================================================
    # GLOBAL COMMANDS
    # ========================================================================

    def _handle_command(
        self,
        command: GlobalCommand,
        phone: str,
        text: str,
        raw_payload: Optional[Dict[str, Any]],
    ) -> str:
        active = self.store.get_active_conversation(phone)
        conversation_id = active.id if active else None
        self.store.log_message(conversation_id, phone, MessageDirection.INBOUND, text, raw_payload)
        logger.info("Global command", extra={"phone": phone, "command": command.value})

        if command == GlobalCommand.HELP:
            reply = t.help_message()
        elif command == GlobalCommand.MENU:
            reply = t.menu_message()
        elif command == GlobalCommand.DEMO:
            reply = t.demo_message()
        elif command in (GlobalCommand.CANCEL, GlobalCommand.STOP):
            self.store.deactivate_active_conversations(phone, ConversationState.CANCELLED)
            reply = t.cancelled_message()
        elif command == GlobalCommand.RESET:
            self.store.deactivate_active_conversations(phone, ConversationState.CANCELLED)
            reply = t.reset_message()
        elif command == GlobalCommand.SUPPORT:
            self.ctx.alerts.notify(f'Support text from {phone}: "{text}"')
            reply = t.support_ack_message() if self.ctx.alerts.enabled else t.support_fallback_message()
        else:
            raise ValueError(f"Unhandled command: {command}")

        return self._reply(conversation_id, phone, reply)

    def _start_booking(self, phone: str, text: str, raw_payload: Optional[Dict[str, Any]]) -> str:
        """BOOK always wins: close whatever is active and start fresh."""
        self.store.deactivate_active_conversations(phone, ConversationState.CANCELLED)
        conversation = self.store.create_conversation(phone)
        self.store.log_message(conversation.id, phone, MessageDirection.INBOUND, text, raw_payload)
        return self._reply(conversation.id, phone, t.location_prompt())

    # ========================================================================
    # STATE GRAPH TURN
    # ========================================================================

    def _run_turn(self, conversation: ConversationSnapshot, text: str) -> str:
        result = self.graph.invoke(
            TurnState(conversation=conversation, inbound_text=text),
            config={"configurable": {"ctx": self.ctx}},
        )
        turn = result if isinstance(result, TurnState) else TurnState.model_validate(result)

        updates = dict(turn.updates)
        target = updates.get("current_state")
        if target is not None:
            target = ConversationState(target)
            self.check_transition(conversation.current_state, target)
            if target.is_terminal:
                updates["is_active"] = False

        if updates:
            self.store.update_conversation(conversation.id, **updates)
            if target is not None and target != conversation.current_state:
                logger.info(
                    "Conversation state change",
                    extra={
                        "conversation_id": str(conversation.id),
                        "from_state": conversation.current_state.value,
                        "to_state": target.value,
                        "node": turn.handled_by,
                    },
                )

        reply = turn.reply
        for effect in turn.effects:
            if effect.kind == EffectKind.ALERT_OPERATOR:
                self.ctx.alerts.notify(effect.text or "")
            elif effect.kind == EffectKind.CREATE_BOOKING:
                reply = self.finalizer.create_booking(conversation.id)

        return self._reply(conversation.id, conversation.driver_phone_e164, reply or t.GENERIC_ERROR)

    @staticmethod
    def check_transition(current: ConversationState, target: ConversationState) -> None:
        """Raise before any write when a state change is not in the flow graph."""
        if not is_allowed_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)

    def _reply(self, conversation_id: Optional[UUID], phone: str, text: str) -> str:
        self.store.log_message(conversation_id, phone, MessageDirection.OUTBOUND, text)
        return text
