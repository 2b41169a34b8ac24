"""State definition for one conversation turn in the LangGraph state machine."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.models import ConversationSnapshot, Effect


class TurnState(BaseModel):
    """
    Input and output of one turn.

    Handlers read `conversation` and `inbound_text` and fill in `reply`,
    `updates` (the conversation fields to write) and `effects`. They never
    write to the store themselves.
    """

    conversation: ConversationSnapshot = Field(
        ...,
        description="Conversation as it was when the message arrived"
    )

    inbound_text: str = Field(
        default="",
        description="Raw inbound message text"
    )

    reply: Optional[str] = Field(
        default=None,
        description="Text to answer the driver with; None when an effect supplies it"
    )

    updates: Dict[str, Any] = Field(
        default_factory=dict,
        description="Conversation field updates, including current_state"
    )

    effects: List[Effect] = Field(
        default_factory=list,
        description="Side effects for the engine to run after updates are applied"
    )

    handled_by: Optional[str] = Field(
        default=None,
        description="Node that handled the turn, for logging"
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def next_conversation(self) -> ConversationSnapshot:
        """Snapshot with this turn's updates applied."""
        return self.conversation.with_updates(self.updates)
