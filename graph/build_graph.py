"""Build the LangGraph state machine for one conversation turn."""

from typing import Callable, Dict

from langgraph.graph import StateGraph, START, END

from domain.enums import ConversationState
from .state import TurnState
from .nodes import (
    location_node,
    lot_choice_node,
    name_node,
    truck_type_node,
    make_model_node,
    plate_node,
    stay_option_node,
    custom_nights_node,
    summary_confirmation_node,
    payment_node,
    inactive_node,
)


NODES: Dict[str, Callable] = {
    "location": location_node,
    "lot_choice": lot_choice_node,
    "name": name_node,
    "truck_type": truck_type_node,
    "make_model": make_model_node,
    "plate": plate_node,
    "stay_option": stay_option_node,
    "custom_nights": custom_nights_node,
    "summary_confirmation": summary_confirmation_node,
    "payment": payment_node,
    "inactive": inactive_node,
}

# Every ConversationState must appear here; build_graph() refuses to compile otherwise.
STATE_ROUTES: Dict[ConversationState, str] = {
    ConversationState.AWAITING_LOCATION_OR_LOT_CODE: "location",
    ConversationState.AWAITING_LOT_CHOICE: "lot_choice",
    ConversationState.AWAITING_NAME: "name",
    ConversationState.AWAITING_TRUCK_TYPE: "truck_type",
    ConversationState.AWAITING_MAKE_MODEL: "make_model",
    ConversationState.AWAITING_PLATE: "plate",
    ConversationState.AWAITING_STAY_OPTION: "stay_option",
    ConversationState.AWAITING_CUSTOM_NIGHTS: "custom_nights",
    ConversationState.AWAITING_SUMMARY_CONFIRMATION: "summary_confirmation",
    ConversationState.AWAITING_PAYMENT: "payment",
    ConversationState.CANCELLED: "inactive",
    ConversationState.EXPIRED: "inactive",
    ConversationState.COMPLETED: "inactive",
}


class IncompleteStateRoutingError(RuntimeError):
    """A conversation state has no handler node."""


# ============================================================================
# ROUTING
# ============================================================================

def route_by_state(state: TurnState) -> str:
    """Dispatch to the handler for the conversation's current state."""
    return STATE_ROUTES[state.conversation.current_state]


def check_routes(routes: Dict[ConversationState, str] = STATE_ROUTES) -> None:
    """Raise unless every state routes to a known node."""
    missing = [s.value for s in ConversationState if s not in routes]
    unknown = sorted({node for node in routes.values() if node not in NODES})
    if missing or unknown:
        raise IncompleteStateRoutingError(
            f"Unrouted states: {missing}; unknown nodes: {unknown}"
        )


# ============================================================================
# GRAPH
# ============================================================================

def build_graph():
    """
    Build and compile the turn graph.

    START routes on current_state to exactly one handler node; every handler
    goes straight to END. One invoke handles one inbound message.

    Returns:
        Compiled graph application
    """
    check_routes()

    workflow = StateGraph(TurnState)

    for name, node in NODES.items():
        workflow.add_node(name, node)

    workflow.add_conditional_edges(
        START,
        route_by_state,
        {name: name for name in NODES},
    )

    for name in NODES:
        workflow.add_edge(name, END)

    return workflow.compile()


_compiled = None


def get_graph():
    """Get the shared compiled graph (built on first use)."""
    global _compiled
    if _compiled is None:
        _compiled = build_graph()
    return _compiled
