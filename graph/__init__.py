"""LangGraph conversation state machine for the parking booking assistant."""

from .state import TurnState
from .build_graph import build_graph, get_graph, STATE_ROUTES

__all__ = ["TurnState", "build_graph", "get_graph", "STATE_ROUTES"]
