"""Intake conversation state machine."""

from src.conversation.engine import REMOVE_COMMAND, START_COMMAND, ConversationEngine

__all__ = ["ConversationEngine", "REMOVE_COMMAND", "START_COMMAND"]
