"""
Orchestrator module for managing rooms and event flow.
"""

from trade_interpreter.orchestrator.conversation_state import ConversationStateMachine
from trade_interpreter.orchestrator.trade_interpreter import TradeInterpreter
from trade_interpreter.orchestrator.webhook_processor import InvalidEventError, WebhookEventProcessor

__all__ = [
    "ConversationStateMachine",
    "TradeInterpreter",
    "InvalidEventError",
    "WebhookEventProcessor",
]
