"""Agent runtime: the reason-and-act executor and peer delegation."""

from .delegation import DelegationClient
from .executor import FALLBACK_TEXT, MAX_ITERATIONS, AgentRole, Delegator, TaskExecutor
from .protocol import PeerStreamAdapter, StatusUpdate, TaskSnapshot, build_agent_card
from .reasoner import ConversationReasoner, Reasoner, ReasonerFactory, reasoner_factory_for

__all__ = [
    "AgentRole",
    "ConversationReasoner",
    "DelegationClient",
    "Delegator",
    "FALLBACK_TEXT",
    "MAX_ITERATIONS",
    "PeerStreamAdapter",
    "Reasoner",
    "ReasonerFactory",
    "StatusUpdate",
    "TaskExecutor",
    "TaskSnapshot",
    "build_agent_card",
    "reasoner_factory_for",
]
