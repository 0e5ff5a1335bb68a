"""Exception hierarchy shared by the agents, tools, relay and client."""

from __future__ import annotations


class ClaimsAgentError(Exception):
    """Base class for all errors raised by claims_agents."""

    pass


class ReasonerError(ClaimsAgentError):
    """The reasoning backend is unreachable, misconfigured or failed mid-task."""

    pass


class ToolExecutionError(ClaimsAgentError):
    """A single tool invocation failed."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class DelegationError(ClaimsAgentError):
    """The delegate agent could not be reached or returned an unusable stream."""

    pass


class EventDecodeError(ClaimsAgentError):
    """A wire payload could not be turned into an Event."""

    pass


class RelayTransportError(ClaimsAgentError):
    """The client connection can no longer be written to."""

    pass


class InvalidTransitionError(ClaimsAgentError):
    """A task state transition would move backwards or leave a terminal state."""

    pass
