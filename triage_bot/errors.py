"""
Errors
======

Exception hierarchy for the orchestration engine.

Every failure that aborts the processing of one Slack event is a
TriageBotError. TriageAgent.process() logs it together with the
originating event and stays silent in the channel.

    TriageBotError
    ├── ModelCallError         retry budget exhausted / permanent rejection
    ├── ResponseParseError     model output we cannot act on
    │   ├── ModelRefusalError
    │   └── UnknownToolError
    ├── ContextCompileError    a helper agent (or its search) failed
    ├── ToolSourceError        MCP discovery / connection failure
    ├── ToolInvocationError    a registered tool call failed
    └── IterationLimitError    assistant loop did not terminate
"""


class TriageBotError(Exception):
    """Base class for all triage bot errors."""


class ModelCallError(TriageBotError):
    """
    A model call failed after all attempts.

    Attributes:
        attempts: How many attempts were made before giving up
    """

    def __init__(self, message: str, attempts: int):
        super().__init__(f"{message} (after {attempts} attempt{'s' if attempts != 1 else ''})")
        self.attempts = attempts


class ResponseParseError(TriageBotError):
    """The model produced output that cannot be turned into actions."""


class ModelRefusalError(ResponseParseError):
    """The model refused the request."""


class UnknownToolError(ResponseParseError):
    """A function call (or invocation) named a tool nobody provides."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ContextCompileError(TriageBotError):
    """Supporting context could not be gathered for an event."""


class ToolSourceError(TriageBotError):
    """A tool source could not be connected to or listed."""


class ToolInvocationError(TriageBotError):
    """A registered tool failed while being invoked."""


class IterationLimitError(TriageBotError):
    """The assistant loop kept asking to continue past its iteration cap."""

    def __init__(self, limit: int):
        super().__init__(f"Assistant loop did not terminate within {limit} iterations")
        self.limit = limit
