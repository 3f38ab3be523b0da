"""
Model Client
============

The seam between the orchestration engine and the language model provider.

Every agent (web search, message search, assistant) describes its call as a
ModelRequest and sends it through a ModelClient. The production client
talks to the OpenAI Responses API; tests substitute a scripted client.

Provider quirks handled here:
- `temperature` is only accepted by the `gpt*` models
- `reasoning.effort` is only accepted by the `o*` reasoning models
- `previous_response_id` chains a request to an earlier response so the
  provider keeps the turn-level context (tool calls and their outputs)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI

from triage_bot.utils.logger import Logger

logger = Logger("Model")


@dataclass(frozen=True)
class ModelRequest:
    """
    A single request to the model.

    Attributes:
        model: Model name, e.g. "gpt-4.1" or "o3"
        input: Input items (labeled messages, or function call outputs)
        instructions: System directive for this agent
        tools: Tool definitions offered to the model
        text_format: The `text.format` value (plain text or a JSON schema)
        max_output_tokens: Upper bound on generated tokens
        temperature: Sampling temperature (gpt models only)
        reasoning_effort: "low" | "medium" | "high" (o models only)
        previous_response_id: Response this request continues from
    """
    model: str
    input: list[dict]
    instructions: str | None = None
    tools: list[dict] = field(default_factory=list)
    text_format: dict | None = None
    max_output_tokens: int | None = None
    temperature: float | None = None
    reasoning_effort: str | None = None
    previous_response_id: str | None = None

    def to_openai_kwargs(self) -> dict[str, Any]:
        """
        Convert to keyword arguments for `client.responses.create`.

        Returns:
            Only the parameters this model accepts
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": self.input,
        }

        if self.instructions:
            kwargs["instructions"] = self.instructions
        if self.tools:
            kwargs["tools"] = self.tools
        if self.text_format is not None:
            kwargs["text"] = {"format": self.text_format}
        if self.max_output_tokens is not None:
            kwargs["max_output_tokens"] = self.max_output_tokens

        if self.temperature is not None and self.model.startswith("gpt"):
            kwargs["temperature"] = self.temperature

        if self.reasoning_effort is not None and self.model.startswith("o"):
            kwargs["reasoning"] = {"effort": self.reasoning_effort}

        if self.previous_response_id:
            kwargs["previous_response_id"] = self.previous_response_id

        return kwargs


def labeled_message(role: str, heading: str, body: str) -> dict:
    """
    Build one labeled input segment.

    Args:
        role: "developer", "system" or "user"
        heading: Markdown heading, e.g. "## Channel Directive"
        body: Section content

    Returns:
        An input message item
    """
    return {"role": role, "content": f"{heading}\n\n{body}\n\n"}


class ModelClient(ABC):
    """
    Sends requests to a language model.

    Implementations return the provider's response object unchanged; it
    must expose `id` and an `output` list of items, as the OpenAI
    Responses API does.
    """

    @abstractmethod
    async def create_response(self, request: ModelRequest) -> Any:
        """Send one request and return the raw response."""


class OpenAIModelClient(ModelClient):
    """
    ModelClient backed by the OpenAI Responses API.

    Timeouts and retries are handled by RetryingCaller, so the SDK's own
    retry loop is disabled.

    Example:
        client = OpenAIModelClient(api_key="sk-...")
        response = await client.create_response(ModelRequest(
            model="gpt-4.1",
            input=[labeled_message("user", "# User Message", "Hello")],
        ))
    """

    def __init__(self, api_key: str | None = None, client: AsyncOpenAI | None = None):
        """
        Initialize the client.

        Args:
            api_key: OpenAI API key (ignored when a client is given)
            client: Pre-built AsyncOpenAI client
        """
        self._client = client or AsyncOpenAI(api_key=api_key, max_retries=0)

    async def create_response(self, request: ModelRequest) -> Any:
        kwargs = request.to_openai_kwargs()
        logger.debug(
            f"Sending request to {request.model}",
            {
                "inputs": len(request.input),
                "tools": len(request.tools),
                "previous_response_id": request.previous_response_id,
            },
        )
        return await self._client.responses.create(**kwargs)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()
