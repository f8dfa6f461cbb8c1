"""LLM host loop: lets a model call the library's tools."""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import litellm

from statsbridge.tooling.library import FunctionLibrary, render_result

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to tools that read keyboard activity logs, "
    "Garmin Connect health data and a small file database. Use the tools to answer the "
    "user's request. To edit a database file, read it first, then call patchDatabaseFile "
    "with diff tuples that cover the whole file; use dryRun to preview."
)


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ToolCall:
    tool_name: str
    tool_args: dict[str, Any]
    tool_result: Any = None
    id: str | None = None


@dataclass
class LLMMessage:
    role: Role
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None


@dataclass
class LLMResponse:
    """Response from LLM with tool calling details."""

    messages: list[LLMMessage]
    tool_calls: list[ToolCall]
    response_time_ms: int = 0


def _llm_messages_to_dicts(messages: list[LLMMessage]) -> list[dict]:
    """Convert LLMMessage objects to dict format for LiteLLM."""
    result = []

    for msg in messages:
        msg_dict: dict[str, Any] = {"role": msg.role.value, "content": msg.content}

        if msg.tool_calls:
            msg_dict["tool_calls"] = []
            for tc in msg.tool_calls:
                tc_dict: dict[str, Any] = {
                    "type": "function",
                    "function": {"name": tc.tool_name, "arguments": json.dumps(tc.tool_args)},
                }
                if tc.id:
                    tc_dict["id"] = tc.id
                msg_dict["tool_calls"].append(tc_dict)

        if msg.tool_call_id:
            msg_dict["tool_call_id"] = msg.tool_call_id

        result.append(msg_dict)

    return result


def _parse_tool_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Model sent unparseable tool arguments: {raw!r}")
        return {"__raw__": raw}
    return parsed if isinstance(parsed, dict) else {"__raw__": parsed}


class LLMClient(ABC):
    """Abstract interface for LLM clients."""

    @abstractmethod
    async def completion(
        self, model: str, messages: list[LLMMessage], tools: list[dict], **kwargs
    ) -> LLMResponse:
        """Get completion with tool calling support.

        Returns:
            LLMResponse whose messages end with the assistant message
        """


class LiteLLMClient(LLMClient):
    """LiteLLM client for multiple LLM providers."""

    async def completion(
        self,
        model: str,
        messages: list[LLMMessage],
        tools: list[dict],
        temperature: float = 0.1,
        timeout_seconds: int = 60,
        **kwargs,
    ) -> LLMResponse:
        start_time = time.time()

        response = await litellm.acompletion(
            model=model,
            messages=_llm_messages_to_dicts(messages),
            tools=tools or None,
            temperature=temperature,
            timeout=timeout_seconds,
            **kwargs,
        )

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                tool_name=tc.function.name,
                tool_args=_parse_tool_arguments(tc.function.arguments),
                id=tc.id,
            )
            for tc in (message.tool_calls or [])
        ]
        assistant_msg = LLMMessage(role=Role.ASSISTANT, content=message.content or "", tool_calls=tool_calls)

        return LLMResponse(
            messages=messages + [assistant_msg],
            tool_calls=tool_calls,
            response_time_ms=int((time.time() - start_time) * 1000),
        )


class LLMHelper:
    """Runs a conversation in which the model may call tools."""

    def __init__(
        self,
        model: str,
        function_library: FunctionLibrary,
        llm_client: LLMClient,
        default_system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        self.model = model
        self.function_library = function_library
        self.llm_client = llm_client
        self.default_system_prompt = default_system_prompt

    def _initial_messages(self, prompt: str | list[LLMMessage], system_prompt: str | None) -> list[LLMMessage]:
        if isinstance(prompt, str):
            return [
                LLMMessage(role=Role.SYSTEM, content=system_prompt or self.default_system_prompt),
                LLMMessage(role=Role.USER, content=prompt),
            ]
        return list(prompt)

    async def ask(
        self,
        prompt: str | list[LLMMessage],
        max_rounds: int = 5,
        system_prompt: str | None = None,
        on_progress: Callable[[str], None] | None = None,
        **llm_kwargs,
    ) -> LLMResponse:
        """Ask the model, executing its tool calls until it answers without one.

        Args:
            prompt: User prompt string or list of LLMMessage objects
            max_rounds: Maximum number of model completions
            system_prompt: System prompt override
            on_progress: Receives each tool's progress message
            **llm_kwargs: Additional arguments passed to the LLM client

        Returns:
            LLMResponse with the whole conversation and every executed tool call
        """
        start_time = time.time()
        messages = self._initial_messages(prompt, system_prompt)
        all_tool_calls: list[ToolCall] = []

        for _ in range(max_rounds):
            response = await self.llm_client.completion(
                model=self.model,
                messages=messages,
                tools=self.function_library.get_schemas(),
                **llm_kwargs,
            )
            messages.extend(response.messages[len(messages) :])

            if not response.tool_calls:
                break

            for tool_call in response.tool_calls:
                if tool_call.tool_result is None:
                    tool_call.tool_result = await self.function_library.dispatch(
                        tool_call.tool_name, tool_call.tool_args, on_progress=on_progress
                    )
                all_tool_calls.append(tool_call)
                messages.append(
                    LLMMessage(
                        role=Role.TOOL,
                        content=render_result(tool_call.tool_result),
                        tool_call_id=tool_call.id or f"call_{len(all_tool_calls)}",
                    )
                )
        else:
            logger.warning(f"Conversation stopped after {max_rounds} rounds")

        return LLMResponse(
            messages=messages,
            tool_calls=all_tool_calls,
            response_time_ms=int((time.time() - start_time) * 1000),
        )

    @staticmethod
    def final_answer(response: LLMResponse) -> str:
        for message in reversed(response.messages):
            if message.role == Role.ASSISTANT and message.content:
                return message.content
        return ""
