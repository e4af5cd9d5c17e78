"""
Prompt composition for completion and chat endpoints.

compose() is a pure function of a RequestConfig: it performs no I/O, never
mutates its input, and equal configs always produce byte-identical JSON.

Completion prompt (instruction framing on):

    SYSTEM: Help the user with their task.
    USER: Summarize this file
    ASSISTANT:

The server continues generation after the final ``ASSISTANT:`` label.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .config import InputOrder, PromptMode, RequestConfig


logger = logging.getLogger(__name__)

SYSTEM_LABEL = "SYSTEM:"
USER_LABEL = "USER:"
ASSISTANT_LABEL = "ASSISTANT:"

# Keys owned by the composer; sampling parameters cannot replace them.
RESERVED_KEYS = frozenset({"stream", "prompt", "messages"})


@dataclass(frozen=True)
class ComposedRequest:
    """Request body ready to be sent, plus the prompt text used for echoing."""

    payload: Dict[str, Any] = field(repr=False)
    prompt: str
    mode: PromptMode

    def to_json(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False, separators=(",", ":"))


def user_segment(config: RequestConfig) -> str:
    """Join the user text and auxiliary input in the configured order."""
    user_text = config.user_text
    aux = config.auxiliary_input
    if not aux:
        return user_text
    if not user_text:
        return aux
    if config.input_order is InputOrder.INPUT_FIRST:
        return f"{aux}\n{user_text}"
    return f"{user_text}\n{aux}"


def render_prompt(config: RequestConfig) -> str:
    """Render the completion-style prompt string."""
    segment = user_segment(config)
    if not config.instruction_framing:
        return segment
    return "\n".join([
        f"{SYSTEM_LABEL} {config.system_prompt}",
        f"{USER_LABEL} {segment}",
        ASSISTANT_LABEL,
    ])


def render_messages(config: RequestConfig) -> List[Dict[str, str]]:
    """Render the two-message chat list."""
    return [
        {"role": "system", "content": config.system_prompt},
        {"role": "user", "content": user_segment(config)},
    ]


def compose(config: RequestConfig) -> ComposedRequest:
    """Build the request payload for a RequestConfig.

    Args:
        config: Resolved request configuration

    Returns:
        ComposedRequest whose payload shares no mutable state with ``config``
    """
    payload: Dict[str, Any] = {}
    if config.model is not None:
        payload["model"] = config.model

    if config.mode is PromptMode.CHAT_MESSAGES:
        messages = render_messages(config)
        payload["messages"] = messages
        prompt = messages[-1]["content"]
    else:
        prompt = render_prompt(config)
        payload["prompt"] = prompt

    payload["stream"] = True
    if config.max_tokens is not None:
        payload["max_tokens"] = config.max_tokens

    for name, value in config.sampling_params.items():
        if name in RESERVED_KEYS:
            logger.debug("Ignoring reserved sampling parameter %r", name)
            continue
        payload[name] = value

    return ComposedRequest(payload=copy.deepcopy(payload), prompt=prompt, mode=config.mode)
