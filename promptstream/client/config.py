"""
Configuration models for the prompt streaming client.

RequestConfig describes what to ask the model, ClientConfig describes where
to send it. Both are plain data: nothing here reads the process environment,
the CLI resolves flags and environment variables and passes the results in.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError


DEFAULT_SYSTEM_PROMPT = "Help the user with their task."
DEFAULT_MAX_TOKENS = 10000


class PromptMode(str, Enum):
    """Shape of the request payload."""

    LEGACY_COMPLETION = "completion"
    CHAT_MESSAGES = "chat"


class InputOrder(str, Enum):
    """Placement of auxiliary (piped) input relative to the user text."""

    INPUT_FIRST = "before"
    USER_FIRST = "after"


SamplingValue = Union[bool, int, float]


class RequestConfig(BaseModel):
    """Fully resolved input to the prompt composer."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="System prompt placed before the user text"
    )
    user_segments: Tuple[str, ...] = Field(
        default=(),
        description="Positional user text, joined with single spaces"
    )
    auxiliary_input: Optional[str] = Field(
        default=None,
        description="Extra input such as piped stdin content"
    )
    mode: PromptMode = Field(
        default=PromptMode.LEGACY_COMPLETION,
        description="Completion prompt or chat message list"
    )
    instruction_framing: bool = Field(
        default=True,
        description="Wrap the prompt in SYSTEM/USER/ASSISTANT labels"
    )
    input_order: InputOrder = Field(
        default=InputOrder.INPUT_FIRST,
        description="Whether auxiliary input goes before or after the user text"
    )
    model: Optional[str] = Field(
        default=None,
        description="Model name sent with the request"
    )
    max_tokens: Optional[int] = Field(
        default=DEFAULT_MAX_TOKENS,
        description="Maximum tokens to generate"
    )
    sampling_params: Dict[str, SamplingValue] = Field(
        default_factory=dict,
        description="Sampling parameters forwarded unchanged to the server"
    )
    echo_prompt: bool = Field(
        default=False,
        description="Write the composed prompt before the streamed output"
    )

    @property
    def user_text(self) -> str:
        return " ".join(self.user_segments)


class ClientConfig(BaseModel):
    """Connection settings for the inference server."""

    endpoint: str = Field(..., description="Full URL of the completion or chat endpoint")
    api_key: Optional[str] = Field(
        default=None,
        description="Bearer credential, sent only when present"
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for the connection"
    )
    read_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Seconds to wait between received chunks"
    )

    @field_validator('endpoint')
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Reject blank endpoints and normalize trailing slashes."""
        v = v.strip().rstrip('/')
        if not v:
            raise ValueError("endpoint must not be empty")
        return v


def resolve_setting(explicit: Optional[str], environ: Mapping[str, str],
                    env_var: str, fallback: Optional[str] = None) -> Optional[str]:
    """Pick a setting value: explicit flag, then environment, then fallback.

    Empty strings count as unset so that ``FOO=`` in the environment does not
    mask a configured fallback.
    """
    if explicit:
        return explicit
    value = environ.get(env_var)
    if value:
        return value
    return fallback or None


def build_client_config(endpoint: Optional[str], api_key: Optional[str] = None,
                        **kwargs: Any) -> ClientConfig:
    """Create a ClientConfig, failing before any network activity if the endpoint is missing.

    Raises:
        ConfigurationError: If no endpoint was resolved or it is not a string
    """
    if endpoint is not None and not isinstance(endpoint, str):
        raise ConfigurationError(f"Endpoint must be a URL string, got {endpoint!r}")
    if not endpoint or not endpoint.strip():
        raise ConfigurationError(
            "No endpoint configured: pass --endpoint or set PROMPTSTREAM_ENDPOINT"
        )
    return ClientConfig(endpoint=endpoint, api_key=api_key or None, **kwargs)


def load_yaml_config(yaml_path: str) -> Dict[str, Any]:
    """Load a defaults file.

    Args:
        yaml_path: Path to the YAML configuration file

    Returns:
        Dictionary containing the configuration data

    Raises:
        ConfigurationError: If the file is missing, unparsable or not a mapping
    """
    path = Path(yaml_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {yaml_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {yaml_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {yaml_path}")

    return data
