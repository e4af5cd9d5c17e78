"""
Streaming completion client

Composes a prompt, sends it to an OpenAI-compatible server and decodes the
event-stream response into text fragments.
"""

from .chat_client import PromptStreamClient
from .config import ClientConfig, InputOrder, PromptMode, RequestConfig
from .errors import ConfigurationError, MalformedEventError, PromptStreamError, TransportError
from .prompt_composer import ComposedRequest, compose
from .stream_decoder import DecoderState, Done, TextDelta, decode_stream, feed, finish
from .cli import main

__all__ = [
    'PromptStreamClient', 'ClientConfig', 'InputOrder', 'PromptMode', 'RequestConfig',
    'ConfigurationError', 'MalformedEventError', 'PromptStreamError', 'TransportError',
    'ComposedRequest', 'compose',
    'DecoderState', 'Done', 'TextDelta', 'decode_stream', 'feed', 'finish',
    'main',
]
