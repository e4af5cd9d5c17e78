"""
Incremental decoder for event-stream completion responses.

The server sends newline-delimited records:

    data: {"choices":[{"text":" Hello"}]}

    data: {"choices":[{"text":" world"}]}
    data: [DONE]

Chunks from the transport can split a record anywhere (even inside a
multi-byte character) or carry several records at once. feed() buffers the
unterminated tail in DecoderState.carry and only processes complete lines,
so the output is the same however the bytes were chunked.

Learning Points:
- codecs incremental decoders keep partial UTF-8 sequences between calls
- Malformed lines are skipped, never fatal: keep-alives and partial JSON are normal
- Only the first fragment is left-stripped; later fragments carry word spacing
"""

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional, Union

from .config import PromptMode
from .errors import MalformedEventError


logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Malformed:
    line: str


StreamEvent = Union[TextDelta, Done, Malformed]

DONE = Done()


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class DecoderState:
    """Per-response decoder state. Owned by exactly one consumption loop."""

    mode: PromptMode = PromptMode.LEGACY_COMPLETION
    carry: str = ""
    first_fragment_emitted: bool = False
    terminated: bool = False
    _bytes: codecs.IncrementalDecoder = field(default_factory=_utf8_decoder, repr=False)


def extract_text(event: Any, mode: PromptMode) -> str:
    """Pull the generated text out of one decoded event.

    Completion responses carry ``choices[0].text``; chat responses carry
    ``choices[0].delta.content``.

    Raises:
        MalformedEventError: If the expected field is missing or not a string
    """
    try:
        choice = event["choices"][0]
        if mode is PromptMode.CHAT_MESSAGES:
            text = choice["delta"]["content"]
        else:
            text = choice["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedEventError(f"No text in event: {e!r}") from e

    if not isinstance(text, str):
        raise MalformedEventError(f"Text field is {type(text).__name__}, not str")
    return text


def parse_line(line: str, mode: PromptMode) -> Optional[StreamEvent]:
    """Classify one complete, trimmed line.

    Returns None for lines that carry nothing (blank keep-alives, comments,
    other SSE fields).
    """
    if line == DONE_SENTINEL:
        return DONE
    if not line.startswith(DATA_PREFIX):
        return None

    body = line[len(DATA_PREFIX):]
    try:
        event = json.loads(body)
        return TextDelta(extract_text(event, mode))
    except (json.JSONDecodeError, MalformedEventError) as e:
        logger.debug("Skipping malformed stream line %r: %s", line[:200], e)
        return Malformed(line)


def _process_lines(state: DecoderState, lines: Iterable[str]) -> List[StreamEvent]:
    events: List[StreamEvent] = []
    for raw in lines:
        event = parse_line(raw.strip(), state.mode)
        if event is None or isinstance(event, Malformed):
            continue
        if isinstance(event, Done):
            state.terminated = True
            state.carry = ""
            events.append(event)
            break
        text = event.text
        if not state.first_fragment_emitted:
            text = text.lstrip()
        if not text:
            continue
        state.first_fragment_emitted = True
        events.append(TextDelta(text))
    return events


def feed(state: DecoderState, chunk: bytes) -> List[StreamEvent]:
    """Consume one transport chunk and return the events it completes.

    Only TextDelta and Done are returned; malformed lines are dropped.
    Lines after a ``data: [DONE]`` sentinel are discarded, and once the
    state is terminated every further call returns an empty list.
    """
    if state.terminated:
        return []

    lines = (state.carry + state._bytes.decode(chunk)).split("\n")
    state.carry = lines.pop()
    return _process_lines(state, lines)


def finish(state: DecoderState) -> List[StreamEvent]:
    """Flush the decoder at stream exhaustion.

    A final record without a trailing newline is processed as a complete line.
    """
    if state.terminated:
        return []

    tail = state.carry + state._bytes.decode(b"", final=True)
    state.carry = ""
    if not tail:
        return []
    return _process_lines(state, [tail])


def decode_stream(chunks: Iterable[bytes],
                  mode: PromptMode = PromptMode.LEGACY_COMPLETION) -> Iterator[str]:
    """Yield text fragments from a chunk iterable until Done or exhaustion.

    Stops pulling from ``chunks`` as soon as the sentinel is seen, so the
    caller can close the transport without draining it.
    """
    state = DecoderState(mode=mode)
    for chunk in chunks:
        for event in feed(state, chunk):
            if isinstance(event, TextDelta):
                yield event.text
        if state.terminated:
            return

    for event in finish(state):
        if isinstance(event, TextDelta):
            yield event.text
