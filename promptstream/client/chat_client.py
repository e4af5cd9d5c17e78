"""
Main client that ties the components together.

    RequestConfig -> compose() -> ConnectionManager -> decode_stream() -> ResponseHandler
"""

import logging
from contextlib import closing
from typing import Optional

from .config import ClientConfig, RequestConfig
from .connection_manager import ConnectionManager
from .prompt_composer import compose
from .response_handler import ResponseHandler
from .stream_decoder import decode_stream


logger = logging.getLogger(__name__)


class PromptStreamClient:
    """Sends one prompt and streams the answer to the output sink."""

    def __init__(self, config: ClientConfig,
                 connection_manager: Optional[ConnectionManager] = None,
                 response_handler: Optional[ResponseHandler] = None):
        self.config = config
        self.connection_manager = connection_manager or ConnectionManager(config)
        self.response_handler = response_handler or ResponseHandler()

    def run(self, request_config: RequestConfig) -> str:
        """Compose, send and stream one request.

        The transport is closed on every exit path: end sentinel, stream
        exhaustion, closed output, KeyboardInterrupt or error.

        Returns:
            str: The generated text as written to the sink

        Raises:
            TransportError: If the request fails or the stream breaks
        """
        request = compose(request_config)
        logger.debug("=== PROMPT (%s) ===", request.mode.value)
        logger.debug("%s", request.prompt)

        if request_config.echo_prompt:
            try:
                self.response_handler.write(request.prompt)
            except BrokenPipeError:
                self.response_handler.output_closed = True
                logger.debug("Output closed before the prompt was echoed")
                return ""

        with closing(self.connection_manager.stream(request)) as chunks:
            fragments = decode_stream(chunks, request.mode)
            return self.response_handler.handle_streaming_response(fragments)

    def close(self) -> None:
        self.connection_manager.close()

    def __enter__(self) -> 'PromptStreamClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
