"""
Connection management for the inference server.

This module sends the single streaming POST and hands the raw response body
back as byte chunks. It does not retry: any connection failure, timeout or
non-success status becomes a TransportError.

Learning Points:
- requests.Session keeps default headers in one place
- stream=True defers the body download so chunks arrive as the server sends them
- A (connect, read) timeout tuple bounds every wait on a stalled server
- Closing the response releases the socket without draining the stream
"""

import logging
from typing import Iterator, Optional

import requests

from .config import ClientConfig
from .errors import TransportError
from .prompt_composer import ComposedRequest


logger = logging.getLogger(__name__)

# Bytes of an error response body included in the TransportError message.
ERROR_BODY_LIMIT = 500


class ConnectionManager:
    """Manages the HTTP connection to the inference server."""

    def __init__(self, config: ClientConfig, session: Optional[requests.Session] = None):
        """Initialize the connection manager.

        Args:
            config: ClientConfig with the endpoint and credential
            session: Optional pre-built session, mainly for tests
        """
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if config.api_key:
            self.session.headers["Authorization"] = f"Bearer {config.api_key}"

    def open_stream(self, request: ComposedRequest) -> requests.Response:
        """POST the request and return the response once its status is known good.

        Args:
            request: Composed request; its JSON form is sent verbatim

        Returns:
            requests.Response with an unread, streaming body

        Raises:
            TransportError: On connection failure, timeout or non-2xx status
        """
        body = request.to_json()
        logger.debug("POST %s", self.config.endpoint)
        logger.debug("Request body: %s", body)

        try:
            response = self.session.post(
                self.config.endpoint,
                data=body.encode("utf-8"),
                stream=True,
                timeout=(self.config.connect_timeout, self.config.read_timeout),
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Timed out connecting to {self.config.endpoint}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Cannot connect to {self.config.endpoint}: {e}") from e

        if not response.ok:
            try:
                detail = response.text[:ERROR_BODY_LIMIT].strip()
            except requests.exceptions.RequestException:
                detail = ""
            finally:
                response.close()
            message = f"Server responded with HTTP {response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise TransportError(message, status_code=response.status_code)

        logger.debug("Streaming response from %s (HTTP %s)", self.config.endpoint, response.status_code)
        return response

    def iter_chunks(self, response: requests.Response) -> Iterator[bytes]:
        """Yield body chunks as they arrive, closing the response when done.

        Closing the generator early (e.g. after the end sentinel) closes the
        response without reading the rest of the body.

        Raises:
            TransportError: If the connection fails mid-stream
        """
        try:
            for chunk in response.iter_content(chunk_size=None):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Stream interrupted: {e}") from e
        finally:
            response.close()

    def stream(self, request: ComposedRequest) -> Iterator[bytes]:
        """Open the stream and iterate its chunks.

        The status check happens here, before the iterator is returned.
        """
        return self.iter_chunks(self.open_stream(request))

    def close(self) -> None:
        self.session.close()
