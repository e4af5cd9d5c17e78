"""
Response handling: writes streamed text to the output sink.

Generated text goes to stdout with no decoration so it can be piped into
another command. Status and errors go to stderr through a rich Console.
"""

import logging
import sys
from typing import Iterable, Optional, TextIO

from rich.console import Console
from rich.markup import escape


logger = logging.getLogger(__name__)


class ResponseHandler:
    """Writes fragments to the sink as they arrive."""

    def __init__(self, sink: Optional[TextIO] = None,
                 console: Optional[Console] = None):
        self.sink = sink if sink is not None else sys.stdout
        self.console = console if console is not None else Console(stderr=True)
        self.output_closed = False

    def write(self, text: str) -> None:
        """Write and flush immediately so each token shows up as it is produced."""
        self.sink.write(text)
        self.sink.flush()

    def handle_streaming_response(self, fragments: Iterable[str]) -> str:
        """Write each fragment as it arrives and return the full text.

        Stops early if the sink is closed (e.g. ``| head``); the caller is
        responsible for closing the transport behind ``fragments``.
        """
        full_content = ""
        try:
            for fragment in fragments:
                self.write(fragment)
                full_content += fragment
        except BrokenPipeError:
            self.output_closed = True
            logger.debug("Output closed after %d characters", len(full_content))

        logger.debug("=== STREAMING RESPONSE ===")
        logger.debug("Response: %s%s", full_content[:500], '...' if len(full_content) > 500 else '')
        return full_content

    def show_error(self, message: str) -> None:
        self.console.print(f"[red]❌ {escape(message)}[/red]", markup=True, highlight=False)

    def show_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]", markup=True, highlight=False)
