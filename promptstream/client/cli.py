"""
CLI interface for the prompt streaming client.

Sends one prompt to an OpenAI-compatible completion or chat endpoint and
writes the generated text to stdout as it streams in:

    promptstream -e http://localhost:7000/v1/completions "Write a haiku"
    git diff | promptstream -c "Write a commit message for this diff"

Settings are resolved in this order: explicit flag, environment variable
(endpoint and API key only), YAML defaults file, built-in default.
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, Tuple

from pydantic import ValidationError
from rich.console import Console

from .chat_client import PromptStreamClient
from .config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_SYSTEM_PROMPT,
    ClientConfig,
    InputOrder,
    PromptMode,
    RequestConfig,
    build_client_config,
    load_yaml_config,
    resolve_setting,
)
from .errors import ConfigurationError, TransportError
from .response_handler import ResponseHandler


logger = logging.getLogger(__name__)

ENDPOINT_ENV = "PROMPTSTREAM_ENDPOINT"
API_KEY_ENV = "PROMPTSTREAM_API_KEY"
DEBUG_LOG_FILE = "promptstream_debug.log"

# (flag, type, help). The payload key is the flag's argparse dest.
SAMPLING_OPTIONS = [
    ('--temperature', float, 'Sampling temperature'),
    ('--top-p', float, 'Nucleus sampling probability mass'),
    ('--top-k', int, 'Sample from the k most likely tokens'),
    ('--min-p', float, 'Minimum token probability relative to the top token'),
    ('--typical-p', float, 'Locally typical sampling parameter'),
    ('--tfs-z', float, 'Tail free sampling parameter'),
    ('--repeat-penalty', float, 'Penalty for repeated tokens'),
    ('--repeat-last-n', int, 'Number of recent tokens considered for the repeat penalty'),
    ('--presence-penalty', float, 'Presence penalty'),
    ('--frequency-penalty', float, 'Frequency penalty'),
    ('--mirostat', int, 'Mirostat mode (0 = off, 1 or 2)'),
    ('--mirostat-tau', float, 'Mirostat target entropy'),
    ('--mirostat-eta', float, 'Mirostat learning rate'),
    ('--seed', int, 'Random seed'),
]


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Flags default to None so that values from the YAML file are only
    overridden by options the user actually passed.
    """
    parser = argparse.ArgumentParser(
        prog='promptstream',
        description="Stream a completion from an OpenAI-compatible inference server",
    )

    parser.add_argument(
        'prompt',
        nargs='*',
        metavar='PROMPT',
        help='User prompt; multiple words are joined with spaces'
    )

    # ------------------------------------------------------------------------
    # Server Connection Arguments
    # ------------------------------------------------------------------------
    parser.add_argument(
        '-e', '--endpoint',
        help=f'Completion or chat endpoint URL (env: {ENDPOINT_ENV})'
    )
    parser.add_argument(
        '-k', '--api-key',
        help=f'Bearer credential for the server (env: {API_KEY_ENV})'
    )
    parser.add_argument(
        '-m', '--model',
        help='Model name sent with the request'
    )
    parser.add_argument(
        '--connect-timeout',
        type=float,
        help='Seconds to wait for the connection (default: 10)'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        help='Seconds to wait between streamed chunks (default: 120)'
    )
    parser.add_argument(
        '--config',
        help='Path to a YAML file with default settings'
    )

    # ------------------------------------------------------------------------
    # Prompt Arguments
    # ------------------------------------------------------------------------
    parser.add_argument(
        '-s', '--system',
        help=f'System prompt (default: "{DEFAULT_SYSTEM_PROMPT}")'
    )
    parser.add_argument(
        '-c', '--stdin',
        action='store_true',
        help='Read additional input from stdin'
    )
    parser.add_argument(
        '--input-order',
        choices=[order.value for order in InputOrder],
        help='Place stdin input before or after the prompt (default: before)'
    )
    parser.add_argument(
        '--chat',
        action='store_true',
        default=None,
        help='Send a chat message list instead of a completion prompt'
    )
    parser.add_argument(
        '--raw',
        action='store_true',
        default=None,
        help='Send the prompt without SYSTEM/USER/ASSISTANT labels'
    )
    parser.add_argument(
        '--echo',
        action='store_true',
        default=None,
        help='Write the composed prompt before the response'
    )

    # ------------------------------------------------------------------------
    # Generation Parameters
    # ------------------------------------------------------------------------
    parser.add_argument(
        '--max-tokens',
        type=int,
        help=f'Maximum tokens to generate (default: {DEFAULT_MAX_TOKENS})'
    )
    for flag, value_type, help_text in SAMPLING_OPTIONS:
        parser.add_argument(flag, type=value_type, help=help_text)
    parser.add_argument(
        '--ignore-eos',
        action='store_true',
        default=None,
        help='Keep generating past the end-of-sequence token'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help=f'Log prompts and responses to {DEBUG_LOG_FILE}'
    )

    return parser


def setup_logging(debug: bool) -> None:
    """Send debug logs to a file so they never mix with streamed output."""
    if debug:
        logging.basicConfig(
            filename=DEBUG_LOG_FILE,
            level=logging.DEBUG,
            format='%(asctime)s - %(levelname)s - %(message)s',
            filemode='w'
        )


def _pick(value: Any, defaults: Mapping[str, Any], key: str, fallback: Any) -> Any:
    """Explicit flag value, then the defaults file, then the built-in fallback."""
    if value is not None:
        return value
    return defaults.get(key, fallback)


def collect_sampling_params(args: argparse.Namespace,
                            defaults: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge the file's ``sampling`` mapping with sampling flags that were passed."""
    file_params = defaults.get('sampling') or {}
    if not isinstance(file_params, Mapping):
        raise ConfigurationError("'sampling' in the config file must be a mapping")
    params = dict(file_params)
    for flag, _, _ in SAMPLING_OPTIONS:
        dest = flag.lstrip('-').replace('-', '_')
        value = getattr(args, dest)
        if value is not None:
            params[dest] = value
    if args.ignore_eos:
        params['ignore_eos'] = True
    return params


def build_configs(args: argparse.Namespace, environ: Mapping[str, str],
                  auxiliary_input: Optional[str] = None) -> Tuple[ClientConfig, RequestConfig]:
    """Resolve parsed arguments into the client and request configurations.

    Raises:
        ConfigurationError: If no endpoint is configured, there is nothing to
            send, or a value fails validation
    """
    defaults = load_yaml_config(args.config) if args.config else {}

    user_segments = tuple(args.prompt)
    if not user_segments and not auxiliary_input:
        raise ConfigurationError("Nothing to send: give a PROMPT or pipe input with -c")

    endpoint = resolve_setting(args.endpoint, environ, ENDPOINT_ENV, defaults.get('endpoint'))
    api_key = resolve_setting(args.api_key, environ, API_KEY_ENV, defaults.get('api_key'))

    try:
        client_config = build_client_config(
            endpoint,
            api_key,
            connect_timeout=_pick(args.connect_timeout, defaults, 'connect_timeout', 10.0),
            read_timeout=_pick(args.timeout, defaults, 'timeout', 120.0),
        )
        request_config = RequestConfig(
            system_prompt=_pick(args.system, defaults, 'system', DEFAULT_SYSTEM_PROMPT),
            user_segments=user_segments,
            auxiliary_input=auxiliary_input,
            mode=PromptMode.CHAT_MESSAGES if _pick(args.chat, defaults, 'chat', False)
            else PromptMode.LEGACY_COMPLETION,
            instruction_framing=not _pick(args.raw, defaults, 'raw', False),
            input_order=_pick(args.input_order, defaults, 'input_order', InputOrder.INPUT_FIRST),
            model=_pick(args.model, defaults, 'model', None),
            max_tokens=_pick(args.max_tokens, defaults, 'max_tokens', DEFAULT_MAX_TOKENS),
            sampling_params=collect_sampling_params(args, defaults),
            echo_prompt=_pick(args.echo, defaults, 'echo', False),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return client_config, request_config


def main(argv: Optional[Sequence[str]] = None,
         environ: Optional[Mapping[str, str]] = None,
         stdin: Optional[TextIO] = None,
         stdout: Optional[TextIO] = None) -> int:
    """Run one request.

    Exit Codes:
        0: Success
        1: Configuration or transport error
        130: Interrupted
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    environ = os.environ if environ is None else environ
    console = Console(stderr=True)
    handler = ResponseHandler(sink=stdout, console=console)

    try:
        # Read all piped input before composing; the composer never does I/O
        auxiliary_input = None
        if args.stdin:
            auxiliary_input = (stdin or sys.stdin).read()

        client_config, request_config = build_configs(args, environ, auxiliary_input)

        with PromptStreamClient(client_config, response_handler=handler) as client:
            text = client.run(request_config)

        if not text and not handler.output_closed:
            handler.show_warning("Server returned no text")
        return 0

    except ConfigurationError as e:
        logger.debug("Configuration error: %s", e)
        handler.show_error(str(e))
        return 1
    except TransportError as e:
        logger.debug("Transport error: %s", e, exc_info=True)
        handler.show_error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == '__main__':
    sys.exit(main())
