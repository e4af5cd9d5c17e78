"""promptstream: stream completions from an OpenAI-compatible server to the terminal."""

__version__ = "0.1.0"
