"""Command line interface for prompt-mixer."""

from prompt_mixer.cli.main import app

__all__ = ["app"]
