"""
CLI Utilities - Shared helper functions for command line operations.

Formatted printing, logging setup, and the glue that turns the async core
into synchronous click commands.
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Optional, TypeVar

import click
from rich.console import Console

from ..analysis.assistant import OrgAssistant
from ..config import Settings, load_settings
from ..core.exceptions import GenerationError, OrgPilotError
from ..core.types import ProcessDiagram
from ..services.generation import GeminiDiagramGenerator
from ..services.rest import CrmRestClient
from .renderers import JsonRenderer, error_message

T = TypeVar("T")

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

console = Console()


@dataclass
class CliContext:
    """Per-invocation state shared by all commands."""
    settings: Settings
    verbose: bool = False


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


def get_context(ctx: click.Context) -> CliContext:
    """Context object, built from config and environment if the group did not run."""
    if ctx.obj is None:
        ctx.obj = CliContext(settings=load_settings())
    return ctx.obj


def run_async(coro: Awaitable[T]) -> T:
    return asyncio.run(coro)


def create_client(settings: Settings) -> CrmRestClient:
    return CrmRestClient.from_settings(settings)


def create_generator(settings: Settings) -> GeminiDiagramGenerator:
    return GeminiDiagramGenerator.from_settings(settings)


def create_assistant(settings: Settings) -> OrgAssistant:
    """Assistant for the configured model; without an API key every answer is the fallback."""
    try:
        return OrgAssistant(create_generator(settings))
    except GenerationError as e:
        logger.warning(f"Assistant unavailable: {e}")
        return OrgAssistant(None)


def echo_success(message: str) -> None:
    """
    Print a success message with a green checkmark.

    Args:
        message (str): The message to display.
    """
    click.echo(click.style(f"✅ {message}", fg="green"))


def echo_error(message: str) -> None:
    """
    Print an error message with a red cross.

    Args:
        message (str): The error message to display.
    """
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def echo_warning(message: str) -> None:
    click.echo(click.style(f"⚠️  {message}", fg="yellow"))


def load_diagram(path: str) -> Optional[ProcessDiagram]:
    """
    Load a diagram saved with ``orgpilot diagram --output``.

    Returns None, after printing why, when the file is missing or invalid.
    """
    diagram_path = Path(path)
    if not diagram_path.exists():
        echo_error(f"Diagram file not found: {path}")
        return None
    try:
        return ProcessDiagram.model_validate(json.loads(diagram_path.read_text()))
    except ValueError as e:
        echo_error(f"Failed to load diagram: {e}")
        return None


def save_json(path: str, data: Any) -> None:
    Path(path).write_text(json.dumps(data, indent=2, default=str))


class null_context:
    def __enter__(self):
        pass

    def __exit__(self, *args):
        pass


def output_context(renderer: JsonRenderer, as_json: bool):
    """Capture stray stdout in JSON mode; do nothing otherwise."""
    return renderer.capture() if as_json else null_context()


def finish_json(renderer: JsonRenderer, error: Optional[Exception], data: Any) -> None:
    if error is not None:
        renderer.render_error(error)
    else:
        renderer.render_success(data)


def fail(error: Exception) -> None:
    """Report an expected failure and exit non-zero; re-raise anything else."""
    if not isinstance(error, (OrgPilotError, KeyError, ValueError)):
        raise error
    echo_error(error_message(error))
    sys.exit(1)
