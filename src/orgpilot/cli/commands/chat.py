"""
Chat Command - Ask the assistant about the org's metadata.

Usage:
    orgpilot chat "Which objects track invoices?"
    orgpilot chat "How do they relate to accounts?"
    orgpilot chat --reset
"""

from typing import List, Optional

import click
from pydantic import BaseModel
from rich.markdown import Markdown

from ...config import Settings
from ...core.metadata import MetadataRepository
from ...core.types import ChatRole, ChatTurn
from ...services.storage import ChatHistoryStore
from ..renderers import JsonRenderer
from ..utils import (
    console,
    create_assistant,
    create_client,
    echo_success,
    fail,
    finish_json,
    get_context,
    output_context,
    run_async,
)


# --- API Models ---
class ChatResponse(BaseModel):
    message: str
    reply: str
    history_length: int


async def _ask(settings: Settings, message: str, history: List[ChatTurn]) -> str:
    async with create_client(settings) as client:
        entities = await MetadataRepository(client, client).load_entities()
    return await create_assistant(settings).chat(message, history, entities, settings.org_name)


@click.command()
@click.argument("message", required=False)
@click.option("--reset", is_flag=True, help="Forget the conversation so far")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def chat(ctx: click.Context, message: Optional[str], reset: bool, as_json: bool) -> None:
    """Ask a question about the org; earlier turns are kept between runs."""
    settings = get_context(ctx).settings
    store = ChatHistoryStore(settings.chat_history_path)
    renderer = JsonRenderer("chat")

    if reset:
        store.clear()
        if not message:
            if as_json:
                renderer.render_success({"reset": True})
            else:
                echo_success("Conversation cleared")
            return

    error_to_report = None
    response = None
    with output_context(renderer, as_json):
        try:
            if not message:
                raise ValueError("Provide a message, or --reset to clear the conversation")
            reply = run_async(_ask(settings, message, store.load()))
            history = store.append(
                ChatTurn(role=ChatRole.USER, content=message),
                ChatTurn(role=ChatRole.MODEL, content=reply),
            )
            response = ChatResponse(message=message, reply=reply, history_length=len(history))
        except Exception as e:
            error_to_report = e

    if as_json:
        finish_json(renderer, error_to_report, response)
        return
    if error_to_report:
        fail(error_to_report)

    console.print(Markdown(response.reply))
