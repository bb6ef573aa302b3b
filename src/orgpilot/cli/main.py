"""
orgpilot CLI - Main entry point.

This module registers all CLI commands. Each command is implemented
in its own module under cli/commands/.
"""

from pathlib import Path
from typing import Optional

import click

from ..config import load_settings
from .commands import chat, deps, diagram, objects, query, record
from .utils import CliContext, setup_logging


@click.group()
@click.version_option(package_name="orgpilot")
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to config file (default: .orgpilot/config.yaml)")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """orgpilot: CRM metadata exploration console.

    Browse objects, run queries, view records through their page layouts,
    draw dependency and process diagrams, and ask the assistant about
    the org.

    \b
    Quick Start:
      export ORGPILOT_INSTANCE_URL=https://example.my.salesforce.com
      export ORGPILOT_ACCESS_TOKEN=...
      orgpilot objects --search account
      orgpilot record Account 001xx000003DGb2AAG
      orgpilot diagram --requirement "Qualify inbound leads" -o leads.json
      orgpilot chat "Which objects hold invoices?"
    """
    setup_logging(verbose)
    settings = load_settings(Path(config_path) if config_path else None)
    ctx.obj = CliContext(settings=settings, verbose=verbose)


# Register commands
main.add_command(objects.objects)
main.add_command(objects.describe)
main.add_command(deps.deps)
main.add_command(query.query)
main.add_command(query.saved)
main.add_command(record.record)
main.add_command(diagram.diagram)
main.add_command(diagram.impact)
main.add_command(chat.chat)

if __name__ == "__main__":
    main()
