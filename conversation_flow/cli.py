#!/usr/bin/env python3
"""CLI interface for conversation-flow."""

import json
import logging
import sys
from pathlib import Path

import click

from .loader import load_messages
from .parse import parse

VIEWS = {
    "flat": "flatList",
    "tree": "contextTree",
    "map": "messageMap",
}


@click.command()
@click.argument(
    "input_path", type=click.Path(path_type=Path, exists=True, dir_okay=False)
)
@click.option(
    "--view",
    type=click.Choice(["flat", "tree", "map", "all"]),
    default="flat",
    help="Which part of the parse result to print (default: flat).",
)
@click.option(
    "--indent",
    type=int,
    default=2,
    help="JSON indentation; 0 prints compact output (default: 2).",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug logging and show full traceback on errors.",
)
def main(input_path: Path, view: str, indent: int, debug: bool) -> None:
    """Parse a conversation file and print the result as JSON.

    INPUT_PATH: JSON array of messages, JSON object with 'messages' and
    'messageGroups', or a JSONL file with one message per line.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        messages, message_groups = load_messages(input_path)
        result = parse(messages, message_groups).to_dict()
        output = result if view == "all" else result[VIEWS[view]]
        click.echo(json.dumps(output, indent=indent or None, ensure_ascii=False))
    except Exception as e:
        click.echo(f"Error parsing file: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
