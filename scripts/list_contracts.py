#!/usr/bin/python3

from itertools import groupby
from typing import List

import click
from ape.cli import ConnectedProviderCommand

from miplata.networks import get_chain_name
from miplata.options import params_option
from miplata.registry import RegistryEntry, read_registry
from miplata.utils import _load_yaml, get_artifact_filepath


def _format_chain_name(chain_id: int) -> str:
    """Format the chain name to capitalize each word and join with slashes."""
    try:
        chain_name = get_chain_name(chain_id)
    except ValueError:
        return f"Chain {chain_id}"
    return "/".join(word.capitalize() for word in chain_name.split())


def _display_registry_entries(entries: List[RegistryEntry]) -> None:
    """Display registry entries grouped by chain ID."""
    entries = sorted(entries, key=lambda e: (e.chain_id, e.name))
    for chain_id, chain_entries in groupby(entries, key=lambda e: e.chain_id):
        click.secho(f"\n{_format_chain_name(chain_id)}", fg="yellow")
        for index, entry in enumerate(chain_entries, start=1):
            click.secho(
                f"    {index}. {entry.name} {entry.address} (block {entry.block_number})",
                fg="cyan",
            )


@click.command(cls=ConnectedProviderCommand, name="list-contracts")
@params_option
def cli(params_filepath):
    """List all contracts in the registry of a deployment."""
    registry_filepath = get_artifact_filepath(_load_yaml(params_filepath))
    if not registry_filepath.exists():
        raise click.ClickException(f"No registry found at {registry_filepath}")
    _display_registry_entries(read_registry(filepath=registry_filepath))


if __name__ == "__main__":
    cli()
