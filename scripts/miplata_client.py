#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option

from miplata.cli import operator_errors
from miplata.client import PENDING, BindingPending, BindingResolver, MiPlataClient
from miplata.composer import InvalidRequest, compose_invest, compose_withdraw
from miplata.confirm import _continue
from miplata.constants import INVESTMENT_TYPE_LABELS
from miplata.networks import ApeAccountProvider, ApeChain
from miplata.options import (
    account_alias_option,
    autosign_option,
    investment_type_option,
    params_option,
)
from miplata.registry import Registry
from miplata.types import ChecksumAddress
from miplata.utils import _load_yaml, get_artifact_filepath


def _get_client(params_filepath, account_alias=None) -> MiPlataClient:
    chain = ApeChain()
    with operator_errors():
        registry_filepath = get_artifact_filepath(_load_yaml(params_filepath))
    registry = Registry(chain_id=chain.chain_id, filepath=registry_filepath)
    return MiPlataClient(
        resolver=BindingResolver(registry),
        chain=chain,
        account_provider=ApeAccountProvider(alias=account_alias),
    )


@click.group()
def cli():
    """MiPlata client"""


@cli.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
def stats(network, params_filepath):
    """Show the number of MiPlata users."""
    client = _get_client(params_filepath)
    total_users = client.total_users_query().wait()
    if total_users is None:
        raise click.ClickException(f"MiPlata is not deployed on {network.name}.")
    click.echo(f"Total users: {total_users}")


@cli.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@account_alias_option
@click.option(
    "--address",
    "-a",
    help="Investor address. Defaults to the connected account.",
    type=ChecksumAddress(),
    required=False,
)
def investments(network, params_filepath, account_alias, address):
    """List the investments of an account."""
    client = _get_client(params_filepath, account_alias)
    if client.binding is PENDING:
        raise click.ClickException(f"MiPlata is not deployed on {network.name}.")
    user_investments = client.user_investments_query(address).wait()
    if not user_investments:
        click.echo("No investments.")
        return
    for investment in user_investments:
        label = INVESTMENT_TYPE_LABELS[investment.investment_type]
        click.secho(
            f"ID: {investment.investment_id}, Type: {label}, "
            f"USDC: {investment.usdc_deposited}",
            fg="cyan",
        )


@cli.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@account_alias_option
@autosign_option
@click.option("--amount", "-m", help="Amount of USDC to invest.", type=str, required=True)
@investment_type_option
def invest(network, params_filepath, account_alias, autosign, amount, investment_type):
    """Invest USDC in MiPlata."""
    try:
        request = compose_invest(amount, investment_type)
    except InvalidRequest as e:
        raise click.BadParameter(str(e))

    client = _get_client(params_filepath, account_alias)
    label = INVESTMENT_TYPE_LABELS[request.investment_type]
    click.echo(f"Investing {request.amount} USDC ({label}) on {network.name}.")
    if not autosign:
        _continue()
    try:
        receipt = client.invest(request.amount, request.investment_type)
    except BindingPending as e:
        raise click.ClickException(str(e))
    click.echo(f"Investment submitted: {receipt.txn_hash}")


@cli.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@account_alias_option
@autosign_option
@click.option("--investment-id", "-i", help="ID of the investment.", type=str, required=True)
def withdraw(network, params_filepath, account_alias, autosign, investment_id):
    """Withdraw an investment from MiPlata."""
    try:
        request = compose_withdraw(investment_id)
    except InvalidRequest as e:
        raise click.BadParameter(str(e))

    client = _get_client(params_filepath, account_alias)
    click.echo(f"Withdrawing investment #{request.investment_id} on {network.name}.")
    if not autosign:
        _continue()
    try:
        receipt = client.withdraw(request.investment_id)
    except BindingPending as e:
        raise click.ClickException(str(e))
    click.echo(f"Withdrawal submitted: {receipt.txn_hash}")


if __name__ == "__main__":
    cli()
