#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from miplata.cli import operator_errors
from miplata.deployer import ALL, Deployer, DeployerAccount, Orchestrator
from miplata.networks import (
    ApeAccountProvider,
    ApeChain,
    check_chain_id,
    check_plugins,
    validate_constructor_names,
)
from miplata.options import (
    account_alias_option,
    autosign_option,
    force_option,
    params_option,
    tags_option,
    verify_option,
)
from miplata.params import DeploymentPlan
from miplata.registry import Registry


def _print_deployment_info(deployer: Deployer, plan: DeploymentPlan, params_filepath, verify):
    print(
        f"Account: {deployer.account.address}",
        f"Config: {params_filepath}",
        f"Registry: {plan.registry_filepath}",
        f"Verify: {verify}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {networks.provider.network.name}",
        f"Chain ID: {networks.provider.chain_id}",
        sep="\n",
    )


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@params_option
@tags_option
@force_option
@verify_option
@autosign_option
@account_alias_option
def cli(network, params_filepath, tags, force, verify, autosign, account_alias):
    """
    Deploy YourContract and MiPlata.

    Contracts already in the registry for the connected chain are reused.
    e.g. ape run deploy --network base:sepolia --tags MiPlata
    """
    with operator_errors():
        plan = DeploymentPlan.from_yaml(filepath=params_filepath)
        check_chain_id(plan.chain_id)
        if verify:
            check_plugins()
        validate_constructor_names(plan.select(tags or None))

    chain = ApeChain(publish=verify)
    registry = Registry(chain_id=chain.chain_id, filepath=plan.registry_filepath)
    account = DeployerAccount.from_provider(ApeAccountProvider(alias=account_alias))
    deployer = Deployer(
        chain=chain, registry=registry, account=account, autosign=autosign, force=force
    )
    _print_deployment_info(deployer, plan, params_filepath, verify)

    with operator_errors():
        Orchestrator(deployer).run(plan, tags=tags or ALL)


if __name__ == "__main__":
    cli()
