from pathlib import Path

import click

from miplata.constants import DEFAULT_PARAMS_FILEPATH, InvestmentType

params_option = click.option(
    "--params",
    "-p",
    "params_filepath",
    help="Deployment parameters YAML file.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=DEFAULT_PARAMS_FILEPATH,
    show_default=True,
)

account_alias_option = click.option(
    "--account",
    "account_alias",
    help="Alias of the ape account to sign with. Local networks default to the first test account.",
    type=str,
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation.",
    is_flag=True,
    default=False,
)

tags_option = click.option(
    "--tags",
    "-t",
    help="Only deploy contracts carrying one of these tags. Deploys everything if omitted.",
    multiple=True,
)

force_option = click.option(
    "--force",
    "-f",
    help="Redeploy this contract even if the registry already has it.",
    multiple=True,
)

verify_option = click.option(
    "--verify",
    help="Publish new deployments to the block explorer.",
    is_flag=True,
    default=False,
)

investment_type_option = click.option(
    "--type",
    "-y",
    "investment_type",
    help="Investment strategy.",
    type=click.Choice(
        [t.name.lower() for t in InvestmentType] + [str(t.value) for t in InvestmentType],
        case_sensitive=False,
    ),
    required=True,
)
