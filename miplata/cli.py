from contextlib import contextmanager

import click

from miplata.deployer import OrchestrationFailed
from miplata.utils import DeploymentConfigError


@contextmanager
def operator_errors():
    """
    Reports configuration and deployment failures as click errors, so the
    operator sees the message and a non-zero exit code instead of a traceback.
    Any other exception propagates unchanged.
    """
    try:
        yield
    except (DeploymentConfigError, OrchestrationFailed) as e:
        raise click.ClickException(str(e)) from e
