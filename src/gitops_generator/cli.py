# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Command-line interface for gitops-generator."""

import os
import sys
from pathlib import Path

import click

from gitops_generator._version import __version__
from gitops_generator.config import DEFAULT_CONFIG_FILE, load_config
from gitops_generator.generate import (
    GitOpsGenParams,
    generate_base,
    generate_overlays,
    get_remote_url,
    setup_logging,
)
from gitops_generator.gitops import GitGenerator
from gitops_generator.kube import COMPONENT, SNAPSHOT_ENVIRONMENT_BINDING, KubectlClient
from gitops_generator.models import Component, SnapshotEnvironmentBinding

GENERATE_BASE = "generate-base"
GENERATE_OVERLAYS = "generate-overlays"


def validate_command_line_flags(
    operation: str | None,
    repo_url: str | None,
    namespace: str | None,
    component_name: str | None,
    seb_name: str | None,
) -> None:
    """
    Check that the flags needed by the requested operation are set.

    Raises:
        ValueError: If a required flag is missing or the operation is unknown
    """
    if operation not in (GENERATE_BASE, GENERATE_OVERLAYS):
        raise ValueError(
            f"usage: --operation must be set to either '{GENERATE_BASE}' or "
            f"'{GENERATE_OVERLAYS}'"
        )
    if not namespace:
        raise ValueError("usage: --namespace must be set to a Kubernetes namespace")
    if not repo_url:
        raise ValueError("usage: --repo-url <repository-url> must be passed in as a flag")
    if operation == GENERATE_BASE:
        if not component_name:
            raise ValueError("usage: --component <component-name> must be passed in as a flag")
    elif not seb_name:
        raise ValueError("usage: --seb <seb-name> must be passed in as a flag")


@click.command()
@click.version_option(version=__version__, prog_name="gitops-generator")
@click.option(
    "--operation",
    type=click.Choice([GENERATE_BASE, GENERATE_OVERLAYS]),
    help="The operation to perform",
)
@click.option("--namespace", "-n", help="The namespace from which to fetch resources")
@click.option("--repo-url", help="The URL for the GitOps repository")
@click.option(
    "--component",
    help="The Component resource name from which to generate the GitOps resources",
)
@click.option(
    "--seb",
    help="The SnapshotEnvironmentBinding resource name from which to generate the GitOps resources",
)
@click.option("--branch", help="The branch inside the GitOps repository to use [default: main]")
@click.option("--path", help="The path within the GitOps repository to use [default: /]")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help=f"Configuration file [default: {DEFAULT_CONFIG_FILE}]",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Show detailed output",
)
def main(
    operation: str | None,
    namespace: str | None,
    repo_url: str | None,
    component: str | None,
    seb: str | None,
    branch: str | None,
    path: str | None,
    config_file: Path | None,
    verbose: bool,
) -> None:
    """Generate GitOps resources for application components."""
    setup_logging(verbose=verbose)

    try:
        token = os.environ.get("GITHUB_TOKEN", "")
        if not token:
            raise ValueError("GITHUB_TOKEN must be set as an environment variable")

        config = load_config(
            config_file or DEFAULT_CONFIG_FILE, required=config_file is not None
        )
        namespace = namespace or config.namespace
        repo_url = repo_url or config.repo_url
        branch = branch or config.branch
        path = path or config.path

        validate_command_line_flags(operation, repo_url, namespace, component, seb)

        if verbose:
            click.echo(f"Operation: {operation}")
            click.echo(f"Namespace: {namespace}")
            click.echo()

        remote_url = get_remote_url(repo_url, token)
        client = KubectlClient(kubectl=config.kubectl)

        if operation == GENERATE_BASE:
            resource = Component.from_dict(client.get(COMPONENT, component, namespace))
            params = GitOpsGenParams(
                generator=GitGenerator(),
                remote_url=remote_url,
                branch=branch,
                context=path,
                token=token,
            )
            generate_base(resource, params, scratch_root=config.scratch_dir)
            click.echo(f"✓ Generated GitOps base for {component} ({resource.gitops.commit_id})")
        else:
            binding = SnapshotEnvironmentBinding.from_dict(
                client.get(SNAPSHOT_ENVIRONMENT_BINDING, seb, namespace)
            )
            params = GitOpsGenParams(
                generator=GitGenerator(),
                remote_url=remote_url,
                token=token,
            )
            generate_overlays(client, binding, params, scratch_root=config.scratch_dir)
            click.echo(f"✓ Generated GitOps overlays for {seb}")

    except (FileNotFoundError, LookupError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except RuntimeError as e:
        click.echo(f"Runtime error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
