# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Generation of the GitOps base and environment overlays for components."""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from gitops_generator.build import generate_build
from gitops_generator.devfile import get_deploy_components, parse_devfile
from gitops_generator.gitops import Generator
from gitops_generator.kube import (
    COMPONENT,
    ENVIRONMENT,
    SNAPSHOT,
    SNAPSHOT_ENVIRONMENT_BINDING,
    ResourceClient,
)
from gitops_generator.labels import (
    generate_k8s_labels,
    generate_random_route_name,
    get_ingress_host_name,
)
from gitops_generator.manifests import KubernetesResources
from gitops_generator.models import (
    BindingComponentStatus,
    Component,
    Environment,
    GeneratorOptions,
    GitOpsStatus,
    Snapshot,
    SnapshotEnvironmentBinding,
)
from gitops_generator.resolver import get_resources_from_devfile

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DEFAULT_CONTEXT = "/"
BASE_COMMIT_MESSAGE = "Generating GitOps resources"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with a formatter for console output.

    Args:
        verbose: If True, set log level to DEBUG; otherwise INFO
    """
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S %z",
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)


@dataclass
class GitOpsGenParams:
    """Repository coordinates and the emitter used for one generation run."""
    generator: Generator
    remote_url: str = ""
    branch: str = DEFAULT_BRANCH
    context: str = DEFAULT_CONTEXT
    token: str = ""


def get_remote_url(gitops_url: str, token: str) -> str:
    """
    Put the token in the user-info part of a repository URL.

    Raises:
        ValueError: If the URL cannot be parsed
    """
    try:
        parts = urlsplit(gitops_url)
        port = parts.port
    except ValueError as e:
        raise ValueError(f"unable to parse the GitOps repository URL: {e}") from e

    host = parts.hostname or ""
    if port:
        host = f"{host}:{port}"
    netloc = f"{quote(token, safe='')}@{host}" if token else host
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def process_gitops_status(gitops_status: GitOpsStatus, token: str) -> tuple[str, str, str]:
    """
    Resolve the remote URL, branch and context of a Component's GitOps repository.

    Returns:
        Tuple of (remote URL with token, branch, context)

    Raises:
        ValueError: If the repository URL is empty or cannot be parsed
    """
    if not gitops_status.repository_url:
        raise ValueError(
            "unable to process GitOps status, GitOps Repository URL cannot be empty"
        )
    branch = gitops_status.branch or DEFAULT_BRANCH
    context = gitops_status.context or DEFAULT_CONTEXT
    return get_remote_url(gitops_status.repository_url, token), branch, context


def get_mapped_gitops_component(
    component: Component, kubernetes_resources: KubernetesResources
) -> GeneratorOptions:
    """Map a Component and its resolved manifests to emitter options."""
    return GeneratorOptions(
        name=component.name,
        namespace=component.namespace,
        application=component.application,
        secret=component.secret,
        resources=component.resources,
        replicas=component.replicas,
        target_port=component.target_port,
        route=component.route,
        base_env=list(component.env),
        container_image=component.container_image,
        k8s_labels=generate_k8s_labels(
            component.component_name, component.application, instance=component.name
        ),
        git_source_url=component.git_source_url,
        kubernetes_resources=kubernetes_resources,
    )


def _create_temp_dir(prefix: str, scratch_root: Path | None) -> Path:
    try:
        return Path(tempfile.mkdtemp(prefix=prefix, dir=scratch_root))
    except OSError as e:
        raise RuntimeError(
            f"unable to create temp directory for GitOps resources due to error: {e}"
        ) from e


def _remove_temp_dir(temp_dir: Path) -> None:
    try:
        shutil.rmtree(temp_dir)
    except OSError as e:
        raise RuntimeError(f"unable to remove temp directory {temp_dir}: {e}") from e


def generate_base(
    component: Component,
    params: GitOpsGenParams,
    scratch_root: Path | None = None,
) -> None:
    """
    Generate and push the GitOps base resources of a single component.

    On success the commit id of the pushed repository is stored on
    ``component.gitops.commit_id``.

    Args:
        component: The Component to generate resources for
        params: Remote URL (with token), branch, context and emitter
        scratch_root: Directory to create the scratch clone in (default: system temp dir)

    Raises:
        ValueError: If the devfile or its kubernetes components are invalid
        RuntimeError: If the scratch directory or a git operation fails
    """
    temp_dir = _create_temp_dir(component.name, scratch_root)
    try:
        devfile = parse_devfile(component.devfile)
        deploy_components = get_deploy_components(devfile)
        kubernetes_resources = get_resources_from_devfile(
            devfile,
            deploy_components,
            component.name,
            component.application,
            component.container_image,
            "",
        )

        options = get_mapped_gitops_component(component, kubernetes_resources)
        params.generator.clone_generate_and_push(
            temp_dir, params.remote_url, options, params.branch, params.context, False
        )

        repo_path = temp_dir / component.name
        base_dir = (
            repo_path / params.context.lstrip("/") / "components" / component.name / "base"
        )
        generate_build(base_dir, component)

        params.generator.commit_and_push(
            temp_dir, "", params.remote_url, component.name, params.branch, BASE_COMMIT_MESSAGE
        )

        commit_id = params.generator.get_commit_id_from_repo(repo_path)
    except Exception:
        logger.error(f"✗ {component.name}: unable to generate the GitOps base resources")
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise

    component.gitops.commit_id = commit_id
    logger.info(f"✓ {component.name} -> commit {commit_id}")

    _remove_temp_dir(temp_dir)


def _get_resource(
    client: ResourceClient, kind: str, label: str, name: str, namespace: str
) -> dict:
    try:
        return client.get(kind, name, namespace)
    except LookupError as e:
        raise ValueError(f"unable to get the {label} {name}") from e


def _find_route_name(binding: SnapshotEnvironmentBinding, component_name: str) -> str:
    for status in binding.status_components:
        if status.name == component_name:
            return status.generated_route_name
    return ""


def _upsert_component_status(
    binding: SnapshotEnvironmentBinding, component_status: BindingComponentStatus
) -> None:
    for i, existing in enumerate(binding.status_components):
        if existing.name == component_status.name:
            binding.status_components[i] = component_status
            return
    binding.status_components.append(component_status)


def generate_overlays(
    client: ResourceClient,
    binding: SnapshotEnvironmentBinding,
    params: GitOpsGenParams,
    scratch_root: Path | None = None,
) -> None:
    """
    Generate and push the environment overlays of every component in a binding.

    The repository is cloned once for the whole run. The binding status is
    updated in place with one entry per generated component and written back
    once, after every component has been pushed.

    Args:
        client: Client used to read the custom resources and write the binding status
        binding: The SnapshotEnvironmentBinding to generate overlays for
        params: Token and emitter; the repository comes from each Component's status
        scratch_root: Directory to create the scratch clone in (default: system temp dir)

    Raises:
        ValueError: If a referenced resource is missing or inconsistent
        RuntimeError: If a git operation or the status update fails
    """
    application_name = binding.application
    environment_name = binding.environment
    snapshot_name = binding.snapshot
    namespace = binding.namespace

    environment = Environment.from_dict(
        _get_resource(client, ENVIRONMENT, "Environment", environment_name, namespace)
    )
    snapshot = Snapshot.from_dict(
        _get_resource(client, SNAPSHOT, "Application Snapshot", snapshot_name, namespace)
    )
    if snapshot.application != application_name:
        raise ValueError(
            f"application snapshot {snapshot_name} does not belong to the application "
            f"{application_name}"
        )

    is_kubernetes_cluster = environment.is_kubernetes_cluster
    generated_resources: dict[str, list[str]] = {}
    temp_dir: Path | None = None
    clone = True

    try:
        for binding_component in binding.components:
            component_name = binding_component.name
            component = Component.from_dict(
                _get_resource(client, COMPONENT, "Component", component_name, namespace)
            )
            if component.skip_generation:
                logger.info(f"Skipping GitOps generation for component {component_name}")
                continue

            if component.application != application_name:
                raise ValueError(
                    f"component {component_name} does not belong to the application "
                    f"{application_name}"
                )

            if is_kubernetes_cluster and not environment.ingress_domain:
                raise ValueError("ingress domain cannot be empty on a Kubernetes cluster")

            devfile = parse_devfile(component.devfile)
            deploy_components = get_deploy_components(devfile)

            hostname = ""
            if is_kubernetes_cluster:
                hostname = get_ingress_host_name(
                    component.name, namespace, environment.ingress_domain
                )

            kubernetes_resources = get_resources_from_devfile(
                devfile,
                deploy_components,
                component.name,
                component.application,
                component.container_image,
                hostname,
            )

            route_name = _find_route_name(binding, component_name)
            if route_name:
                logger.info(f"Route name for component {component_name} is {route_name}")
            else:
                route_name = generate_random_route_name(component.name)
                logger.info(f"Generated route name {route_name}")
            if kubernetes_resources.routes:
                kubernetes_resources.routes[0].setdefault("metadata", {})["name"] = route_name

            image_name = snapshot.images.get(component_name, "")
            if not image_name:
                raise ValueError(
                    f"application snapshot {snapshot_name} did not reference component "
                    f"{component_name}"
                )

            remote_url, branch, context = process_gitops_status(component.gitops, params.token)

            if clone:
                temp_dir = _create_temp_dir(binding.name, scratch_root)

            options = GeneratorOptions(
                name=component_name,
                route_name=route_name,
                resources=binding_component.resources or {},
                base_env=list(binding_component.env),
                overlay_env=list(environment.env),
                k8s_labels=generate_k8s_labels(
                    component_name, application_name, instance=component.name
                ),
                is_kubernetes_cluster=is_kubernetes_cluster,
                target_port=component.target_port,
                kubernetes_resources=KubernetesResources(
                    routes=list(kubernetes_resources.routes),
                    ingresses=list(kubernetes_resources.ingresses),
                ),
            )
            if binding_component.replicas is not None:
                options.replicas = binding_component.replicas
            if is_kubernetes_cluster and not options.kubernetes_resources.ingresses:
                # the emitter creates the ingress itself from this hostname
                options.route = hostname

            params.generator.generate_overlays_and_push(
                temp_dir,
                clone,
                remote_url,
                options,
                application_name,
                environment_name,
                image_name,
                "",
                branch,
                context,
                True,
                generated_resources,
            )

            commit_id = params.generator.get_commit_id_from_repo(temp_dir / application_name)

            component_status = BindingComponentStatus(
                name=component_name,
                url=component.gitops.repository_url,
                branch=branch,
                path=os.path.join(
                    context, "components", component_name, "overlays", environment_name
                ),
                commit_id=commit_id,
                generated_resources=list(generated_resources.get(component_name, [])),
            )
            if not is_kubernetes_cluster:
                component_status.generated_route_name = route_name
                logger.info(
                    f"Added route name {route_name} for component {component_name} to status"
                )

            _upsert_component_status(binding, component_status)
            logger.info(f"✓ {component_name} ({environment_name}) -> commit {commit_id}")

            clone = False

        client.update_status(SNAPSHOT_ENVIRONMENT_BINDING, binding.to_dict())
    except Exception:
        logger.error(f"✗ {binding.name}: unable to generate the GitOps overlays")
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)
        raise

    if temp_dir is not None:
        _remove_temp_dir(temp_dir)
