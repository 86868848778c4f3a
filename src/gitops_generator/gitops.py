# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""GitOps repository operations: clone, write kustomize trees, commit and push."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol
from urllib.parse import urlsplit, urlunsplit

import yaml

from gitops_generator.labels import generate_k8s_labels, get_match_labels
from gitops_generator.models import GeneratorOptions

logger = logging.getLogger(__name__)

KUSTOMIZE_FILE_NAME = "kustomization.yaml"
DEPLOYMENT_FILE_NAME = "deployment.yaml"
DEPLOYMENT_PATCH_FILE_NAME = "deployment-patch.yaml"
SERVICE_FILE_NAME = "service.yaml"
ROUTE_FILE_NAME = "route.yaml"
INGRESS_FILE_NAME = "ingress.yaml"

SUPPORTED_GIT_HOSTS = ("github.com", "gitlab.com")


def _literal_str_representer(dumper: yaml.Dumper, data: str) -> yaml.Node:
    """Represent multi-line strings using literal block scalar (|-) syntax."""
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


# Register the custom representer for multi-line strings
yaml.add_representer(str, _literal_str_representer)


class Generator(Protocol):
    """The operations the drivers need from a manifest emitter."""

    def clone_generate_and_push(
        self,
        output_path: Path,
        remote: str,
        options: GeneratorOptions,
        branch: str,
        context: str,
        do_push: bool,
    ) -> None: ...

    def generate_overlays_and_push(
        self,
        output_path: Path,
        clone: bool,
        remote: str,
        options: GeneratorOptions,
        application_name: str,
        environment_name: str,
        image_name: str,
        namespace: str,
        branch: str,
        context: str,
        do_push: bool,
        generated_resources: dict[str, list[str]],
    ) -> None: ...

    def commit_and_push(
        self,
        output_path: Path,
        repo_path_override: str,
        remote: str,
        component_name: str,
        branch: str,
        commit_message: str,
    ) -> None: ...

    def get_commit_id_from_repo(self, repo_path: Path) -> str: ...


def redact_url(url: str) -> str:
    """Strip any credentials from a URL so it can be logged."""
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def validate_remote(remote: str) -> None:
    """
    Check that a remote is an https URL on a supported git host.

    Raises:
        ValueError: If the remote is not supported
    """
    try:
        parts = urlsplit(remote)
        host = parts.hostname
    except ValueError as e:
        raise ValueError(f"remote URL {redact_url(remote)} is invalid") from e
    if parts.scheme != "https" or host not in SUPPORTED_GIT_HOSTS:
        raise ValueError(
            "remote URL is invalid or missing the https scheme and/or supported "
            "github.com or gitlab.com hosts"
        )


def new_kustomization() -> dict:
    return {
        "apiVersion": "kustomize.config.k8s.io/v1beta1",
        "kind": "Kustomization",
        "resources": [],
    }


def write_resources(output_dir: Path, resources: dict[str, dict]) -> list[str]:
    """
    Write each resource to its own YAML file.

    Args:
        output_dir: Directory to write into, created if missing
        resources: Mapping of file name to manifest

    Returns:
        The file names written, in insertion order
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[str] = []
    for filename, resource in resources.items():
        with open(output_dir / filename, "w") as f:
            yaml.dump(resource, f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Wrote {output_dir / filename}")
        written.append(filename)
    return written


def _manifest_file_name(manifest: dict) -> str:
    kind = str(manifest.get("kind", "resource")).lower()
    name = (manifest.get("metadata") or {}).get("name", "unnamed")
    return f"{kind}-{name}.yaml"


def generate_deployment(options: GeneratorOptions) -> dict:
    labels = options.k8s_labels or generate_k8s_labels(options.name, options.application)
    container: dict = {
        "name": "container-image",
        "image": options.container_image,
        "imagePullPolicy": "Always",
    }
    if options.base_env:
        container["env"] = [e.to_dict() for e in options.base_env]
    if options.resources:
        container["resources"] = options.resources
    if options.target_port:
        container["ports"] = [{"containerPort": options.target_port}]
        container["readinessProbe"] = {
            "initialDelaySeconds": 10,
            "periodSeconds": 10,
            "tcpSocket": {"port": options.target_port},
        }
        container["livenessProbe"] = {
            "initialDelaySeconds": 10,
            "periodSeconds": 10,
            "httpGet": {"port": options.target_port, "path": "/"},
        }

    pod_spec: dict = {"containers": [container]}
    if options.container_image and options.secret:
        pod_spec["imagePullSecrets"] = [{"name": options.secret}]

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": options.name, "namespace": options.namespace, "labels": labels},
        "spec": {
            "replicas": options.replicas if options.replicas > 0 else 1,
            "selector": {"matchLabels": get_match_labels(options.name)},
            "template": {
                "metadata": {"labels": get_match_labels(options.name)},
                "spec": pod_spec,
            },
        },
    }


def generate_service(options: GeneratorOptions) -> dict:
    labels = options.k8s_labels or generate_k8s_labels(options.name, options.application)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": options.name, "namespace": options.namespace, "labels": labels},
        "spec": {
            "selector": get_match_labels(options.name),
            "ports": [{"port": options.target_port, "targetPort": options.target_port}],
        },
    }


def generate_route(options: GeneratorOptions, name: str | None = None) -> dict:
    labels = options.k8s_labels or generate_k8s_labels(options.name, options.application)
    route: dict = {
        "apiVersion": "route.openshift.io/v1",
        "kind": "Route",
        "metadata": {"name": name or options.name, "namespace": options.namespace, "labels": labels},
        "spec": {
            "port": {"targetPort": options.target_port},
            "tls": {"insecureEdgeTerminationPolicy": "Redirect", "termination": "edge"},
            "to": {"kind": "Service", "name": options.name, "weight": 100},
        },
    }
    if options.route:
        route["spec"]["host"] = options.route
    return route


def generate_ingress(options: GeneratorOptions) -> dict:
    labels = options.k8s_labels or generate_k8s_labels(options.name, options.application)
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {"name": options.name, "labels": labels},
        "spec": {
            "rules": [
                {
                    "host": options.route,
                    "http": {
                        "paths": [
                            {
                                "path": "/",
                                "pathType": "ImplementationSpecific",
                                "backend": {
                                    "service": {
                                        "name": options.name,
                                        "port": {"number": options.target_port},
                                    }
                                },
                            }
                        ]
                    },
                }
            ]
        },
    }


def generate_deployment_patch(options: GeneratorOptions, image_name: str, namespace: str) -> dict:
    env = [e.to_dict() for e in options.base_env]
    base_names = {e.name for e in options.base_env}
    # environment-level env vars never override the component's own
    env.extend(e.to_dict() for e in options.overlay_env if e.name not in base_names)

    container: dict = {"name": "container-image", "image": image_name}
    if env:
        container["env"] = env
    if options.resources:
        container["resources"] = options.resources

    patch: dict = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": options.name},
        "spec": {"template": {"spec": {"containers": [container]}}},
    }
    if namespace:
        patch["metadata"]["namespace"] = namespace
    if options.replicas > 0:
        patch["spec"]["replicas"] = options.replicas
    return patch


def generate_base(component_path: Path, options: GeneratorOptions) -> list[str]:
    """Write the base manifests and kustomization for a component."""
    bundle = options.kubernetes_resources
    resources: dict[str, dict] = {}

    if not bundle.deployments:
        resources[DEPLOYMENT_FILE_NAME] = generate_deployment(options)
    for manifest in bundle.all():
        resources[_manifest_file_name(manifest)] = manifest

    if options.target_port and not bundle.services:
        resources[SERVICE_FILE_NAME] = generate_service(options)
    if options.target_port and not bundle.routes and not bundle.ingresses:
        if options.is_kubernetes_cluster:
            resources[INGRESS_FILE_NAME] = generate_ingress(options)
        else:
            resources[ROUTE_FILE_NAME] = generate_route(options)

    kustomization = new_kustomization()
    kustomization["resources"] = list(resources)
    resources[KUSTOMIZE_FILE_NAME] = kustomization
    return write_resources(component_path, resources)


def _patch_path(patch) -> str | None:
    if isinstance(patch, str):
        return patch
    if isinstance(patch, dict):
        return patch.get("path")
    return None


def generate_overlays(
    overlays_path: Path,
    options: GeneratorOptions,
    image_name: str,
    namespace: str,
    generated_resources: dict[str, list[str]],
) -> list[str]:
    """Write the environment overlay for a component, keeping custom patches."""
    kustomize_file = overlays_path / KUSTOMIZE_FILE_NAME
    original_patches: list = []
    if kustomize_file.exists():
        with open(kustomize_file) as f:
            existing = yaml.safe_load(f) or {}
        if not isinstance(existing, dict):
            raise ValueError(f"failed to unmarshal items from {kustomize_file}")
        original_patches = existing.get("patches") or []
        kustomize_file.unlink()

    resources: dict[str, dict] = {
        DEPLOYMENT_PATCH_FILE_NAME: generate_deployment_patch(options, image_name, namespace)
    }
    kustomization = new_kustomization()
    kustomization["resources"] = ["../../base"]
    kustomization["patches"] = [{"path": DEPLOYMENT_PATCH_FILE_NAME}]

    bundle = options.kubernetes_resources
    if options.is_kubernetes_cluster:
        if bundle.ingresses:
            resources[INGRESS_FILE_NAME] = bundle.ingresses[0]
        elif options.route and options.target_port:
            resources[INGRESS_FILE_NAME] = generate_ingress(options)
    elif bundle.routes:
        resources[ROUTE_FILE_NAME] = bundle.routes[0]
    elif options.target_port:
        resources[ROUTE_FILE_NAME] = generate_route(options, options.route_name)
    kustomization["resources"].extend(f for f in resources if f != DEPLOYMENT_PATCH_FILE_NAME)

    component_files = generated_resources.setdefault(options.name, [])
    for filename in resources:
        if filename not in component_files:
            component_files.append(filename)

    # add back patches the user added by hand
    for patch in original_patches:
        path = _patch_path(patch)
        if path and path not in component_files:
            kustomization["patches"].append(patch)

    resources[KUSTOMIZE_FILE_NAME] = kustomization
    return write_resources(overlays_path, resources)


class GitGenerator:
    """Manifest emitter backed by the git command line."""

    def _git(self, cwd: Path, *args: str, remote: str = "") -> str:
        cmd = ["git", *args]
        shown = " ".join(redact_url(a) if a == remote and remote else a for a in cmd)
        logger.debug(f"Executing: {shown} (in {cwd})")
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            stderr = e.stderr or ""
            if remote:
                stderr = stderr.replace(remote, redact_url(remote))
            raise RuntimeError(f"Command failed in {cwd}: {shown}\n  Error: {stderr}") from e
        except OSError as e:
            raise RuntimeError(f"Command failed in {cwd}: {shown}\n  Error: {e}") from e
        return result.stdout

    def _clone(self, output_path: Path, remote: str, directory: str, branch: str) -> Path:
        self._git(output_path, "clone", remote, directory, remote=remote)
        repo_path = output_path / directory
        try:
            self._git(repo_path, "switch", branch)
        except RuntimeError:
            self._git(repo_path, "checkout", "-b", branch)
        return repo_path

    def clone_generate_and_push(
        self,
        output_path: Path,
        remote: str,
        options: GeneratorOptions,
        branch: str,
        context: str,
        do_push: bool,
    ) -> None:
        validate_remote(remote)
        component_name = options.name
        repo_path = self._clone(output_path, remote, component_name, branch)

        gitops_folder = repo_path / context.lstrip("/")
        component_path = gitops_folder / "components" / component_name / "base"
        shutil.rmtree(component_path, ignore_errors=True)
        try:
            generate_base(component_path, options)
        except (OSError, ValueError) as e:
            raise RuntimeError(
                f"failed to generate the gitops resources in {component_path} "
                f"for component {component_name}: {e}"
            ) from e

        if do_push:
            self.commit_and_push(
                output_path,
                "",
                remote,
                component_name,
                branch,
                f"Generate GitOps base resources for component {component_name}",
            )

    def generate_overlays_and_push(
        self,
        output_path: Path,
        clone: bool,
        remote: str,
        options: GeneratorOptions,
        application_name: str,
        environment_name: str,
        image_name: str,
        namespace: str,
        branch: str,
        context: str,
        do_push: bool,
        generated_resources: dict[str, list[str]],
    ) -> None:
        if clone or do_push:
            validate_remote(remote)

        component_name = options.name
        repo_path = output_path / application_name
        if clone:
            self._clone(output_path, remote, application_name, branch)

        overlays_path = (
            repo_path / context.lstrip("/") / "components" / component_name
            / "overlays" / environment_name
        )
        try:
            generate_overlays(overlays_path, options, image_name, namespace, generated_resources)
        except (OSError, ValueError) as e:
            raise RuntimeError(
                f"failed to generate the gitops resources in overlays dir {overlays_path} "
                f"for component {component_name}: {e}"
            ) from e

        if do_push:
            self.commit_and_push(
                output_path,
                application_name,
                remote,
                component_name,
                branch,
                f"Generate {environment_name} environment overlays for component {component_name}",
            )

    def commit_and_push(
        self,
        output_path: Path,
        repo_path_override: str,
        remote: str,
        component_name: str,
        branch: str,
        commit_message: str,
    ) -> None:
        validate_remote(remote)
        repo_path = output_path / (repo_path_override or component_name)

        self._git(repo_path, "add", ".")
        if not self._git(repo_path, "--no-pager", "diff", "--cached").strip():
            logger.info("There is nothing to commit.")
            return
        self._git(repo_path, "commit", "-m", commit_message)
        self._git(repo_path, "push", "origin", branch, remote=remote)

    def get_commit_id_from_repo(self, repo_path: Path) -> str:
        try:
            return self._git(repo_path, "rev-parse", "HEAD").strip()
        except RuntimeError as e:
            raise RuntimeError(f"failed to retrieve commit id for repository in {repo_path}") from e
