# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Custom resources read and written by the generator, and the emitter options."""

import copy
from dataclasses import dataclass, field

from gitops_generator.attributes import EnvVar, env_value
from gitops_generator.manifests import KubernetesResources

CLUSTER_TYPE_KUBERNETES = "Kubernetes"
CLUSTER_TYPE_OPENSHIFT = "OpenShift"


def _entry_name(entry: dict, kind: str) -> str:
    name = entry.get("name") if isinstance(entry, dict) else None
    if not name:
        raise ValueError(f"{kind} entry {entry!r} is missing required field 'name'")
    return name


def _parse_env(entries: list | None) -> list[EnvVar]:
    return [
        EnvVar(name=_entry_name(e, "env"), value=env_value(e.get("value")))
        for e in entries or []
    ]


def _require(data: dict, section: str, fields: tuple[str, ...], kind: str) -> None:
    for name in fields:
        if not data.get(name):
            raise ValueError(f"{kind} is missing required field '{section}.{name}'")


@dataclass
class GitOpsStatus:
    """Where a Component's GitOps resources live."""
    repository_url: str = ""
    branch: str = ""
    context: str = ""
    commit_id: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> "GitOpsStatus":
        data = data or {}
        return cls(
            repository_url=data.get("repositoryURL", ""),
            branch=data.get("branch", ""),
            context=data.get("context", ""),
            commit_id=data.get("commitID", ""),
        )

    def to_dict(self) -> dict:
        result = {"repositoryURL": self.repository_url}
        if self.branch:
            result["branch"] = self.branch
        if self.context:
            result["context"] = self.context
        if self.commit_id:
            result["commitID"] = self.commit_id
        return result


@dataclass
class Component:
    """An application Component, with its devfile and GitOps location in the status."""
    name: str
    namespace: str
    application: str
    component_name: str
    container_image: str = ""
    git_source_url: str = ""
    target_port: int = 0
    route: str = ""
    replicas: int = 0
    secret: str = ""
    env: list[EnvVar] = field(default_factory=list)
    resources: dict = field(default_factory=dict)
    skip_generation: bool = False
    annotations: dict[str, str] = field(default_factory=dict)
    devfile: str = ""
    gitops: GitOpsStatus = field(default_factory=GitOpsStatus)

    @classmethod
    def from_dict(cls, data: dict) -> "Component":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        _require(metadata, "metadata", ("name",), "Component")
        _require(spec, "spec", ("application",), "Component")

        git_source = (spec.get("source") or {}).get("git") or {}
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            application=spec["application"],
            component_name=spec.get("componentName") or metadata["name"],
            container_image=spec.get("containerImage", ""),
            git_source_url=git_source.get("url", ""),
            target_port=spec.get("targetPort") or 0,
            route=spec.get("route", ""),
            replicas=spec.get("replicas") or 0,
            secret=spec.get("secret", ""),
            env=_parse_env(spec.get("env")),
            resources=copy.deepcopy(spec.get("resources") or {}),
            skip_generation=bool(spec.get("skipGitOpsResourceGeneration", False)),
            annotations=dict(metadata.get("annotations") or {}),
            devfile=status.get("devfile", ""),
            gitops=GitOpsStatus.from_dict(status.get("gitops")),
        )


@dataclass
class Environment:
    name: str
    env: list[EnvVar] = field(default_factory=list)
    cluster_type: str = ""
    ingress_domain: str = ""

    @property
    def is_kubernetes_cluster(self) -> bool:
        return self.cluster_type == CLUSTER_TYPE_KUBERNETES

    @classmethod
    def from_dict(cls, data: dict) -> "Environment":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        _require(metadata, "metadata", ("name",), "Environment")
        unstable = spec.get("unstableConfigurationFields") or {}
        return cls(
            name=metadata["name"],
            env=_parse_env((spec.get("configuration") or {}).get("env")),
            cluster_type=unstable.get("clusterType", ""),
            ingress_domain=unstable.get("ingressDomain", ""),
        )


@dataclass
class Snapshot:
    name: str
    application: str
    images: dict[str, str] = field(default_factory=dict)  # component name -> image

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        _require(metadata, "metadata", ("name",), "Snapshot")
        return cls(
            name=metadata["name"],
            application=spec.get("application", ""),
            images={
                _entry_name(c, "Snapshot component"): c.get("containerImage", "")
                for c in spec.get("components") or []
            },
        )


@dataclass
class BindingComponent:
    """Per-environment configuration of one component in a binding."""
    name: str
    env: list[EnvVar] = field(default_factory=list)
    replicas: int | None = None
    resources: dict | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BindingComponent":
        configuration = data.get("configuration") or {}
        return cls(
            name=_entry_name(data, "SnapshotEnvironmentBinding component"),
            env=_parse_env(configuration.get("env")),
            replicas=configuration.get("replicas"),
            resources=copy.deepcopy(configuration.get("resources")),
        )


@dataclass
class BindingComponentStatus:
    name: str
    url: str
    branch: str
    path: str
    commit_id: str
    generated_resources: list[str] = field(default_factory=list)
    generated_route_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "BindingComponentStatus":
        repository = data.get("gitopsRepository") or {}
        return cls(
            name=_entry_name(data, "SnapshotEnvironmentBinding status component"),
            url=repository.get("url", ""),
            branch=repository.get("branch", ""),
            path=repository.get("path", ""),
            commit_id=repository.get("commitID", ""),
            generated_resources=list(repository.get("generatedResources") or []),
            generated_route_name=data.get("generatedRouteName", ""),
        )

    def to_dict(self) -> dict:
        result: dict = {
            "name": self.name,
            "gitopsRepository": {
                "url": self.url,
                "branch": self.branch,
                "path": self.path,
                "commitID": self.commit_id,
            },
        }
        if self.generated_resources:
            result["gitopsRepository"]["generatedResources"] = list(self.generated_resources)
        if self.generated_route_name:
            result["generatedRouteName"] = self.generated_route_name
        return result


@dataclass
class SnapshotEnvironmentBinding:
    """Binds an application snapshot to an environment."""
    name: str
    namespace: str
    application: str
    environment: str
    snapshot: str
    components: list[BindingComponent] = field(default_factory=list)
    status_components: list[BindingComponentStatus] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotEnvironmentBinding":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        _require(metadata, "metadata", ("name",), "SnapshotEnvironmentBinding")
        _require(
            spec,
            "spec",
            ("application", "environment", "snapshot"),
            "SnapshotEnvironmentBinding",
        )
        return cls(
            name=metadata["name"],
            namespace=metadata.get("namespace", ""),
            application=spec["application"],
            environment=spec["environment"],
            snapshot=spec["snapshot"],
            components=[BindingComponent.from_dict(c) for c in spec.get("components") or []],
            status_components=[
                BindingComponentStatus.from_dict(c) for c in status.get("components") or []
            ],
            raw=copy.deepcopy(data),
        )

    def to_dict(self) -> dict:
        """Return the fetched object with its status components replaced."""
        result = copy.deepcopy(self.raw)
        status = result.get("status") or {}
        status["components"] = [c.to_dict() for c in self.status_components]
        result["status"] = status
        return result


@dataclass
class GeneratorOptions:
    """Everything the manifest emitter needs to write one component."""
    name: str
    namespace: str = ""
    application: str = ""
    secret: str = ""
    resources: dict = field(default_factory=dict)
    replicas: int = 0
    target_port: int = 0
    route: str = ""
    route_name: str = ""
    base_env: list[EnvVar] = field(default_factory=list)
    overlay_env: list[EnvVar] = field(default_factory=list)
    container_image: str = ""
    k8s_labels: dict[str, str] = field(default_factory=dict)
    is_kubernetes_cluster: bool = False
    git_source_url: str = ""
    kubernetes_resources: KubernetesResources = field(default_factory=KubernetesResources)
