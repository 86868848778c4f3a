# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Shared fixtures: in-memory emitter and resource client, sample resources."""

import copy
import textwrap
from pathlib import Path

import pytest

from gitops_generator import gitops
from gitops_generator.kube import COMPONENT, ENVIRONMENT, SNAPSHOT, SNAPSHOT_ENVIRONMENT_BINDING
from gitops_generator.models import GeneratorOptions

NAMESPACE = "user-ns"
APPLICATION = "app-sample"
COMPONENT_NAME = "component-sample"
ENVIRONMENT_NAME = "staging"
SNAPSHOT_NAME = "snapshot-sample"
BINDING_NAME = "app-sample-staging-binding"
GITOPS_REPO = "https://github.com/org/app-sample-gitops"
SNAPSHOT_IMAGE = "quay.io/org/component-sample:v1"

SAMPLE_DEVFILE = textwrap.dedent(
    """\
    schemaVersion: 2.2.0
    metadata:
      name: python-sample
    components:
      - name: image-build
        image:
          imageName: python-image:latest
          dockerfile:
            uri: Dockerfile
      - name: kubernetes-deploy
        attributes:
          deployment/container-port: 8081
          deployment/replicas: 2
        kubernetes:
          inlined: |-
            apiVersion: apps/v1
            kind: Deployment
            metadata:
              name: my-deployment
            spec:
              replicas: 1
              template:
                spec:
                  containers:
                    - name: my-container
                      image: placeholder
            ---
            apiVersion: v1
            kind: Service
            metadata:
              name: my-service
            spec:
              ports:
                - port: 8081
          endpoints:
            - name: http-8081
              targetPort: 8081
    commands:
      - id: build-image
        apply:
          component: image-build
      - id: deployk8s
        apply:
          component: kubernetes-deploy
      - id: deploy
        composite:
          commands:
            - build-image
            - deployk8s
          group:
            kind: deploy
            isDefault: true
    """
)


class FakeGenerator:
    """Emitter that writes the kustomize trees locally and records every call.

    Pushing copies the repository tree into ``pushed`` so the content survives
    the removal of the scratch directory.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.commits = 0
        self.pushed: dict[str, str] = {}
        self.fail_on: set[str] = set()

    def _record(self, name: str, **kwargs) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    def _push(self, repo_path: Path) -> None:
        self.commits += 1
        for path in sorted(repo_path.rglob("*")):
            if path.is_file():
                self.pushed[str(path.relative_to(repo_path))] = path.read_text()

    def calls_to(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]

    def clone_generate_and_push(
        self,
        output_path: Path,
        remote: str,
        options: GeneratorOptions,
        branch: str,
        context: str,
        do_push: bool,
    ) -> None:
        self._record(
            "clone_generate_and_push",
            output_path=output_path,
            remote=remote,
            options=options,
            branch=branch,
            context=context,
            do_push=do_push,
        )
        repo_path = output_path / options.name
        repo_path.mkdir(parents=True, exist_ok=True)
        base = repo_path / context.lstrip("/") / "components" / options.name / "base"
        gitops.generate_base(base, options)
        if do_push:
            self._push(repo_path)

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
        self._record(
            "generate_overlays_and_push",
            output_path=output_path,
            clone=clone,
            remote=remote,
            options=copy.deepcopy(options),
            application_name=application_name,
            environment_name=environment_name,
            image_name=image_name,
            branch=branch,
            context=context,
        )
        repo_path = output_path / application_name
        if clone:
            repo_path.mkdir(parents=True)
        overlays = (
            repo_path / context.lstrip("/") / "components" / options.name
            / "overlays" / environment_name
        )
        gitops.generate_overlays(overlays, options, image_name, namespace, generated_resources)
        if do_push:
            self._push(repo_path)

    def commit_and_push(
        self,
        output_path: Path,
        repo_path_override: str,
        remote: str,
        component_name: str,
        branch: str,
        commit_message: str,
    ) -> None:
        self._record(
            "commit_and_push",
            output_path=output_path,
            remote=remote,
            component_name=component_name,
            branch=branch,
            commit_message=commit_message,
        )
        self._push(output_path / (repo_path_override or component_name))

    def get_commit_id_from_repo(self, repo_path: Path) -> str:
        self._record("get_commit_id_from_repo", repo_path=repo_path)
        if not repo_path.is_dir():
            raise RuntimeError(f"failed to retrieve commit id for repository in {repo_path}")
        return f"commit-{self.commits}"


class FakeResourceClient:
    """Dict-backed resource client that counts status writes."""

    def __init__(self) -> None:
        self.store: dict[tuple[str, str, str], dict] = {}
        self.status_writes = 0
        self.fail_status_update = False

    def add(self, kind: str, obj: dict) -> None:
        metadata = obj["metadata"]
        self.store[(kind, metadata.get("namespace", ""), metadata["name"])] = copy.deepcopy(obj)

    def get(self, kind: str, name: str, namespace: str) -> dict:
        try:
            return copy.deepcopy(self.store[(kind, namespace, name)])
        except KeyError:
            raise LookupError(f"{kind} {namespace}/{name} not found") from None

    def update_status(self, kind: str, obj: dict) -> None:
        if self.fail_status_update:
            raise RuntimeError(f"failed to update the status of {kind}")
        self.status_writes += 1
        self.add(kind, obj)


def make_component(name: str = COMPONENT_NAME, **spec_overrides) -> dict:
    spec = {
        "application": APPLICATION,
        "componentName": name,
        "containerImage": "quay.io/org/build:latest",
        "source": {"git": {"url": f"https://github.com/org/{name}"}},
        **spec_overrides,
    }
    return {
        "apiVersion": "appstudio.redhat.com/v1alpha1",
        "kind": "Component",
        "metadata": {"name": name, "namespace": NAMESPACE},
        "spec": spec,
        "status": {
            "devfile": SAMPLE_DEVFILE,
            "gitops": {"repositoryURL": GITOPS_REPO, "branch": "main", "context": "/"},
        },
    }


def make_environment(cluster_type: str = "", ingress_domain: str = "") -> dict:
    spec: dict = {
        "displayName": "Staging",
        "configuration": {"env": [{"name": "ENV_LEVEL", "value": "staging"}]},
    }
    if cluster_type:
        spec["unstableConfigurationFields"] = {
            "clusterType": cluster_type,
            "ingressDomain": ingress_domain,
        }
    return {
        "apiVersion": "appstudio.redhat.com/v1alpha1",
        "kind": "Environment",
        "metadata": {"name": ENVIRONMENT_NAME, "namespace": NAMESPACE},
        "spec": spec,
    }


def make_snapshot(components: list[str] | None = None, application: str = APPLICATION) -> dict:
    names = [COMPONENT_NAME] if components is None else components
    return {
        "apiVersion": "appstudio.redhat.com/v1alpha1",
        "kind": "Snapshot",
        "metadata": {"name": SNAPSHOT_NAME, "namespace": NAMESPACE},
        "spec": {
            "application": application,
            "components": [
                {"name": n, "containerImage": f"quay.io/org/{n}:v1"} for n in names
            ],
        },
    }


def make_binding(components: list[str] | None = None, status: dict | None = None) -> dict:
    names = [COMPONENT_NAME] if components is None else components
    binding = {
        "apiVersion": "appstudio.redhat.com/v1alpha1",
        "kind": "SnapshotEnvironmentBinding",
        "metadata": {"name": BINDING_NAME, "namespace": NAMESPACE, "resourceVersion": "7"},
        "spec": {
            "application": APPLICATION,
            "environment": ENVIRONMENT_NAME,
            "snapshot": SNAPSHOT_NAME,
            "components": [
                {
                    "name": n,
                    "configuration": {
                        "replicas": 3,
                        "env": [{"name": "FOO", "value": "bar"}],
                    },
                }
                for n in names
            ],
        },
    }
    if status is not None:
        binding["status"] = status
    return binding


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fake_client() -> FakeResourceClient:
    """A resource client holding one component bound to an OpenShift environment."""
    client = FakeResourceClient()
    client.add(COMPONENT, make_component())
    client.add(ENVIRONMENT, make_environment())
    client.add(SNAPSHOT, make_snapshot())
    client.add(SNAPSHOT_ENVIRONMENT_BINDING, make_binding())
    return client
