# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Tests for the kustomize tree writers and the git-backed emitter."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from gitops_generator.attributes import EnvVar
from gitops_generator.gitops import (
    GitGenerator,
    generate_base,
    generate_deployment_patch,
    generate_overlays,
    redact_url,
    validate_remote,
)
from gitops_generator.labels import generate_k8s_labels
from gitops_generator.manifests import KubernetesResources
from gitops_generator.models import GeneratorOptions

REMOTE = "https://tok@github.com/org/gitops"


def make_options(**kwargs) -> GeneratorOptions:
    defaults = {
        "name": "frontend",
        "namespace": "shop-ns",
        "application": "shop",
        "container_image": "quay.io/org/frontend:latest",
        "k8s_labels": generate_k8s_labels("frontend", "shop"),
    }
    defaults.update(kwargs)
    return GeneratorOptions(**defaults)


def load(path: Path) -> dict:
    return yaml.safe_load(path.read_text())


# ---------------------------------------------------------------------------
# Remote validation
# ---------------------------------------------------------------------------


def test_redact_url() -> None:
    assert redact_url(REMOTE) == "https://github.com/org/gitops"
    assert redact_url("https://github.com/org/gitops") == "https://github.com/org/gitops"


@pytest.mark.parametrize(
    "remote", ["http://github.com/org/repo", "https://bitbucket.org/org/repo", "github.com/org"]
)
def test_validate_remote_rejects(remote: str) -> None:
    with pytest.raises(ValueError, match="remote URL is invalid"):
        validate_remote(remote)


def test_validate_remote_accepts_token_url() -> None:
    validate_remote(REMOTE)
    validate_remote("https://gitlab.com/org/repo")


# ---------------------------------------------------------------------------
# Base and overlay trees
# ---------------------------------------------------------------------------


def test_generate_base_without_bundle(tmp_path: Path) -> None:
    written = generate_base(tmp_path, make_options(target_port=8080, replicas=2))

    assert written == ["deployment.yaml", "service.yaml", "route.yaml", "kustomization.yaml"]
    kustomization = load(tmp_path / "kustomization.yaml")
    assert kustomization["resources"] == ["deployment.yaml", "service.yaml", "route.yaml"]
    deployment = load(tmp_path / "deployment.yaml")
    assert deployment["spec"]["replicas"] == 2
    container = deployment["spec"]["template"]["spec"]["containers"][0]
    assert container["ports"] == [{"containerPort": 8080}]


def test_generate_base_kubernetes_cluster_writes_ingress(tmp_path: Path) -> None:
    generate_base(
        tmp_path,
        make_options(target_port=8080, is_kubernetes_cluster=True, route="frontend.example.com"),
    )
    ingress = load(tmp_path / "ingress.yaml")
    assert ingress["spec"]["rules"][0]["host"] == "frontend.example.com"
    assert not (tmp_path / "route.yaml").exists()


def test_generate_base_with_bundle(tmp_path: Path) -> None:
    bundle = KubernetesResources(
        deployments=[{"kind": "Deployment", "metadata": {"name": "frontend"}}],
        others=[{"kind": "PersistentVolumeClaim", "metadata": {"name": "data"}}],
    )
    written = generate_base(tmp_path, make_options(kubernetes_resources=bundle))

    assert written == [
        "deployment-frontend.yaml",
        "persistentvolumeclaim-data.yaml",
        "kustomization.yaml",
    ]


def test_generate_deployment_patch_env_precedence() -> None:
    options = make_options(
        base_env=[EnvVar("FOO", "component")],
        overlay_env=[EnvVar("FOO", "environment"), EnvVar("LEVEL", "staging")],
        replicas=3,
    )
    patch_doc = generate_deployment_patch(options, "quay.io/org/frontend:v2", "")

    container = patch_doc["spec"]["template"]["spec"]["containers"][0]
    assert container["env"] == [
        {"name": "FOO", "value": "component"},
        {"name": "LEVEL", "value": "staging"},
    ]
    assert container["image"] == "quay.io/org/frontend:v2"
    assert patch_doc["spec"]["replicas"] == 3
    assert "namespace" not in patch_doc["metadata"]


def test_generate_overlays_records_resources(tmp_path: Path) -> None:
    generated: dict[str, list[str]] = {}
    route = {"kind": "Route", "metadata": {"name": "frontend-ab12"}}
    options = make_options(
        target_port=8080,
        route_name="frontend-ab12",
        kubernetes_resources=KubernetesResources(routes=[route]),
    )

    generate_overlays(tmp_path, options, "quay.io/org/frontend:v2", "", generated)

    assert generated == {"frontend": ["deployment-patch.yaml", "route.yaml"]}
    assert load(tmp_path / "route.yaml") == route
    kustomization = load(tmp_path / "kustomization.yaml")
    assert kustomization["resources"] == ["../../base", "route.yaml"]
    assert kustomization["patches"] == [{"path": "deployment-patch.yaml"}]


def test_generate_overlays_generates_route_with_persisted_name(tmp_path: Path) -> None:
    generated: dict[str, list[str]] = {}
    generate_overlays(
        tmp_path, make_options(target_port=8080, route_name="frontend-ab12"), "img", "", generated
    )
    assert load(tmp_path / "route.yaml")["metadata"]["name"] == "frontend-ab12"


def test_generate_overlays_keeps_custom_patches(tmp_path: Path) -> None:
    (tmp_path / "kustomization.yaml").write_text(
        yaml.safe_dump(
            {
                "resources": ["../../base"],
                "patches": [{"path": "deployment-patch.yaml"}, {"path": "custom-patch.yaml"}],
            }
        )
    )

    generate_overlays(tmp_path, make_options(), "img", "", {})

    kustomization = load(tmp_path / "kustomization.yaml")
    assert kustomization["patches"] == [
        {"path": "deployment-patch.yaml"},
        {"path": "custom-patch.yaml"},
    ]


# ---------------------------------------------------------------------------
# GitGenerator
# ---------------------------------------------------------------------------


def completed(stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


def test_commit_and_push_with_changes(tmp_path: Path) -> None:
    (tmp_path / "frontend").mkdir()
    with patch("subprocess.run") as mock_run:
        mock_run.side_effect = [completed(), completed("diff --git a b"), completed(), completed()]
        GitGenerator().commit_and_push(tmp_path, "", REMOTE, "frontend", "main", "msg")

    commands = [call.args[0] for call in mock_run.call_args_list]
    assert commands == [
        ["git", "add", "."],
        ["git", "--no-pager", "diff", "--cached"],
        ["git", "commit", "-m", "msg"],
        ["git", "push", "origin", "main"],
    ]
    assert mock_run.call_args_list[0].kwargs["cwd"] == tmp_path / "frontend"


def test_commit_and_push_without_changes(tmp_path: Path) -> None:
    with patch("subprocess.run") as mock_run:
        mock_run.side_effect = [completed(), completed("")]
        GitGenerator().commit_and_push(tmp_path, "shop", REMOTE, "frontend", "main", "msg")

    assert mock_run.call_count == 2
    assert mock_run.call_args_list[0].kwargs["cwd"] == tmp_path / "shop"


def test_git_failure_redacts_token(tmp_path: Path) -> None:
    error = subprocess.CalledProcessError(
        128, ["git"], stderr=f"fatal: could not read from {REMOTE}"
    )
    with patch("subprocess.run", side_effect=error):
        with pytest.raises(RuntimeError) as exc_info:
            GitGenerator().clone_generate_and_push(
                tmp_path, REMOTE, make_options(), "main", "/", False
            )

    assert "tok@" not in str(exc_info.value)
    assert "https://github.com/org/gitops" in str(exc_info.value)


def test_clone_generate_and_push_writes_base(tmp_path: Path) -> None:
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = completed()
        GitGenerator().clone_generate_and_push(
            tmp_path, REMOTE, make_options(), "main", "/", False
        )

    commands = [call.args[0] for call in mock_run.call_args_list]
    assert commands == [
        ["git", "clone", REMOTE, "frontend"],
        ["git", "switch", "main"],
    ]
    base = tmp_path / "frontend" / "components" / "frontend" / "base"
    assert (base / "deployment.yaml").exists()
    assert (base / "kustomization.yaml").exists()


def test_clone_creates_missing_branch(tmp_path: Path) -> None:
    error = subprocess.CalledProcessError(128, ["git"], stderr="invalid reference: dev")
    with patch("subprocess.run") as mock_run:
        mock_run.side_effect = [completed(), error, completed()]
        GitGenerator().generate_overlays_and_push(
            tmp_path, True, REMOTE, make_options(), "shop", "staging", "img", "", "dev", "/",
            False, {},
        )

    assert mock_run.call_args_list[2].args[0] == ["git", "checkout", "-b", "dev"]
    overlays = tmp_path / "shop" / "components" / "frontend" / "overlays" / "staging"
    assert (overlays / "deployment-patch.yaml").exists()


def test_get_commit_id_from_repo(tmp_path: Path) -> None:
    with patch("subprocess.run", return_value=completed("abc123\n")) as mock_run:
        assert GitGenerator().get_commit_id_from_repo(tmp_path) == "abc123"
    assert mock_run.call_args.args[0] == ["git", "rev-parse", "HEAD"]
