# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Attribute-driven overrides applied to the first manifest of each kind."""

import re

from gitops_generator.attributes import (
    CPU_LIMIT_KEY,
    CPU_REQUEST_KEY,
    MEMORY_LIMIT_KEY,
    MEMORY_REQUEST_KEY,
    STORAGE_LIMIT_KEY,
    STORAGE_REQUEST_KEY,
    DeploymentAttributes,
    EnvVar,
)
from gitops_generator.labels import get_route_name

REVISION_HISTORY_LIMIT = 0

_QUANTITY_REGEX = re.compile(
    r"^[+-]?(\d+(\.\d*)?|\.\d+)(Ki|Mi|Gi|Ti|Pi|Ei|n|u|m|k|M|G|T|P|E|[eE][+-]?\d+)?$"
)


def parse_quantity(value: str, key: str) -> str:
    """
    Validate a Kubernetes resource quantity such as "2", "701m" or "500Mi".

    Args:
        value: The quantity string
        key: Attribute key the value came from, used in the error message

    Returns:
        The quantity, unchanged

    Raises:
        ValueError: If the value is not a valid quantity
    """
    if not _QUANTITY_REGEX.match(value):
        raise ValueError(
            f"quantity '{value}' for attribute '{key}' must match the regular expression "
            "'^([+-]?[0-9.]+)([eEinumkKMGTP]*[-+]?[0-9]*)$'"
        )
    return value


def merge_labels(obj: dict, path: tuple[str, ...], labels: dict[str, str]) -> None:
    """Upsert ``labels`` into the mapping found at ``path``, creating it if missing."""
    target = obj
    for key in path:
        if not isinstance(target.get(key), dict):
            target[key] = {}
        target = target[key]
    target.update(labels)


def merge_env(container: dict, env: list[EnvVar]) -> None:
    """Override same-named container env values in place, append the rest."""
    container_env = container.setdefault("env", [])
    for var in env:
        matched = False
        for existing in container_env:
            if existing.get("name") == var.name:
                existing["value"] = var.value
                matched = True
        if not matched:
            container_env.append(var.to_dict())


def _set_quantities(container: dict, section: str, quantities: dict[str, tuple[str, str]]) -> None:
    resources = container.get("resources")
    if not isinstance(resources, dict):
        resources = container["resources"] = {}
    values = resources.get(section) or {}
    for resource_name, (key, quantity) in quantities.items():
        if quantity and quantity != "0":
            values[resource_name] = parse_quantity(quantity, key)
    resources[section] = values


def _pod_spec(deployment: dict) -> dict:
    return deployment.setdefault("spec", {}).setdefault("template", {}).setdefault("spec", {})


def set_revision_history_limit(deployment: dict) -> None:
    spec = deployment.setdefault("spec", {})
    if spec.get("revisionHistoryLimit") is None:
        spec["revisionHistoryLimit"] = REVISION_HISTORY_LIMIT


def override_deployment(
    deployment: dict,
    component_name: str,
    k8s_labels: dict[str, str],
    match_labels: dict[str, str],
    image: str,
    attrs: DeploymentAttributes,
) -> None:
    """
    Apply the component identity and deployment attributes to a Deployment.

    Args:
        deployment: The Deployment manifest, modified in place
        component_name: Name the Deployment is renamed to
        k8s_labels: Standard labels merged into the object labels
        match_labels: Selector merged into the selector and the pod template labels
        image: Container image for the first container, ignored if empty
        attrs: Attribute overrides read from the devfile component

    Raises:
        ValueError: If a resource limit or request is not a valid quantity
    """
    deployment.setdefault("metadata", {})["name"] = component_name
    merge_labels(deployment, ("metadata", "labels"), k8s_labels)
    merge_labels(deployment, ("spec", "selector", "matchLabels"), match_labels)
    merge_labels(deployment, ("spec", "template", "metadata", "labels"), match_labels)

    if attrs.replicas > 0:
        deployment["spec"]["replicas"] = attrs.replicas

    containers = _pod_spec(deployment).get("containers") or []
    if not containers:
        return
    container = containers[0]

    if image:
        container["image"] = image

    port = attrs.container_port
    if port > 0:
        ports = container.setdefault("ports", [])
        if not any(p.get("containerPort") == port for p in ports):
            ports.append({"containerPort": port})

        tcp_socket = (container.get("readinessProbe") or {}).get("tcpSocket")
        if tcp_socket is not None:
            tcp_socket["port"] = port
        http_get = (container.get("livenessProbe") or {}).get("httpGet")
        if http_get is not None:
            http_get["port"] = port

    merge_env(container, attrs.env)

    _set_quantities(
        container,
        "limits",
        {
            "cpu": (CPU_LIMIT_KEY, attrs.cpu_limit),
            "memory": (MEMORY_LIMIT_KEY, attrs.memory_limit),
            "storage": (STORAGE_LIMIT_KEY, attrs.storage_limit),
        },
    )
    _set_quantities(
        container,
        "requests",
        {
            "cpu": (CPU_REQUEST_KEY, attrs.cpu_request),
            "memory": (MEMORY_REQUEST_KEY, attrs.memory_request),
            "storage": (STORAGE_REQUEST_KEY, attrs.storage_request),
        },
    )


def override_service(
    service: dict,
    component_name: str,
    k8s_labels: dict[str, str],
    match_labels: dict[str, str],
    attrs: DeploymentAttributes,
) -> None:
    service.setdefault("metadata", {})["name"] = component_name
    merge_labels(service, ("metadata", "labels"), k8s_labels)
    merge_labels(service, ("spec", "selector"), match_labels)

    port = attrs.container_port
    if port > 0:
        ports = service["spec"].setdefault("ports", [])
        if not any(p.get("port") == port for p in ports):
            ports.append({"port": port, "targetPort": port})


def override_route(
    route: dict,
    component_name: str,
    k8s_labels: dict[str, str],
    attrs: DeploymentAttributes,
) -> None:
    route.setdefault("metadata", {})["name"] = get_route_name(component_name)
    merge_labels(route, ("metadata", "labels"), k8s_labels)

    spec = route.setdefault("spec", {})
    if not spec.get("path"):
        spec["path"] = "/"

    if attrs.container_port > 0:
        if not isinstance(spec.get("port"), dict):
            spec["port"] = {}
        spec["port"]["targetPort"] = attrs.container_port

    if attrs.route:
        spec["host"] = attrs.route


def override_ingress(
    ingress: dict,
    component_name: str,
    k8s_labels: dict[str, str],
    attrs: DeploymentAttributes,
) -> None:
    ingress.setdefault("metadata", {})["name"] = component_name
    merge_labels(ingress, ("metadata", "labels"), k8s_labels)

    if attrs.container_port <= 0:
        return
    rules = (ingress.get("spec") or {}).get("rules") or []
    if not rules:
        return
    paths = (rules[0].get("http") or {}).get("paths") or []
    if not paths:
        return
    service = (paths[0].get("backend") or {}).get("service")
    if service is not None:
        # a backend port is either named or numbered, never both
        service["port"] = {"number": attrs.container_port}
