# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Standard labels, object naming and hostname rules."""

import random
import re
import string

NAME_LABEL = "app.kubernetes.io/name"
INSTANCE_LABEL = "app.kubernetes.io/instance"
PART_OF_LABEL = "app.kubernetes.io/part-of"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
CREATED_BY_LABEL = "app.kubernetes.io/created-by"

MANAGED_BY = "kustomize"
CREATED_BY = "application-service"

ROUTE_NAME_MAX_LENGTH = 30
ROUTE_NAME_PREFIX_LENGTH = 25
RANDOM_SUFFIX_LENGTH = 4

INGRESS_HOST_PATTERN = r"[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*"
_INGRESS_HOST_REGEX = re.compile(INGRESS_HOST_PATTERN)

_LOWER_ALPHANUMERIC = string.ascii_lowercase + string.digits


def generate_k8s_labels(
    name: str, application: str, instance: str | None = None
) -> dict[str, str]:
    """Return the five labels stamped on every generated object.

    ``instance`` defaults to ``name``; they differ only when a Component's
    display name is not its object name.
    """
    return {
        NAME_LABEL: name,
        INSTANCE_LABEL: instance or name,
        PART_OF_LABEL: application,
        MANAGED_BY_LABEL: MANAGED_BY,
        CREATED_BY_LABEL: CREATED_BY,
    }


def get_match_labels(name: str) -> dict[str, str]:
    """Return the selector that ties deployments, services and pods together."""
    return {INSTANCE_LABEL: name}


def get_random_string(length: int = RANDOM_SUFFIX_LENGTH) -> str:
    return "".join(random.choices(_LOWER_ALPHANUMERIC, k=length))


def get_route_name(component_name: str) -> str:
    """Name a component's route, trimming names too long for route hostnames."""
    if len(component_name) >= ROUTE_NAME_MAX_LENGTH:
        return component_name[:ROUTE_NAME_PREFIX_LENGTH] + get_random_string()
    return component_name


def generate_random_route_name(component_name: str) -> str:
    """Generate a fresh route name to be persisted in the binding status."""
    return f"{component_name[:ROUTE_NAME_PREFIX_LENGTH]}-{get_random_string()}"


def get_ingress_host_name(component_name: str, namespace: str, ingress_domain: str) -> str:
    """
    Build the ingress hostname for a component.

    Args:
        component_name: Name of the Component
        namespace: Namespace the Component is deployed to
        ingress_domain: The cluster's ingress domain

    Returns:
        Hostname of the form <component>-<namespace>.<domain>

    Raises:
        ValueError: If the hostname does not contain a valid DNS name
    """
    host = f"{component_name}-{namespace}.{ingress_domain}"
    if not _INGRESS_HOST_REGEX.search(host):
        raise ValueError(f"hostname {host} should match regex {INGRESS_HOST_PATTERN}")
    return host
