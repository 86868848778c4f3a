# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Kubernetes manifest bundles parsed from inlined devfile content."""

from dataclasses import dataclass, field

import yaml

DEPLOYMENT_KIND = "Deployment"
SERVICE_KIND = "Service"
ROUTE_KIND = "Route"
INGRESS_KIND = "Ingress"


@dataclass
class KubernetesResources:
    """Manifests grouped by kind, in document order.

    Overrides only ever touch index zero of each list.
    """

    deployments: list[dict] = field(default_factory=list)
    services: list[dict] = field(default_factory=list)
    routes: list[dict] = field(default_factory=list)
    ingresses: list[dict] = field(default_factory=list)
    others: list[dict] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.deployments or self.services or self.routes or self.ingresses or self.others
        )

    def extend(self, other: "KubernetesResources") -> None:
        """Append every manifest of ``other`` after the ones already held."""
        self.deployments.extend(other.deployments)
        self.services.extend(other.services)
        self.routes.extend(other.routes)
        self.ingresses.extend(other.ingresses)
        self.others.extend(other.others)

    def all(self) -> list[dict]:
        return [
            *self.deployments,
            *self.services,
            *self.routes,
            *self.ingresses,
            *self.others,
        ]


def parse_kubernetes_yaml(content: str) -> KubernetesResources:
    """
    Split a multi-document YAML stream and sort the documents by kind.

    Args:
        content: YAML text with ``---`` separated documents

    Returns:
        The documents grouped into deployments, services, routes, ingresses and others

    Raises:
        ValueError: If the content is not valid YAML or a document is not a mapping
    """
    try:
        documents = [doc for doc in yaml.safe_load_all(content) if doc]
    except yaml.YAMLError as e:
        raise ValueError(f"failed to parse the inlined kubernetes content: {e}") from e

    resources = KubernetesResources()
    bins = {
        DEPLOYMENT_KIND: resources.deployments,
        SERVICE_KIND: resources.services,
        ROUTE_KIND: resources.routes,
        INGRESS_KIND: resources.ingresses,
    }
    for doc in documents:
        if not isinstance(doc, dict):
            raise ValueError(
                f"inlined kubernetes document must be a YAML mapping, got {type(doc).__name__}"
            )
        bins.get(doc.get("kind"), resources.others).append(doc)

    return resources
