# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Resolve a devfile's outerloop definition into Kubernetes manifests."""

import logging

from gitops_generator.attributes import read_deployment_attributes
from gitops_generator.devfile import DevfileData
from gitops_generator.endpoints import resources_from_endpoints
from gitops_generator.labels import generate_k8s_labels, get_match_labels
from gitops_generator.manifests import KubernetesResources, parse_kubernetes_yaml
from gitops_generator.overrides import (
    override_deployment,
    override_ingress,
    override_route,
    override_service,
    set_revision_history_limit,
)

logger = logging.getLogger(__name__)

PLACEHOLDER = "place-holder"


def get_resources_from_devfile(
    devfile: DevfileData,
    deploy_components: dict[str, str],
    component_name: str,
    application_name: str,
    image: str,
    hostname: str,
) -> KubernetesResources:
    """
    Build the Kubernetes manifests for a component from its devfile.

    Every deploy-selected kubernetes component with inlined content is parsed;
    endpoint-derived ingresses and routes are placed ahead of the inlined ones,
    and the first manifest of each kind is renamed, labelled and updated from
    the component's deployment attributes.

    Args:
        devfile: Parsed devfile data
        deploy_components: Names of the components referenced by the default
            deploy command; updated in place when a single kubernetes component
            is selected implicitly
        component_name: Name of the Component the manifests belong to
        application_name: Application the Component belongs to
        image: Container image for the first deployment, ignored if empty
        hostname: Host for endpoint-derived ingresses, may be empty

    Returns:
        The combined manifests of all selected components

    Raises:
        ValueError: If the devfile has no kubernetes components, an attribute
            is malformed or the inlined content cannot be parsed
    """
    kubernetes_components = devfile.kubernetes_components()
    if not kubernetes_components:
        raise ValueError(
            "the devfile has no kubernetes components defined, missing outerloop definition"
        )
    if len(kubernetes_components) == 1 and not deploy_components:
        # a single kubernetes component needs no deploy command to be picked
        deploy_components[kubernetes_components[0].name] = PLACEHOLDER

    k8s_labels = generate_k8s_labels(component_name, application_name)
    match_labels = get_match_labels(component_name)

    appended = KubernetesResources()
    for component in kubernetes_components:
        if component.name not in deploy_components:
            continue
        if not component.inlined:
            logger.info(
                f"Kubernetes component {component.name} did not have an inline content, "
                "GitOps resources may be auto generated"
            )
            continue

        logger.info(f"Reading the kubernetes inline from component {component.name}")
        resources = parse_kubernetes_yaml(component.inlined)

        endpoint_ingresses, endpoint_routes = resources_from_endpoints(
            component.endpoints, component_name, hostname
        )
        resources.ingresses[:0] = endpoint_ingresses
        resources.routes[:0] = endpoint_routes

        attrs = read_deployment_attributes(component.attributes)

        for deployment in resources.deployments:
            set_revision_history_limit(deployment)

        if resources.deployments:
            override_deployment(
                resources.deployments[0],
                component_name,
                k8s_labels,
                match_labels,
                image,
                attrs,
            )
        if resources.services:
            override_service(
                resources.services[0], component_name, k8s_labels, match_labels, attrs
            )
        if resources.routes:
            override_route(resources.routes[0], component_name, k8s_labels, attrs)
        if resources.ingresses:
            override_ingress(resources.ingresses[0], component_name, k8s_labels, attrs)

        appended.extend(resources)

    return appended
