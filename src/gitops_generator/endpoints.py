# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Ingress and Route manifests synthesized from devfile endpoints."""

from gitops_generator.devfile import Endpoint


def get_ingress_from_endpoint(
    name: str,
    service_name: str,
    port: str,
    path: str,
    secure: bool,
    annotations: dict[str, str] | None,
    hostname: str,
) -> dict:
    """
    Build an Ingress that sends a single path to the component's service.

    Args:
        name: Object name, taken from the endpoint name
        service_name: Backend service name (the component name)
        port: Backend port number as a string
        path: HTTP path, defaults to "/"
        secure: Whether the endpoint is secure (unused by ingresses)
        annotations: Endpoint annotations copied onto the object
        hostname: Rule host, may be empty

    Returns:
        Ingress manifest

    Raises:
        ValueError: If the port is not an integer
    """
    try:
        port_number = int(port)
    except ValueError as e:
        raise ValueError(f"endpoint '{name}' has an invalid port '{port}'") from e

    metadata: dict = {"name": name}
    if annotations:
        metadata["annotations"] = dict(annotations)

    rule: dict = {
        "http": {
            "paths": [
                {
                    "path": path or "/",
                    "pathType": "ImplementationSpecific",
                    "backend": {
                        "service": {
                            "name": service_name,
                            "port": {"number": port_number},
                        }
                    },
                }
            ]
        }
    }
    if hostname:
        rule = {"host": hostname, **rule}

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": metadata,
        "spec": {"rules": [rule]},
    }


def get_route_from_endpoint(
    name: str,
    service_name: str,
    port: str,
    path: str,
    secure: bool,
    annotations: dict[str, str] | None,
) -> dict:
    """Build a Route exposing the component's service on the endpoint's port."""
    metadata: dict = {"name": name}
    if annotations:
        metadata["annotations"] = dict(annotations)

    spec: dict = {
        "path": path or "/",
        "port": {"targetPort": port},
        "to": {"kind": "Service", "name": service_name, "weight": 100},
    }
    if secure:
        spec["tls"] = {
            "insecureEdgeTerminationPolicy": "Redirect",
            "termination": "edge",
        }

    return {
        "apiVersion": "route.openshift.io/v1",
        "kind": "Route",
        "metadata": metadata,
        "spec": spec,
    }


def resources_from_endpoints(
    endpoints: list[Endpoint], component_name: str, hostname: str
) -> tuple[list[dict], list[dict]]:
    """Return the (ingresses, routes) for every externally exposed endpoint."""
    ingresses: list[dict] = []
    routes: list[dict] = []
    for endpoint in endpoints:
        if not endpoint.is_exposed:
            continue
        port = str(endpoint.target_port)
        ingresses.append(
            get_ingress_from_endpoint(
                endpoint.name,
                component_name,
                port,
                endpoint.path,
                endpoint.secure,
                endpoint.annotations,
                hostname,
            )
        )
        routes.append(
            get_route_from_endpoint(
                endpoint.name,
                component_name,
                port,
                endpoint.path,
                endpoint.secure,
                endpoint.annotations,
            )
        )
    return ingresses, routes
