# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Tests for ingresses and routes built from devfile endpoints."""

import pytest

from gitops_generator.devfile import Endpoint
from gitops_generator.endpoints import (
    get_ingress_from_endpoint,
    get_route_from_endpoint,
    resources_from_endpoints,
)


def test_ingress_from_endpoint() -> None:
    ingress = get_ingress_from_endpoint(
        "http", "frontend", "8080", "/api", False, {"a": "b"}, "frontend-ns.example.com"
    )

    assert ingress["kind"] == "Ingress"
    assert ingress["metadata"] == {"name": "http", "annotations": {"a": "b"}}
    rule = ingress["spec"]["rules"][0]
    assert rule["host"] == "frontend-ns.example.com"
    (path,) = rule["http"]["paths"]
    assert path["path"] == "/api"
    assert path["pathType"] == "ImplementationSpecific"
    assert path["backend"]["service"] == {"name": "frontend", "port": {"number": 8080}}


def test_ingress_from_endpoint_defaults() -> None:
    ingress = get_ingress_from_endpoint("http", "frontend", "8080", "", False, None, "")

    rule = ingress["spec"]["rules"][0]
    assert "host" not in rule
    assert rule["http"]["paths"][0]["path"] == "/"
    assert "annotations" not in ingress["metadata"]


def test_ingress_from_endpoint_invalid_port() -> None:
    with pytest.raises(ValueError, match="invalid port 'http'"):
        get_ingress_from_endpoint("web", "frontend", "http", "", False, None, "")


def test_route_from_endpoint() -> None:
    route = get_route_from_endpoint("http", "frontend", "8080", "", True, None)

    assert route["kind"] == "Route"
    assert route["spec"]["path"] == "/"
    assert route["spec"]["port"] == {"targetPort": "8080"}
    assert route["spec"]["to"] == {"kind": "Service", "name": "frontend", "weight": 100}
    assert route["spec"]["tls"] == {
        "insecureEdgeTerminationPolicy": "Redirect",
        "termination": "edge",
    }


def test_route_from_insecure_endpoint_has_no_tls() -> None:
    route = get_route_from_endpoint("http", "frontend", "8080", "/web", False, None)
    assert "tls" not in route["spec"]
    assert route["spec"]["path"] == "/web"


def test_resources_from_endpoints_keeps_order_and_skips_unexposed() -> None:
    endpoints = [
        Endpoint(name="first", target_port=8080),
        Endpoint(name="internal", target_port=9000, exposure="internal"),
        Endpoint(name="second", target_port=8081, exposure="public"),
    ]

    ingresses, routes = resources_from_endpoints(endpoints, "frontend", "")

    assert [i["metadata"]["name"] for i in ingresses] == ["first", "second"]
    assert [r["metadata"]["name"] for r in routes] == ["first", "second"]
