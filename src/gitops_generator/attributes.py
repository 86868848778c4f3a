# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Typed access to the free-form attributes of a devfile component."""

from dataclasses import dataclass, field
from typing import Any

CONTAINER_PORT_KEY = "deployment/container-port"
CONTAINER_ENV_KEY = "deployment/containerENV"
REPLICAS_KEY = "deployment/replicas"
CPU_LIMIT_KEY = "deployment/cpuLimit"
MEMORY_LIMIT_KEY = "deployment/memoryLimit"
STORAGE_LIMIT_KEY = "deployment/storageLimit"
CPU_REQUEST_KEY = "deployment/cpuRequest"
MEMORY_REQUEST_KEY = "deployment/memoryRequest"
STORAGE_REQUEST_KEY = "deployment/storageRequest"
ROUTE_KEY = "deployment/route"


class KeyNotFoundError(KeyError):
    """Raised when an attribute is not set on the component."""

    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"attribute '{self.key}' not found"


class AttributeValueError(ValueError):
    """Raised when an attribute is present but has the wrong shape."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"attribute '{key}' {message}")
        self.key = key


def env_value(value: Any) -> str:
    """Render an env var value; a null value is the empty string."""
    return "" if value is None else str(value)


@dataclass
class EnvVar:
    name: str
    value: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


class Attributes:
    """Read-only view over a component's ``attributes`` mapping.

    The getters raise ``KeyNotFoundError`` when the key is absent and
    ``AttributeValueError`` when the value cannot be read as the requested type.
    """

    def __init__(self, data: dict | None = None) -> None:
        self._data = dict(data or {})

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def _lookup(self, key: str) -> Any:
        if key not in self._data:
            raise KeyNotFoundError(key)
        return self._data[key]

    def get_int(self, key: str) -> int:
        value = self._lookup(key)
        # bool is a subclass of int but is never a valid number here
        if isinstance(value, bool):
            raise AttributeValueError(key, f"must be a number, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise AttributeValueError(key, f"must be a number, got {value!r}")

    def get_string(self, key: str) -> str:
        value = self._lookup(key)
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise AttributeValueError(key, f"must be a string, got {value!r}")

    def get_env(self, key: str) -> list[EnvVar]:
        value = self._lookup(key)
        if not isinstance(value, list):
            raise AttributeValueError(key, "must be a list of name/value entries")
        env: list[EnvVar] = []
        for entry in value:
            if not isinstance(entry, dict) or "name" not in entry:
                raise AttributeValueError(
                    key, f"entry {entry!r} must be a mapping with a 'name' field"
                )
            env.append(EnvVar(name=str(entry["name"]), value=env_value(entry.get("value"))))
        return env


def optional(getter, key: str, default=None):
    """Call an ``Attributes`` getter, returning ``default`` if the key is absent.

    Only ``KeyNotFoundError`` is swallowed; malformed values propagate.
    """
    try:
        return getter(key)
    except KeyNotFoundError:
        return default


@dataclass
class DeploymentAttributes:
    """The deployment overrides a kubernetes component may carry."""

    container_port: int = 0
    env: list[EnvVar] = field(default_factory=list)
    replicas: int = 0
    cpu_limit: str = ""
    memory_limit: str = ""
    storage_limit: str = ""
    cpu_request: str = ""
    memory_request: str = ""
    storage_request: str = ""
    route: str = ""


# (attribute key, getter, DeploymentAttributes field)
ATTRIBUTE_TABLE: list[tuple[str, str, str]] = [
    (CONTAINER_PORT_KEY, "get_int", "container_port"),
    (CONTAINER_ENV_KEY, "get_env", "env"),
    (REPLICAS_KEY, "get_int", "replicas"),
    (CPU_LIMIT_KEY, "get_string", "cpu_limit"),
    (MEMORY_LIMIT_KEY, "get_string", "memory_limit"),
    (STORAGE_LIMIT_KEY, "get_string", "storage_limit"),
    (CPU_REQUEST_KEY, "get_string", "cpu_request"),
    (MEMORY_REQUEST_KEY, "get_string", "memory_request"),
    (STORAGE_REQUEST_KEY, "get_string", "storage_request"),
    (ROUTE_KEY, "get_string", "route"),
]


def read_deployment_attributes(attributes: Attributes) -> DeploymentAttributes:
    """Read every recognized deployment attribute, leaving absent ones at their defaults.

    Raises:
        AttributeValueError: If a recognized attribute has the wrong shape
    """
    result = DeploymentAttributes()
    for key, getter_name, field_name in ATTRIBUTE_TABLE:
        value = optional(getattr(attributes, getter_name), key)
        if value is not None:
            setattr(result, field_name, value)
    return result
