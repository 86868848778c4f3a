# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Devfile parsing and deploy command resolution."""

import logging
from dataclasses import dataclass, field

import yaml

from gitops_generator.attributes import Attributes

logger = logging.getLogger(__name__)

KUBERNETES_LIKE_TYPES = ("kubernetes", "openshift")
COMPONENT_TYPES = ("container", "image", "kubernetes", "openshift", "volume")

EXPOSURE_PUBLIC = "public"
EXPOSURE_INTERNAL = "internal"
EXPOSURE_NONE = "none"

DEPLOY_GROUP = "deploy"


@dataclass
class Endpoint:
    """An endpoint declared on a devfile component."""
    name: str
    target_port: int
    exposure: str = EXPOSURE_PUBLIC
    path: str = ""
    secure: bool = False
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def is_exposed(self) -> bool:
        return self.exposure not in (EXPOSURE_NONE, EXPOSURE_INTERNAL)


@dataclass
class DevfileComponent:
    """A single entry of the devfile ``components`` list."""
    name: str
    type: str | None
    attributes: Attributes
    inlined: str = ""
    uri: str = ""
    endpoints: list[Endpoint] = field(default_factory=list)

    @property
    def is_kubernetes_like(self) -> bool:
        return self.type in KUBERNETES_LIKE_TYPES


@dataclass
class DevfileCommand:
    """A single entry of the devfile ``commands`` list."""
    id: str
    apply_component: str | None = None
    composite_commands: list[str] = field(default_factory=list)
    group_kind: str | None = None
    is_default: bool = False

    @property
    def is_composite(self) -> bool:
        return bool(self.composite_commands)


@dataclass
class DevfileData:
    """Parsed devfile content."""
    schema_version: str
    components: list[DevfileComponent]
    commands: list[DevfileCommand]

    def kubernetes_components(self) -> list[DevfileComponent]:
        return [c for c in self.components if c.is_kubernetes_like]


def _parse_endpoint(data: dict, component_name: str) -> Endpoint:
    if "name" not in data or "targetPort" not in data:
        raise ValueError(
            f"Endpoint of component '{component_name}' requires 'name' and 'targetPort'"
        )
    target_port = data["targetPort"]
    if isinstance(target_port, bool) or not isinstance(target_port, int):
        raise ValueError(
            f"Endpoint '{data['name']}' of component '{component_name}' "
            f"has a non-integer targetPort: {target_port!r}"
        )
    # The devfile schema spells the field in the singular
    annotations = data.get("annotation") or data.get("annotations") or {}
    return Endpoint(
        name=data["name"],
        target_port=target_port,
        exposure=data.get("exposure") or EXPOSURE_PUBLIC,
        path=data.get("path") or "",
        secure=bool(data.get("secure", False)),
        annotations={str(k): str(v) for k, v in annotations.items()},
    )


def _parse_component(data: dict) -> DevfileComponent:
    if not isinstance(data, dict) or "name" not in data:
        raise ValueError(f"Each devfile component requires a 'name': {data!r}")

    name = data["name"]
    component_type = next((t for t in COMPONENT_TYPES if t in data), None)
    component = DevfileComponent(
        name=name,
        type=component_type,
        attributes=Attributes(data.get("attributes")),
    )

    if component_type in KUBERNETES_LIKE_TYPES:
        body = data[component_type] or {}
        component.inlined = body.get("inlined") or ""
        component.uri = body.get("uri") or ""
        component.endpoints = [
            _parse_endpoint(e, name) for e in body.get("endpoints") or []
        ]

    return component


def _parse_command(data: dict) -> DevfileCommand:
    if not isinstance(data, dict) or "id" not in data:
        raise ValueError(f"Each devfile command requires an 'id': {data!r}")

    command = DevfileCommand(id=data["id"])
    for command_type in ("apply", "composite", "exec"):
        body = data.get(command_type)
        if body is None:
            continue
        if command_type == "apply":
            command.apply_component = body.get("component")
        elif command_type == "composite":
            command.composite_commands = list(body.get("commands") or [])
        group = body.get("group") or {}
        command.group_kind = group.get("kind")
        command.is_default = bool(group.get("isDefault", False))
        break

    return command


def parse_devfile(content: str) -> DevfileData:
    """
    Parse devfile YAML content.

    Args:
        content: The devfile text, as stored on the Component status

    Returns:
        Parsed devfile data

    Raises:
        ValueError: If the devfile is empty or malformed
    """
    if not content or not content.strip():
        raise ValueError("cannot parse devfile without a src")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"failed to parse devfile: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("devfile must be a YAML mapping")
    if "schemaVersion" not in data:
        raise ValueError("devfile is missing the required field 'schemaVersion'")

    components = [_parse_component(c) for c in data.get("components") or []]
    names = [c.name for c in components]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"devfile has duplicate component names: {duplicates}")

    commands = [_parse_command(c) for c in data.get("commands") or []]

    return DevfileData(
        schema_version=str(data["schemaVersion"]),
        components=components,
        commands=commands,
    )


def get_deploy_components(devfile: DevfileData) -> dict[str, str]:
    """
    Find the components referenced by the default deploy command.

    The default deploy command is the deploy-group command marked isDefault, or
    the only deploy-group command when there is just one. Composite commands are
    expanded transitively and each apply command reached contributes its
    component.

    Args:
        devfile: Parsed devfile data

    Returns:
        Dict mapping each deploy-selected component name to itself

    Raises:
        ValueError: If a composite command references an unknown command
    """
    commands_by_id = {c.id: c for c in devfile.commands}
    deploy_commands = [c for c in devfile.commands if c.group_kind == DEPLOY_GROUP]

    if len(deploy_commands) == 1:
        roots = deploy_commands
    else:
        roots = [c for c in deploy_commands if c.is_default]

    selected: dict[str, str] = {}
    visited: set[str] = set()
    pending = list(roots)
    while pending:
        command = pending.pop(0)
        if command.id in visited:
            continue
        visited.add(command.id)

        if command.apply_component:
            selected[command.apply_component] = command.apply_component
        for sub_id in command.composite_commands:
            if sub_id not in commands_by_id:
                raise ValueError(
                    f"composite command '{command.id}' references unknown command '{sub_id}'"
                )
            pending.append(commands_by_id[sub_id])

    logger.debug(f"Deploy components: {sorted(selected)}")
    return selected
