# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Pipelines-as-code build resources rendered from bundled Mustache templates."""

import logging
from pathlib import Path

import pystache
import yaml
from pystache.common import MissingTags

from gitops_generator.gitops import KUSTOMIZE_FILE_NAME, new_kustomization, write_resources
from gitops_generator.models import Component

logger = logging.getLogger(__name__)

TEKTON_DIR_NAME = ".tekton"


def _templates_dir() -> Path:
    from importlib.resources import files as get_package_files

    return Path(str(get_package_files("gitops_generator") / "templates" / "tekton"))


def generate_build(
    base_dir: Path,
    component: Component,
    _templates_override: Path | None = None,  # for testing only
) -> set[Path]:
    """Write the build resources for a git-sourced component into <base>/.tekton/.

    Components without a git source get no build resources. When files are
    written, the base kustomization is refreshed so it references the build
    directory.

    Args:
        base_dir: The component's base directory inside the cloned repository
        component: The Component being built
        _templates_override: Override templates directory (for testing only)

    Returns:
        Set of paths written
    """
    if not component.git_source_url:
        logger.debug(f"Component {component.name} has no git source, skipping build resources")
        return set()

    templates_dir = _templates_override or _templates_dir()
    renderer = pystache.Renderer(missing_tags=MissingTags.strict)
    context = {
        "name": component.name,
        "namespace": component.namespace,
        "application": component.application,
        "git_url": component.git_source_url,
    }

    output_dir = base_dir / TEKTON_DIR_NAME
    output_dir.mkdir(parents=True, exist_ok=True)
    written: set[Path] = set()
    for template_file in sorted(templates_dir.glob("*.yaml")):
        rendered = renderer.render(template_file.read_text(), context)
        output_path = output_dir / template_file.name
        output_path.write_text(rendered)
        logger.debug(f"Wrote {TEKTON_DIR_NAME}/{template_file.name}")
        written.add(output_path)

    update_existing_kustomize(base_dir)
    return written


def update_existing_kustomize(folder: Path) -> None:
    """Rewrite a folder's kustomization so it lists every file and subdirectory in it."""
    kustomization = new_kustomization()
    for entry in sorted(folder.iterdir()):
        if entry.is_dir():
            kustomization["resources"].append(entry.name + "/")
        elif entry.name != KUSTOMIZE_FILE_NAME and entry.suffix == ".yaml":
            kustomization["resources"].append(entry.name)

    kustomize_file = folder / KUSTOMIZE_FILE_NAME
    if kustomize_file.exists():
        existing = yaml.safe_load(kustomize_file.read_text()) or {}
        for key, value in existing.items():
            if key not in kustomization:
                kustomization[key] = value
    write_resources(folder, {KUSTOMIZE_FILE_NAME: kustomization})
