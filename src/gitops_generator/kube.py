# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Reading and updating the application custom resources through kubectl."""

import json
import logging
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)

COMPONENT = "components.appstudio.redhat.com"
ENVIRONMENT = "environments.appstudio.redhat.com"
SNAPSHOT = "snapshots.appstudio.redhat.com"
SNAPSHOT_ENVIRONMENT_BINDING = "snapshotenvironmentbindings.appstudio.redhat.com"


class ResourceClient(Protocol):
    """Fetch custom resources by name and write back their status."""

    def get(self, kind: str, name: str, namespace: str) -> dict: ...

    def update_status(self, kind: str, obj: dict) -> None: ...


class KubectlClient:
    """ResourceClient that shells out to kubectl."""

    def __init__(self, kubectl: str = "kubectl", timeout: int = 30) -> None:
        self.kubectl = kubectl
        self.timeout = timeout

    def _run(self, *args: str, stdin: str | None = None) -> subprocess.CompletedProcess[str]:
        cmd = [self.kubectl, *args]
        logger.debug(f"Executing: {' '.join(cmd)}")
        try:
            return subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise RuntimeError(
                f"{self.kubectl} is not installed or not available in PATH"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise RuntimeError(f"{' '.join(cmd)} timed out") from e

    def get(self, kind: str, name: str, namespace: str) -> dict:
        """
        Fetch a namespaced object.

        Raises:
            LookupError: If the object does not exist
            RuntimeError: If kubectl fails for any other reason
        """
        result = self._run("get", kind, name, "--namespace", namespace, "--output", "json")
        if result.returncode != 0:
            if "NotFound" in result.stderr:
                raise LookupError(f"{kind} {namespace}/{name} not found")
            raise RuntimeError(f"failed to get {kind} {namespace}/{name}: {result.stderr.strip()}")
        try:
            return json.loads(result.stdout)
        except ValueError as e:
            raise RuntimeError(f"kubectl returned invalid JSON for {kind} {name}") from e

    def update_status(self, kind: str, obj: dict) -> None:
        """
        Replace the status subresource of an object.

        Raises:
            RuntimeError: If the update is rejected
        """
        metadata = obj.get("metadata") or {}
        result = self._run(
            "replace",
            "--subresource=status",
            "--namespace",
            metadata.get("namespace", ""),
            "--filename",
            "-",
            stdin=json.dumps(obj),
        )
        if result.returncode != 0:
            raise RuntimeError(
                f"failed to update the status of {kind} {metadata.get('name')}: "
                f"{result.stderr.strip()}"
            )
