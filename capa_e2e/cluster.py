# /*
# Copyright 2026 The Kubernetes Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""kind cluster lifecycle and Kubernetes client construction."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import sh
import yaml
from kubernetes import client, config
from rich.panel import Panel
from tenacity import retry, stop_after_attempt, wait_fixed

from capa_e2e import console
from capa_e2e.constants import (
    CLUSTER_CREATE_RETRY_WAIT_SECONDS,
    CLUSTER_WAIT,
    DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
    KUBECONFIG_FILE,
)
from capa_e2e.context import ClusterHandle
from capa_e2e.errors import ClusterError


@dataclass(frozen=True)
class KubeClients:
    """Typed API clients for the management cluster."""

    apps: Any
    core: Any


def kube_clients(rest_config: client.Configuration) -> KubeClients:
    """Build apps/v1 and core/v1 clients sharing one API client."""
    api_client = client.ApiClient(configuration=rest_config)
    return KubeClients(apps=client.AppsV1Api(api_client), core=client.CoreV1Api(api_client))


def _stderr(err: sh.ErrorReturnCode) -> str:
    raw = err.stderr or b""
    return raw.decode("utf-8", errors="replace").strip() if isinstance(raw, bytes) else str(raw).strip()


class ClusterProvisioner:
    """Creates, configures, and destroys ephemeral kind clusters.

    Args:
        max_retries: Maximum cluster creation attempts.
        node_image: kind node image override, or empty for kind's default.
        retry_wait: Seconds between creation attempts.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
        node_image: str = "",
        retry_wait: int = CLUSTER_CREATE_RETRY_WAIT_SECONDS,
    ) -> None:
        self.max_retries = max_retries
        self.node_image = node_image
        self.retry_wait = retry_wait

    def create(self, name: str, workdir: Path) -> ClusterHandle:
        """Create a kind cluster with retry logic and write its kubeconfig.

        Args:
            name: Cluster name.
            workdir: Directory the kubeconfig is written to.

        Returns:
            Handle carrying the cluster name and kubeconfig path.

        Raises:
            ClusterError: If the cluster cannot be created after all retries.
        """
        console.print(Panel.fit(f"Creating kind cluster '{name}'", style="bold blue"))

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_fixed(self.retry_wait),
            reraise=True,
        )
        def _attempt() -> None:
            sh.kind("delete", "cluster", "--name", name)
            args = ["create", "cluster", "--name", name, "--wait", CLUSTER_WAIT]
            if self.node_image:
                args += ["--image", self.node_image]
            sh.kind(*args)

        try:
            _attempt()
            kubeconfig = str(sh.kind("get", "kubeconfig", "--name", name))
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"Failed to create kind cluster '{name}': {_stderr(err)}") from err

        kubeconfig_path = workdir / KUBECONFIG_FILE
        kubeconfig_path.write_text(kubeconfig)
        kubeconfig_path.chmod(0o600)
        console.print("[green]✅ Cluster created successfully[/green]")
        return ClusterHandle(name=name, kubeconfig_path=kubeconfig_path)

    def load_image(self, handle: ClusterHandle, image: str | None) -> None:
        """Load a locally built image into the cluster nodes.

        Args:
            handle: Target cluster.
            image: Image reference, or None/empty to skip.

        Raises:
            ClusterError: If kind fails to load the image.
        """
        if not image:
            return
        console.print(f"[yellow]ℹ️  Loading image {image} into '{handle.name}'...[/yellow]")
        try:
            sh.kind("load", "docker-image", image, "--name", handle.name)
        except sh.ErrorReturnCode as err:
            raise ClusterError(f"Failed to load image '{image}': {_stderr(err)}") from err
        console.print(f"[green]✅ Loaded {image}[/green]")

    def rest_config(self, handle: ClusterHandle) -> client.Configuration:
        """Build a Kubernetes client configuration from the cluster kubeconfig.

        Raises:
            ClusterError: If the handle has no kubeconfig or it cannot be parsed.
        """
        if handle.kubeconfig_path is None:
            raise ClusterError(f"Cluster '{handle.name}' has no kubeconfig")
        try:
            cfg_dict = yaml.safe_load(handle.kubeconfig_path.read_text())
            configuration = client.Configuration()
            config.load_kube_config_from_dict(cfg_dict, client_configuration=configuration)
        except (OSError, yaml.YAMLError, config.ConfigException) as err:
            raise ClusterError(f"Failed to load kubeconfig for '{handle.name}': {err}") from err
        return configuration

    def destroy(self, handle: ClusterHandle | None) -> None:
        """Delete the cluster. A None handle means nothing was created."""
        if handle is None:
            return
        console.print(f"[yellow]ℹ️  Deleting kind cluster '{handle.name}'...[/yellow]")
        sh.kind("delete", "cluster", "--name", handle.name)
        console.print(f"[green]✅ Cluster '{handle.name}' deleted[/green]")
