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

"""cert-manager, cluster-api, and provider controller manifest deployment."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rich.panel import Panel

from capa_e2e import console
from capa_e2e.constants import (
    CAPA_MANIFEST_FILE,
    CAPI_MANIFEST_FILE,
    DEFAULT_CAPA_CONFIG_DIR,
    DEFAULT_KUSTOMIZE_BINARY,
    KUSTOMIZE_BUILD_TIMEOUT_SECONDS,
    dep_value,
)
from capa_e2e.context import ClusterHandle
from capa_e2e.credentials import (
    AWSCredentialRecord,
    encode_profile,
    expand_variables,
    export_credentials,
    render_profile,
    write_profile,
)
from capa_e2e.errors import ManifestApplyError, ManifestBuildError
from capa_e2e.utils import run_kubectl


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of an external tool invocation.

    Attributes:
        output: Bytes the tool wrote to stdout.
        diagnostics: Text the tool wrote to stderr.
        success: Whether the tool exited with status 0.
    """

    output: bytes
    diagnostics: str
    success: bool


@dataclass(frozen=True)
class ManifestDescriptor:
    """A generated manifest and the file it is applied from."""

    content: bytes
    path: Path

    def write(self) -> Path:
        self.path.write_bytes(self.content)
        return self.path


def run_kustomize_build(binary: str, source: str) -> ProcessResult:
    """Run ``kustomize build`` keeping stdout and stderr apart.

    Args:
        binary: kustomize binary name or path.
        source: Local directory or remote kustomization URL.

    Returns:
        The process result; a missing binary or timeout is reported as a
        failed result rather than raised.
    """
    try:
        result = subprocess.run(
            [binary, "build", source],
            capture_output=True,
            timeout=KUSTOMIZE_BUILD_TIMEOUT_SECONDS,
        )
    except (subprocess.SubprocessError, OSError) as exc:
        return ProcessResult(output=b"", diagnostics=str(exc), success=False)
    return ProcessResult(
        output=result.stdout,
        diagnostics=result.stderr.decode("utf-8", errors="replace"),
        success=result.returncode == 0,
    )


def kubectl_apply(cluster: ClusterHandle, manifest: str) -> tuple[bool, str]:
    ok, _, stderr = run_kubectl(["apply", "-f", manifest], kubeconfig=cluster.kubeconfig_path)
    return ok, stderr


class ComponentDeployer:
    """Builds and applies the manifest sets installed into the cluster.

    Args:
        scratch_dir: Directory generated manifests and credentials go to.
        kustomize_binary: kustomize binary name or path.
        capa_config_dir: Kustomize source of the provider controller.
        builder: Runs the manifest build tool, see :func:`run_kustomize_build`.
        applier: Applies a manifest path or URL, see :func:`kubectl_apply`.
    """

    def __init__(
        self,
        scratch_dir: Path,
        kustomize_binary: str = DEFAULT_KUSTOMIZE_BINARY,
        capa_config_dir: str = DEFAULT_CAPA_CONFIG_DIR,
        builder: Callable[[str, str], ProcessResult] = run_kustomize_build,
        applier: Callable[[ClusterHandle, str], tuple[bool, str]] = kubectl_apply,
    ) -> None:
        self.scratch_dir = scratch_dir
        self.kustomize_binary = kustomize_binary
        self.capa_config_dir = capa_config_dir
        self._builder = builder
        self._applier = applier

    def build(self, source: str) -> bytes:
        """Build manifests from a kustomization.

        Raises:
            ManifestBuildError: If the build fails; carries the tool's stderr.
        """
        result = self._builder(self.kustomize_binary, source)
        if not result.success:
            console.print(f"[red]Error: {result.diagnostics.strip()}[/red]")
            raise ManifestBuildError(f"kustomize build {source} failed", result.diagnostics)
        return result.output

    def apply_to_cluster(self, cluster: ClusterHandle, manifest: str | Path) -> None:
        """Apply a manifest file or URL to the cluster.

        Raises:
            ManifestApplyError: If the manifest reference is empty or kubectl fails.
        """
        manifest = str(manifest)
        if not manifest:
            raise ManifestApplyError("No manifest given to apply")
        console.print(f"[yellow]ℹ️  Applying manifests for {manifest}[/yellow]")
        ok, stderr = self._applier(cluster, manifest)
        if not ok:
            raise ManifestApplyError(f"Failed to apply {manifest}: {stderr.strip()}")

    def deploy_cert_manager(self, cluster: ClusterHandle) -> None:
        console.print(Panel.fit("Deploying cert-manager", style="bold blue"))
        self.apply_to_cluster(cluster, dep_value("cert_manager", "manifest", default=""))

    def deploy_capi_components(self, cluster: ClusterHandle) -> ManifestDescriptor:
        """Generate and apply the cluster-api core components."""
        console.print(Panel.fit("Generating CAPI manifests", style="bold blue"))
        content = self.build(dep_value("cluster_api", "source", default=""))
        manifest = ManifestDescriptor(content=content, path=self.scratch_dir / CAPI_MANIFEST_FILE)
        self.apply_to_cluster(cluster, manifest.write())
        return manifest

    def deploy_capa_components(
        self,
        cluster: ClusterHandle,
        credentials: AWSCredentialRecord,
        prebuilt: str = "",
    ) -> ManifestDescriptor | None:
        """Generate and apply the provider controller components.

        Pre-built manifests are applied as-is. Otherwise the manifests are
        built, the encoded credentials profile is exported to the process
        environment, and every ``${VAR}`` is expanded before applying.

        Args:
            cluster: Target cluster.
            credentials: Credentials the controller runs with.
            prebuilt: Path or URL of pre-built manifests, or empty.

        Returns:
            The generated manifest, or None when pre-built manifests were used.

        Raises:
            ManifestBuildError: If the build fails.
            SubstitutionError: If a referenced variable is not set.
            ManifestApplyError: If kubectl fails.
        """
        if prebuilt:
            console.print(Panel.fit("Applying pre-built CAPA manifests", style="bold blue"))
            self.apply_to_cluster(cluster, prebuilt)
            return None

        console.print(Panel.fit("Generating CAPA manifests", style="bold blue"))
        built = self.build(self.capa_config_dir)

        write_profile(credentials, self.scratch_dir)
        export_credentials(encode_profile(render_profile(credentials)))
        content = expand_variables(built.decode("utf-8")).encode("utf-8")

        manifest = ManifestDescriptor(content=content, path=self.scratch_dir / CAPA_MANIFEST_FILE)
        self.apply_to_cluster(cluster, manifest.write())
        return manifest
