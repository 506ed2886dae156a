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

"""Suite configuration and config display."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from capa_e2e import console
from capa_e2e.constants import (
    CLUSTER_NAME_SUFFIX_LENGTH,
    DEFAULT_CAPA_CONFIG_DIR,
    DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
    DEFAULT_CLUSTER_NAME_PREFIX,
    DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS,
    DEFAULT_KUSTOMIZE_BINARY,
    DEFAULT_SETUP_TIMEOUT_SECONDS,
    LOGS_DIR_NAME,
)
from capa_e2e.errors import ConfigError


class SuiteConfig(BaseSettings):
    """Suite configuration, auto-loaded from the environment.

    ``AWS_REGION`` and ``ARTIFACTS`` are read under their conventional names;
    every other field is read from an ``E2E_*`` variable.

    Attributes:
        region: Target AWS region. Required before setup can start.
        artifacts: Artifact root; logs and junit output land here.
        load_manager_image: Whether to load a locally built controller image.
        manager_image: Controller image reference to load into the cluster.
        capa_components: Pre-built provider manifests, skipping generation.
        kustomize_binary: Path or name of the kustomize binary.
        capa_config_dir: Kustomize source for the provider controller.
        cluster_name_prefix: Prefix for the generated kind cluster name.
        cluster_max_retries: Maximum cluster creation attempts.
        deployment_timeout: Seconds to wait for each deployment to be ready.
        setup_timeout: Overall budget for suite setup in seconds.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore", populate_by_name=True)

    region: str | None = Field(default=None, validation_alias="AWS_REGION")
    artifacts: Path = Field(default=Path("."), validation_alias="ARTIFACTS")
    load_manager_image: bool = True
    manager_image: str = ""
    capa_components: str = ""
    kustomize_binary: str = DEFAULT_KUSTOMIZE_BINARY
    capa_config_dir: str = DEFAULT_CAPA_CONFIG_DIR
    cluster_name_prefix: str = Field(default=DEFAULT_CLUSTER_NAME_PREFIX, pattern=r"^[a-z0-9][a-z0-9-]*$")
    cluster_max_retries: int = Field(default=DEFAULT_CLUSTER_CREATE_MAX_RETRIES, ge=1, le=10)
    deployment_timeout: int = Field(default=DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS, ge=1)
    setup_timeout: int = Field(default=DEFAULT_SETUP_TIMEOUT_SECONDS, ge=1)

    @property
    def log_dir(self) -> Path:
        """Root directory for per-container controller logs."""
        return self.artifacts / LOGS_DIR_NAME

    @property
    def image_to_load(self) -> str | None:
        """Controller image to load, or None when loading is disabled or unset."""
        if self.load_manager_image and self.manager_image:
            return self.manager_image
        return None


def validate_config(cfg: SuiteConfig) -> None:
    """Check settings that pydantic cannot express as field constraints.

    Args:
        cfg: Resolved suite configuration.

    Raises:
        ConfigError: If a required setting is missing or inconsistent.
    """
    if not cfg.region:
        raise ConfigError("Environment variable AWS_REGION not found")
    if cfg.capa_components and not (
        cfg.capa_components.startswith(("http://", "https://")) or Path(cfg.capa_components).exists()
    ):
        raise ConfigError(f"Provider components not found: {cfg.capa_components}")
    if len(cfg.cluster_name_prefix) + CLUSTER_NAME_SUFFIX_LENGTH > 63:
        raise ConfigError("Cluster name prefix is too long for a DNS label")


def display_config(cfg: SuiteConfig) -> None:
    """Print the resolved configuration.

    Args:
        cfg: Resolved suite configuration.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]AWS:[/yellow]")
    console.print(f"  region             : {cfg.region or '(unset)'}")
    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  name_prefix        : {cfg.cluster_name_prefix}")
    console.print(f"  manager_image      : {cfg.image_to_load or '(not loaded)'}")
    console.print("[yellow]Components:[/yellow]")
    console.print(f"  capa_components    : {cfg.capa_components or '(generated)'}")
    console.print(f"  kustomize_binary   : {cfg.kustomize_binary}")
    console.print(f"  capa_config_dir    : {cfg.capa_config_dir}")
    console.print("[yellow]Artifacts:[/yellow]")
    console.print(f"  artifacts          : {cfg.artifacts}")
    console.print(f"  log_dir            : {cfg.log_dir}")
    console.print(f"  deployment_timeout : {cfg.deployment_timeout}s")
