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

"""Best-effort cleanup of resources left behind by an aborted run."""

from __future__ import annotations

import typer

from capa_e2e import console
from capa_e2e.aws import CredentialIssuer
from capa_e2e.config import SuiteConfig
from capa_e2e.constants import BOOTSTRAP_USER_NAME
from capa_e2e.context import ClusterHandle, SuiteContext
from capa_e2e.errors import ConfigError
from capa_e2e.orchestrator import Provisioners, teardown_suite


def cleanup(
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="kind cluster to delete"),
    region: str | None = typer.Option(None, "--region", help="Region (overrides AWS_REGION)"),
    keep_stack: bool = typer.Option(False, "--keep-stack", help="Keep the bootstrap stack"),
) -> None:
    """Delete a leftover cluster, bootstrap access keys, and the bootstrap stack."""
    cfg = SuiteConfig()
    if region is not None:
        cfg = cfg.model_copy(update={"region": region})
    if not cfg.region:
        raise ConfigError("Environment variable AWS_REGION not found")

    provisioners = Provisioners.from_config(cfg)
    ctx = SuiteContext(region=cfg.region)
    if cluster_name:
        ctx.cluster = ClusterHandle(name=cluster_name)
    if not keep_stack:
        ctx.session = CredentialIssuer().issue(cfg.region)
        # The stack owns the bootstrap user, which cannot be deleted while it has keys.
        revoked = provisioners.aws(ctx.session).access_keys.revoke_all(BOOTSTRAP_USER_NAME)
        console.print(f"[yellow]ℹ️  Revoked {revoked} bootstrap access key(s)[/yellow]")

    report = teardown_suite(ctx, provisioners)
    if not report.ok:
        raise typer.Exit(code=1)
