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

"""Orchestration functions that compose domain modules into the suite lifecycle."""

from __future__ import annotations

import shutil
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.panel import Panel

from capa_e2e import console, logger
from capa_e2e.aws import AWSServices, CredentialIssuer, aws_services
from capa_e2e.cluster import ClusterProvisioner, KubeClients, kube_clients
from capa_e2e.components import ComponentDeployer
from capa_e2e.config import SuiteConfig, validate_config
from capa_e2e.constants import (
    BOOTSTRAP_USER_NAME,
    CAPA_DEPLOYMENT,
    CAPI_DEPLOYMENT,
    DEFAULT_PARTITION,
    KEY_PAIR_NAME,
    NS_CAPA,
    NS_CAPI,
    SCRATCH_DIR_PREFIX,
    STACK_CAPABILITIES,
    STACK_NAME,
    dep_value,
)
from capa_e2e.context import ClusterHandle, DeploymentReference, SuiteContext
from capa_e2e.credentials import AWSCredentialRecord
from capa_e2e.errors import ReadinessTimeout
from capa_e2e.logs import LogWatcher, start_log_watcher
from capa_e2e.readiness import ReadinessWaiter
from capa_e2e.utils import random_suffix, require_command

CERT_MANAGER = DeploymentReference(
    dep_value("cert_manager", "namespace", default="cert-manager"),
    dep_value("cert_manager", "deployment", default="cert-manager-webhook"),
)
CAPI_CONTROLLER = DeploymentReference(NS_CAPI, CAPI_DEPLOYMENT)
CAPA_CONTROLLER = DeploymentReference(NS_CAPA, CAPA_DEPLOYMENT)

REQUIRED_COMMANDS = ("kind", "kubectl", "docker")


def make_scratch_dir() -> Path:
    return Path(tempfile.mkdtemp(prefix=SCRATCH_DIR_PREFIX))


def remove_scratch_dir(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)


def check_prerequisites(cfg: SuiteConfig) -> None:
    """Check that the external tools setup shells out to are installed.

    Raises:
        RuntimeError: If a required command is missing.
    """
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    commands = list(REQUIRED_COMMANDS)
    if not cfg.capa_components:
        commands.append(cfg.kustomize_binary)
    for cmd in commands:
        require_command(cmd)
    console.print("[green]✅ All required tools are available[/green]")


@dataclass
class Provisioners:
    """Collaborators used by setup and teardown.

    The defaults talk to AWS, kind, kustomize, and the cluster; tests swap
    in fakes.
    """

    credentials: CredentialIssuer = field(default_factory=CredentialIssuer)
    aws: Callable[[Any], AWSServices] = aws_services
    cluster: ClusterProvisioner = field(default_factory=ClusterProvisioner)
    deployer: Callable[[Path], ComponentDeployer] = ComponentDeployer
    kube: Callable[[Any], KubeClients] = kube_clients
    readiness: Callable[[KubeClients], ReadinessWaiter] = lambda clients: ReadinessWaiter(clients.apps)
    watch_logs: Callable[[KubeClients, DeploymentReference, Path], LogWatcher] = (
        lambda clients, ref, root: start_log_watcher(clients.apps, clients.core, ref, root))
    make_scratch_dir: Callable[[], Path] = make_scratch_dir
    remove_scratch_dir: Callable[[Path], None] = remove_scratch_dir
    check_prerequisites: Callable[[SuiteConfig], None] = check_prerequisites

    @classmethod
    def from_config(cls, cfg: SuiteConfig) -> Provisioners:
        """Build the real collaborators configured by *cfg*."""
        return cls(
            cluster=ClusterProvisioner(
                max_retries=cfg.cluster_max_retries,
                node_image=dep_value("kind", "node_image", default=""),
            ),
            deployer=lambda scratch_dir: ComponentDeployer(
                scratch_dir,
                kustomize_binary=cfg.kustomize_binary,
                capa_config_dir=cfg.capa_config_dir,
            ),
        )


class _Deadline:
    """Remaining share of the overall setup budget."""

    def __init__(self, seconds: float) -> None:
        self._end = time.monotonic() + seconds

    def clamp(self, timeout: float, what: str) -> float:
        remaining = self._end - time.monotonic()
        if remaining <= 0:
            raise ReadinessTimeout(f"Setup budget exhausted before waiting for {what}")
        return min(timeout, remaining)


# ============================================================================
# Setup phases
# ============================================================================


def _prepare_directories(ctx: SuiteContext, cfg: SuiteConfig, provisioners: Provisioners) -> None:
    ctx.artifact_dir = cfg.artifacts
    ctx.log_dir = cfg.log_dir
    ctx.log_dir.mkdir(parents=True, exist_ok=True)
    ctx.scratch_dir = provisioners.make_scratch_dir()


def _create_aws_prerequisites(ctx: SuiteContext, provisioners: Provisioners) -> None:
    """Resolve the account, then ensure key pair, bootstrap stack, and access key."""
    console.print(Panel.fit("Creating AWS prerequisites", style="bold blue"))
    services = provisioners.aws(ctx.session)
    ctx.account_id = services.accounts.account_id()
    services.key_pairs.ensure(KEY_PAIR_NAME)
    services.iam.reconcile(STACK_NAME, ctx.account_id, DEFAULT_PARTITION, STACK_CAPABILITIES)
    ctx.access_key = services.access_keys.mint(BOOTSTRAP_USER_NAME)
    console.print(f"[green]✅ AWS prerequisites ready in account {ctx.account_id}[/green]")


def _create_cluster(ctx: SuiteContext, cfg: SuiteConfig, provisioners: Provisioners) -> KubeClients:
    """Create the kind cluster, load the controller image, and build clients."""
    name = f"{cfg.cluster_name_prefix}{random_suffix()}"
    # Recorded first so teardown also removes a partially created cluster.
    ctx.cluster = ClusterHandle(name=name)
    ctx.cluster = provisioners.cluster.create(name, ctx.scratch_dir)
    provisioners.cluster.load_image(ctx.cluster, cfg.image_to_load)
    ctx.rest_config = provisioners.cluster.rest_config(ctx.cluster)
    return provisioners.kube(ctx.rest_config)


def _deploy_components(
    ctx: SuiteContext,
    cfg: SuiteConfig,
    provisioners: Provisioners,
    clients: KubeClients,
    deadline: _Deadline,
) -> None:
    """Deploy cert-manager, CAPI, and CAPA; start log watchers once ready."""
    deployer = provisioners.deployer(ctx.scratch_dir)
    waiter = provisioners.readiness(clients)

    def _wait(ref: DeploymentReference) -> None:
        waiter.wait_for_deployment(ref.namespace, ref.name, deadline.clamp(cfg.deployment_timeout, str(ref)))

    deployer.deploy_cert_manager(ctx.cluster)
    _wait(CERT_MANAGER)

    deployer.deploy_capi_components(ctx.cluster)
    deployer.deploy_capa_components(
        ctx.cluster,
        AWSCredentialRecord.from_access_key(ctx.access_key, ctx.region),
        prebuilt=cfg.capa_components,
    )

    for ref in (CAPI_CONTROLLER, CAPA_CONTROLLER):
        _wait(ref)
        ctx.watchers.append(provisioners.watch_logs(clients, ref, ctx.log_dir))


def setup_suite(ctx: SuiteContext, cfg: SuiteConfig, provisioners: Provisioners | None = None) -> SuiteContext:
    """Run the fixed setup sequence, recording each created resource in *ctx*.

    Every step is fatal: the first failure propagates and nothing after it
    runs. Resources created before the failure stay recorded in *ctx* so
    :func:`teardown_suite` can remove them.

    Args:
        ctx: Fresh suite context; setting up a context twice is refused.
        cfg: Suite configuration.
        provisioners: Collaborators, real ones configured from *cfg* by default.

    Returns:
        The populated context, now read-only.

    Raises:
        SuiteError: If any setup step fails.
        ContextPhaseError: If *ctx* is not fresh.
    """
    if provisioners is None:
        provisioners = Provisioners.from_config(cfg)

    ctx.begin_setup()
    try:
        deadline = _Deadline(cfg.setup_timeout)
        _prepare_directories(ctx, cfg, provisioners)
        validate_config(cfg)
        provisioners.check_prerequisites(cfg)

        ctx.region = cfg.region
        ctx.session = provisioners.credentials.issue(cfg.region)
        _create_aws_prerequisites(ctx, provisioners)

        clients = _create_cluster(ctx, cfg, provisioners)
        _deploy_components(ctx, cfg, provisioners, clients, deadline)
    finally:
        ctx.end_setup()

    ctx.mark_ready()
    console.print("[green]✅ Suite environment ready[/green]")
    return ctx


# ============================================================================
# Teardown
# ============================================================================


@dataclass(frozen=True)
class TeardownOutcome:
    """Result of one teardown step."""

    step: str
    error: BaseException | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TeardownReport:
    """Accumulated outcomes of every teardown step, in execution order."""

    outcomes: list[TeardownOutcome] = field(default_factory=list)

    @property
    def failures(self) -> list[TeardownOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failures

    def run(self, step: str, needed: bool, action: Callable[[], None]) -> TeardownOutcome:
        """Run *action* unless not *needed*, recording instead of raising."""
        if not needed:
            outcome = TeardownOutcome(step, skipped=True)
        else:
            try:
                action()
                outcome = TeardownOutcome(step)
            except Exception as err:
                logger.warning("Teardown step '%s' failed: %s", step, err)
                console.print(f"[yellow]⚠️  {step} failed: {err}[/yellow]")
                outcome = TeardownOutcome(step, error=err)
        self.outcomes.append(outcome)
        return outcome


def teardown_suite(ctx: SuiteContext, provisioners: Provisioners | None = None) -> TeardownReport:
    """Release every resource recorded in *ctx*, best effort.

    Order: cluster, access key, bootstrap stack, scratch directory. A failed
    step is recorded and never stops later steps; a step whose resource was
    never created is skipped. A context field is cleared once its resource
    is gone. Log watchers are left running; they end with their streams.

    Args:
        ctx: Suite context, after a successful or failed setup.
        provisioners: Collaborators; must match the ones setup used.

    Returns:
        Outcomes of every step.

    Raises:
        ContextPhaseError: If setup is running or teardown already ran.
    """
    if provisioners is None:
        provisioners = Provisioners()

    ctx.begin_teardown()
    console.print(Panel.fit("Tearing down suite environment", style="bold blue"))
    report = TeardownReport()

    def _destroy_cluster() -> None:
        provisioners.cluster.destroy(ctx.cluster)
        ctx.cluster = None
        ctx.rest_config = None

    def _revoke_access_key() -> None:
        provisioners.aws(ctx.session).access_keys.revoke(ctx.access_key)
        ctx.access_key = None

    def _delete_stack() -> None:
        provisioners.aws(ctx.session).iam.delete(STACK_NAME)

    def _remove_scratch_dir() -> None:
        provisioners.remove_scratch_dir(ctx.scratch_dir)
        ctx.scratch_dir = None

    report.run("destroy-cluster", ctx.cluster is not None, _destroy_cluster)
    report.run("revoke-access-key", ctx.access_key is not None and ctx.session is not None, _revoke_access_key)
    report.run("delete-bootstrap-stack", ctx.session is not None, _delete_stack)
    report.run("remove-scratch-dir", ctx.scratch_dir is not None, _remove_scratch_dir)

    ctx.close()
    if report.ok:
        console.print("[green]✅ Teardown complete[/green]")
    else:
        names = ", ".join(o.step for o in report.failures)
        console.print(f"[red]❌ Teardown finished with failures: {names}[/red]")
    return report
