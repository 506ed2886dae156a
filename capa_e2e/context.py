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

"""Suite-wide state shared by setup, the test body, and teardown."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from capa_e2e.errors import ContextPhaseError


class SuitePhase(enum.Enum):
    """Lifecycle phases of a :class:`SuiteContext`."""

    NEW = "new"
    SETTING_UP = "setting-up"
    READY = "ready"
    TEARING_DOWN = "tearing-down"
    CLOSED = "closed"


@dataclass(frozen=True)
class AccessKey:
    """Access key minted for the bootstrap principal."""

    user_name: str
    access_key_id: str
    secret_access_key: str


@dataclass(frozen=True)
class ClusterHandle:
    """Identifies an ephemeral cluster.

    Attributes:
        name: kind cluster name. Recorded before creation starts so that a
            partially created cluster is still destroyed.
        kubeconfig_path: Kubeconfig written for the cluster, once available.
    """

    name: str
    kubeconfig_path: Path | None = None


@dataclass(frozen=True)
class DeploymentReference:
    """Namespace/name lookup key for a controller deployment."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class SuiteContext:
    """Process-wide suite state.

    Written only by the setup sequence, read by the test body and the log
    watchers, and cleared field by field by teardown. The phase checks keep
    writers and readers temporally disjoint.

    Attributes:
        session: boto3 session, once credentials resolved.
        region: AWS region the session targets.
        account_id: Account the session resolves to.
        access_key: Minted bootstrap access key, or None.
        cluster: Ephemeral cluster handle, or None.
        rest_config: Kubernetes client configuration for the cluster.
        scratch_dir: Suite-private temporary directory, or None.
        artifact_dir: Artifact root.
        log_dir: Root of per-container controller logs.
        watchers: Log watchers started after readiness.
        phase: Current lifecycle phase.
    """

    session: Any = None
    region: str = ""
    account_id: str = ""
    access_key: AccessKey | None = None
    cluster: ClusterHandle | None = None
    rest_config: Any = None
    scratch_dir: Path | None = None
    artifact_dir: Path | None = None
    log_dir: Path | None = None
    watchers: list = field(default_factory=list)
    phase: SuitePhase = SuitePhase.NEW
    setup_in_progress: bool = False

    def begin_setup(self) -> None:
        """Enter the setup phase.

        Raises:
            ContextPhaseError: If this context has already been set up.
        """
        if self.phase is not SuitePhase.NEW:
            raise ContextPhaseError(f"Cannot set up a suite context in phase '{self.phase.value}'")
        self.phase = SuitePhase.SETTING_UP
        self.setup_in_progress = True

    def end_setup(self) -> None:
        """Leave the setup sequence, whether it succeeded or not."""
        self.setup_in_progress = False

    def mark_ready(self) -> None:
        """Enter the read-only phase once setup completed."""
        if self.phase is not SuitePhase.SETTING_UP:
            raise ContextPhaseError(f"Cannot mark a suite context ready in phase '{self.phase.value}'")
        self.phase = SuitePhase.READY

    def begin_teardown(self) -> None:
        """Enter the teardown phase.

        Teardown is allowed after a failed setup (phase still SETTING_UP
        once setup has unwound) but never twice.

        Raises:
            ContextPhaseError: If setup is still running, or teardown
                already ran or is running.
        """
        if self.setup_in_progress:
            raise ContextPhaseError("Cannot tear down a suite context while setup is running")
        if self.phase in (SuitePhase.TEARING_DOWN, SuitePhase.CLOSED):
            raise ContextPhaseError(f"Cannot tear down a suite context in phase '{self.phase.value}'")
        self.phase = SuitePhase.TEARING_DOWN

    def close(self) -> None:
        self.session = None
        self.region = ""
        self.account_id = ""
        self.rest_config = None
        self.phase = SuitePhase.CLOSED

    @property
    def is_empty(self) -> bool:
        """True when no tracked resource remains."""
        return self.cluster is None and self.access_key is None and self.scratch_dir is None
