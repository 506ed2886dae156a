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

"""Exceptions raised by suite setup.

Every subclass of :class:`SuiteError` except :class:`ContextPhaseError` is
fatal: it aborts the remaining setup sequence. Teardown never raises them.
"""

from __future__ import annotations


class SuiteError(Exception):
    """Base class for all suite errors."""


class ConfigError(SuiteError):
    """Required configuration is missing or invalid."""


class CredentialError(SuiteError):
    """Ambient cloud credentials could not be resolved."""


class StackReconcileError(SuiteError):
    """The bootstrap stack could not be created or updated."""


class KeyPairError(SuiteError):
    """The compute key pair could not be ensured."""


class AccessKeyError(SuiteError):
    """An access key could not be minted for the bootstrap principal."""


class ClusterError(SuiteError):
    """The ephemeral cluster could not be created or configured."""


class ManifestBuildError(SuiteError):
    """The external manifest build tool failed.

    Attributes:
        diagnostics: Text the tool wrote to its diagnostic stream.
    """

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(f"{message}: {diagnostics.strip()}" if diagnostics.strip() else message)
        self.diagnostics = diagnostics


class ManifestApplyError(SuiteError):
    """A manifest could not be applied to the cluster."""


class SubstitutionError(SuiteError):
    """A manifest references variables that are not set.

    Attributes:
        missing: Sorted names of the unresolved variables.
    """

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Unresolved manifest variables: {', '.join(missing)}")
        self.missing = missing


class ReadinessTimeout(SuiteError):
    """A deployment did not reach its desired ready replica count in time."""


class ContextPhaseError(SuiteError):
    """A lifecycle operation was attempted in the wrong context phase."""
