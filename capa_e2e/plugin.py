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

"""pytest plugin providing the session-scoped e2e environment.

Registered through the ``pytest11`` entry point, so installing the package
enables it.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from capa_e2e.config import SuiteConfig
from capa_e2e.context import SuiteContext
from capa_e2e.orchestrator import Provisioners, setup_suite, teardown_suite


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "e2e: needs AWS credentials and a local kind cluster")


@pytest.fixture(scope="session")
def suite_config() -> SuiteConfig:
    return SuiteConfig()


@pytest.fixture(scope="session")
def suite_provisioners(suite_config: SuiteConfig) -> Provisioners:
    return Provisioners.from_config(suite_config)


@pytest.fixture(scope="session")
def suite_context(suite_config: SuiteConfig, suite_provisioners: Provisioners) -> Iterator[SuiteContext]:
    """Set up the environment once per session and always tear it down.

    A setup failure errors every test that uses this fixture; teardown still
    releases whatever setup created before failing.
    """
    ctx = SuiteContext()
    try:
        setup_suite(ctx, suite_config, suite_provisioners)
        yield ctx
    finally:
        teardown_suite(ctx, suite_provisioners)
