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

"""Run the e2e suite under pytest."""

from __future__ import annotations

import pytest
import typer

from capa_e2e.config import SuiteConfig
from capa_e2e.constants import JUNIT_FILE_TEMPLATE


def junit_path(cfg: SuiteConfig, node: int) -> str:
    return str(cfg.artifacts / JUNIT_FILE_TEMPLATE.format(node=node))


def run(
    path: str = typer.Argument("e2e", help="Directory holding the e2e tests"),
    node: int = typer.Option(1, "--node", min=1, help="Parallel node index used in the junit file name"),
    extra: list[str] | None = typer.Option(None, "--pytest-arg", help="Extra argument passed to pytest"),
) -> None:
    """Run the e2e suite and write junit results under ARTIFACTS."""
    cfg = SuiteConfig()
    cfg.artifacts.mkdir(parents=True, exist_ok=True)
    args = [path, "-m", "e2e", f"--junitxml={junit_path(cfg, node)}", *(extra or [])]
    raise typer.Exit(code=int(pytest.main(args)))
