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

"""
cli.py - Disposable e2e environment for cluster-api-provider-aws.

Subcommands:
    run                 Run the e2e suite under pytest with junit output
    config              Show the configuration resolved from the environment
    render-credentials  Print the encoded credentials profile for a key
    cleanup             Remove resources left behind by an aborted run

Examples:
    # Run the suite, junit results land in $ARTIFACTS
    AWS_REGION=us-east-1 ARTIFACTS=_artifacts capa-e2e run

    # Use pre-built provider manifests
    E2E_CAPA_COMPONENTS=out/infrastructure-components.yaml capa-e2e run

    # Delete a cluster and the bootstrap stack after an aborted run
    capa-e2e cleanup --cluster-name capa-test-abc123
"""

from __future__ import annotations

import logging
import sys

import typer

from capa_e2e import console
from capa_e2e.commands import cleanup_cmd, config_cmd, credentials_cmd, run_cmd

app = typer.Typer(
    help="Disposable e2e environment for cluster-api-provider-aws.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.command("run")(run_cmd.run)
app.command("config")(config_cmd.config)
app.command("render-credentials")(credentials_cmd.render_credentials)
app.command("cleanup")(cleanup_cmd.cleanup)


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
