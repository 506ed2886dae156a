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

"""Render the encoded credentials profile injected into the controller."""

from __future__ import annotations

import typer

from capa_e2e.config import SuiteConfig
from capa_e2e.credentials import AWSCredentialRecord, encode_profile, render_profile


def render_credentials(
    access_key_id: str = typer.Option(..., "--access-key-id", help="Access key ID"),
    secret_access_key: str = typer.Option(
        ..., "--secret-access-key", envvar="AWS_SECRET_ACCESS_KEY", help="Secret access key"),
    region: str | None = typer.Option(None, "--region", help="Region (overrides AWS_REGION)"),
    plain: bool = typer.Option(False, "--plain", help="Print the profile instead of its base64 encoding"),
) -> None:
    """Print the AWS_B64ENCODED_CREDENTIALS value for the given key."""
    region = region or SuiteConfig().region
    if not region:
        raise typer.BadParameter("no region given and AWS_REGION is not set", param_hint="--region")
    profile = render_profile(AWSCredentialRecord(access_key_id, secret_access_key, region))
    typer.echo(profile if plain else encode_profile(profile), nl=not plain)
