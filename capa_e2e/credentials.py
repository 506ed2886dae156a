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

"""Credentials profile rendering and ``${VAR}`` manifest substitution."""

from __future__ import annotations

import base64
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from capa_e2e.constants import (
    CREDENTIALS_ENV_VAR,
    CREDENTIALS_PROFILE_FILE,
    CREDENTIALS_PROFILE_SECTION,
)
from capa_e2e.context import AccessKey
from capa_e2e.errors import SubstitutionError

# The provider manifest decodes this verbatim into a shared credentials file.
PROFILE_TEMPLATE = (
    "[{section}]\n"
    "aws_access_key_id = {access_key_id}\n"
    "aws_secret_access_key = {secret_access_key}\n"
    "region = {region}\n"
)

_VARIABLE_RE = re.compile(r"\$\{([^}]*)\}")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class AWSCredentialRecord:
    """Credentials injected into the provider controller."""

    access_key_id: str
    secret_access_key: str
    region: str

    @classmethod
    def from_access_key(cls, key: AccessKey, region: str) -> AWSCredentialRecord:
        return cls(
            access_key_id=key.access_key_id,
            secret_access_key=key.secret_access_key,
            region=region,
        )


def render_profile(record: AWSCredentialRecord, section: str = CREDENTIALS_PROFILE_SECTION) -> str:
    """Render *record* as a shared-credentials profile.

    Args:
        record: Credentials to render.
        section: Profile section header name.

    Returns:
        Profile text, newline terminated.
    """
    return PROFILE_TEMPLATE.format(
        section=section,
        access_key_id=record.access_key_id,
        secret_access_key=record.secret_access_key,
        region=record.region,
    )


def encode_profile(profile: str) -> str:
    """Base64-encode profile text with the standard alphabet."""
    return base64.b64encode(profile.encode("utf-8")).decode("ascii")


def write_profile(record: AWSCredentialRecord, scratch_dir: Path) -> Path:
    """Write the rendered profile into the scratch directory.

    Returns:
        Path of the written profile, readable only by the owner.
    """
    path = scratch_dir / CREDENTIALS_PROFILE_FILE
    path.write_text(render_profile(record))
    path.chmod(0o600)
    return path


def export_credentials(encoded: str, environ: dict[str, str] | None = None) -> None:
    """Expose the encoded profile to manifest substitution."""
    target = os.environ if environ is None else environ
    target[CREDENTIALS_ENV_VAR] = encoded


def find_variables(text: str) -> set[str]:
    """Return the contents of all ``${...}`` references in *text*."""
    return set(_VARIABLE_RE.findall(text))


def expand_variables(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Expand every ``${VAR}`` reference in *text*.

    Bare ``$VAR`` references are left untouched so shell snippets embedded
    in manifests survive. Every ``${...}`` is consumed; one whose content is
    not a plain variable name (``${FOO:-bar}``, ``${1}``, ``${ X }``) can
    never resolve and is reported like an unset variable.

    Args:
        text: Manifest text.
        environ: Variable source, the process environment by default.

    Returns:
        Text with every reference replaced.

    Raises:
        SubstitutionError: If any reference is malformed or not set.
    """
    source = os.environ if environ is None else environ
    missing = sorted(
        name for name in find_variables(text)
        if not _NAME_RE.fullmatch(name) or name not in source
    )
    if missing:
        raise SubstitutionError(missing)
    return _VARIABLE_RE.sub(lambda m: source[m.group(1)], text)
