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

"""AWS prerequisites: session, account, bootstrap stack, key pair, access key."""

from __future__ import annotations

import enum
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from capa_e2e import console
from capa_e2e.bootstrap_template import bootstrap_template
from capa_e2e.constants import (
    DEFAULT_PARTITION,
    ERR_ENTITY_EXISTS,
    ERR_KEY_PAIR_DUPLICATE,
    ERR_NO_SUCH_ENTITY,
    ERR_VALIDATION,
    MSG_DOES_NOT_EXIST,
    MSG_NO_UPDATES,
    STACK_CAPABILITIES,
    STACK_WAITER_DELAY_SECONDS,
    STACK_WAITER_MAX_ATTEMPTS,
)
from capa_e2e.context import AccessKey
from capa_e2e.errors import (
    AccessKeyError,
    CredentialError,
    KeyPairError,
    StackReconcileError,
)


# ============================================================================
# Error classification
# ============================================================================

class AWSErrorClass(enum.Enum):
    """Provider error classes the orchestration logic reacts to."""

    DUPLICATE = "duplicate"
    NOT_FOUND = "not-found"
    NO_UPDATES = "no-updates"
    OTHER = "other"


_CODE_CLASSES = {
    ERR_KEY_PAIR_DUPLICATE: AWSErrorClass.DUPLICATE,
    ERR_ENTITY_EXISTS: AWSErrorClass.DUPLICATE,
    "AlreadyExistsException": AWSErrorClass.DUPLICATE,
    ERR_NO_SUCH_ENTITY: AWSErrorClass.NOT_FOUND,
    "InvalidKeyPair.NotFound": AWSErrorClass.NOT_FOUND,
}


def error_code(err: BaseException) -> str:
    """Return the provider error code of *err*, or an empty string."""
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Code", "")
    return ""


def classify_error(err: BaseException) -> AWSErrorClass:
    """Map a provider exception onto an :class:`AWSErrorClass`.

    CloudFormation reports both "stack does not exist" and "nothing to
    update" as ``ValidationError``, so those are told apart by message.

    Args:
        err: Exception raised by a boto3 client call.

    Returns:
        The error class; ``OTHER`` for anything unrecognised.
    """
    code = error_code(err)
    if code in _CODE_CLASSES:
        return _CODE_CLASSES[code]
    if code == ERR_VALIDATION:
        message = err.response.get("Error", {}).get("Message", "")
        if MSG_NO_UPDATES in message:
            return AWSErrorClass.NO_UPDATES
        if MSG_DOES_NOT_EXIST in message:
            return AWSErrorClass.NOT_FOUND
    return AWSErrorClass.OTHER


# ============================================================================
# Session and account
# ============================================================================

class CredentialIssuer:
    """Builds the provider session used for the whole suite."""

    def __init__(self, session_factory: Callable[..., Any] = boto3.session.Session) -> None:
        self._session_factory = session_factory

    def issue(self, region: str) -> Any:
        """Return a boto3 session for *region* with resolved credentials.

        Args:
            region: AWS region name.

        Raises:
            CredentialError: If no credentials can be resolved. Not retried.
        """
        try:
            session = self._session_factory(region_name=region)
            credentials = session.get_credentials()
        except BotoCoreError as err:
            raise CredentialError(f"Failed to resolve AWS configuration: {err}") from err
        if credentials is None:
            raise CredentialError("No AWS credentials found in the environment or shared config")
        console.print(f"[yellow]ℹ️  Running in region: {region}[/yellow]")
        return session


class AccountResolver:
    """Resolves the account behind a session."""

    def __init__(self, session: Any) -> None:
        self._sts = session.client("sts")

    def account_id(self) -> str:
        try:
            return self._sts.get_caller_identity()["Account"]
        except (ClientError, BotoCoreError) as err:
            raise CredentialError(f"Failed to resolve AWS account: {err}") from err


# ============================================================================
# Bootstrap stack
# ============================================================================

class IAMBootstrapper:
    """Reconciles the fixed-name CloudFormation stack holding IAM prerequisites."""

    def __init__(
        self,
        session: Any,
        template_builder: Callable[[str, str], dict] = bootstrap_template,
        waiter_delay: int = STACK_WAITER_DELAY_SECONDS,
    ) -> None:
        self._cfn = session.client("cloudformation")
        self._template_builder = template_builder
        self._waiter_config = {"Delay": waiter_delay, "MaxAttempts": STACK_WAITER_MAX_ATTEMPTS}

    def _stack_status(self, stack_name: str) -> str | None:
        try:
            stacks = self._cfn.describe_stacks(StackName=stack_name)["Stacks"]
        except ClientError as err:
            if classify_error(err) is AWSErrorClass.NOT_FOUND:
                return None
            raise
        if not stacks or stacks[0]["StackStatus"] == "DELETE_COMPLETE":
            return None
        return stacks[0]["StackStatus"]

    def _wait(self, waiter_name: str, stack_name: str) -> None:
        self._cfn.get_waiter(waiter_name).wait(StackName=stack_name, WaiterConfig=self._waiter_config)

    def _create(self, stack_name: str, body: str, capabilities: Sequence[str]) -> None:
        console.print(f"[yellow]   Creating stack '{stack_name}'[/yellow]")
        self._cfn.create_stack(StackName=stack_name, TemplateBody=body, Capabilities=list(capabilities))
        self._wait("stack_create_complete", stack_name)

    def _update(self, stack_name: str, body: str, capabilities: Sequence[str]) -> None:
        try:
            self._cfn.update_stack(StackName=stack_name, TemplateBody=body, Capabilities=list(capabilities))
        except ClientError as err:
            if classify_error(err) is AWSErrorClass.NO_UPDATES:
                console.print(f"[yellow]   Stack '{stack_name}' is up to date[/yellow]")
                return
            raise
        console.print(f"[yellow]   Updating stack '{stack_name}'[/yellow]")
        self._wait("stack_update_complete", stack_name)

    def reconcile(
        self,
        stack_name: str,
        account_id: str,
        partition: str = DEFAULT_PARTITION,
        capabilities: Sequence[str] = STACK_CAPABILITIES,
    ) -> None:
        """Create or update the bootstrap stack.

        A stack left in ``ROLLBACK_COMPLETE`` by an earlier failed create
        cannot be updated, so it is deleted and created again.

        Args:
            stack_name: CloudFormation stack name.
            account_id: Account the IAM resources are rendered for.
            partition: AWS partition.
            capabilities: CloudFormation capabilities to acknowledge.

        Raises:
            StackReconcileError: If the stack does not reach a complete state.
        """
        body = json.dumps(self._template_builder(account_id, partition))
        try:
            status = self._stack_status(stack_name)
            if status == "ROLLBACK_COMPLETE":
                self.delete(stack_name)
                status = None
            if status is None:
                self._create(stack_name, body, capabilities)
            else:
                self._update(stack_name, body, capabilities)
        except (ClientError, BotoCoreError) as err:
            raise StackReconcileError(f"Failed to reconcile stack '{stack_name}': {err}") from err

    def delete(self, stack_name: str) -> None:
        """Delete the stack and wait for it to go away. A missing stack is fine."""
        if self._stack_status(stack_name) is None:
            return
        self._cfn.delete_stack(StackName=stack_name)
        self._wait("stack_delete_complete", stack_name)


# ============================================================================
# Key pair and access key
# ============================================================================

class KeyPairProvisioner:
    """Ensures the named EC2 key pair exists."""

    def __init__(self, session: Any) -> None:
        self._ec2 = session.client("ec2")

    def ensure(self, key_name: str) -> None:
        """Create *key_name*; an existing key pair is the desired end state.

        Raises:
            KeyPairError: On any provider error other than a duplicate.
        """
        try:
            self._ec2.create_key_pair(KeyName=key_name)
            console.print(f"[green]✅ Key pair '{key_name}' created[/green]")
        except ClientError as err:
            if classify_error(err) is not AWSErrorClass.DUPLICATE:
                raise KeyPairError(f"Failed to create key pair '{key_name}': {err}") from err
            console.print(f"[yellow]   Key pair '{key_name}' already exists[/yellow]")
        except BotoCoreError as err:
            raise KeyPairError(f"Failed to create key pair '{key_name}': {err}") from err


class AccessKeyProvisioner:
    """Mints and revokes access keys for the bootstrap principal."""

    def __init__(self, session: Any) -> None:
        self._iam = session.client("iam")

    def mint(self, principal_name: str) -> AccessKey:
        """Create an access key for *principal_name*.

        Raises:
            AccessKeyError: If the principal is missing or key creation fails.
        """
        try:
            out = self._iam.create_access_key(UserName=principal_name)
        except (ClientError, BotoCoreError) as err:
            raise AccessKeyError(f"Failed to create access key for '{principal_name}': {err}") from err
        key = out.get("AccessKey")
        if not key:
            raise AccessKeyError(f"No access key returned for '{principal_name}'")
        return AccessKey(
            user_name=key["UserName"],
            access_key_id=key["AccessKeyId"],
            secret_access_key=key["SecretAccessKey"],
        )

    def revoke(self, key: AccessKey) -> None:
        self._iam.delete_access_key(UserName=key.user_name, AccessKeyId=key.access_key_id)

    def revoke_all(self, principal_name: str) -> int:
        """Delete every access key of *principal_name*.

        Used to clean up after an aborted run whose minted key was never
        recorded. A missing principal has no keys.

        Returns:
            Number of keys deleted.
        """
        try:
            listed = self._iam.list_access_keys(UserName=principal_name)["AccessKeyMetadata"]
        except ClientError as err:
            if classify_error(err) is AWSErrorClass.NOT_FOUND:
                return 0
            raise
        for meta in listed:
            self._iam.delete_access_key(UserName=principal_name, AccessKeyId=meta["AccessKeyId"])
        return len(listed)


@dataclass(frozen=True)
class AWSServices:
    """Provider adapters bound to one session."""

    accounts: AccountResolver
    iam: IAMBootstrapper
    key_pairs: KeyPairProvisioner
    access_keys: AccessKeyProvisioner


def aws_services(session: Any) -> AWSServices:
    """Build every provider adapter for *session*."""
    return AWSServices(
        accounts=AccountResolver(session),
        iam=IAMBootstrapper(session),
        key_pairs=KeyPairProvisioner(session),
        access_keys=AccessKeyProvisioner(session),
    )

