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

"""Tests for the AWS adapters, against moto where it models the API."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from capa_e2e.aws import (
    AccessKeyProvisioner,
    AccountResolver,
    AWSErrorClass,
    CredentialIssuer,
    IAMBootstrapper,
    KeyPairProvisioner,
    aws_services,
    classify_error,
)
from capa_e2e.constants import BOOTSTRAP_USER_NAME, KEY_PAIR_NAME, STACK_NAME
from capa_e2e.errors import (
    AccessKeyError,
    CredentialError,
    KeyPairError,
    StackReconcileError,
)

STACK = "capa-e2e-unit-stack"


def _client_error(code, message="", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def _queue_template(account_id, partition):
    """Small stand-in for the bootstrap template."""
    return {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Resources": {
            "Queue": {"Type": "AWS::SQS::Queue", "Properties": {"QueueName": f"capa-{account_id}"}},
        },
    }


def _mock_session(**clients):
    session = MagicMock()
    session.client.side_effect = lambda name: clients[name]
    return session


class TestClassifyError:
    @pytest.mark.parametrize("code,expected", [
        ("InvalidKeyPair.Duplicate", AWSErrorClass.DUPLICATE),
        ("EntityAlreadyExists", AWSErrorClass.DUPLICATE),
        ("NoSuchEntity", AWSErrorClass.NOT_FOUND),
        ("AccessDenied", AWSErrorClass.OTHER),
    ])
    def test_codes(self, code, expected):
        assert classify_error(_client_error(code)) is expected

    def test_validation_error_split_by_message(self):
        assert classify_error(
            _client_error("ValidationError", "No updates are to be performed.")) is AWSErrorClass.NO_UPDATES
        assert classify_error(
            _client_error("ValidationError", "Stack with id x does not exist")) is AWSErrorClass.NOT_FOUND
        assert classify_error(_client_error("ValidationError", "Template error")) is AWSErrorClass.OTHER

    def test_non_provider_error(self):
        assert classify_error(ValueError("boom")) is AWSErrorClass.OTHER


class TestCredentialIssuer:
    def test_issues_session_for_region(self, aws_credentials):
        session = CredentialIssuer().issue("eu-west-1")
        assert session.region_name == "eu-west-1"

    def test_missing_credentials_is_fatal(self):
        session = MagicMock()
        session.get_credentials.return_value = None
        issuer = CredentialIssuer(session_factory=lambda region_name: session)
        with pytest.raises(CredentialError):
            issuer.issue("us-east-1")


class TestAccountResolver:
    def test_resolves_moto_account(self, aws_session):
        assert AccountResolver(aws_session).account_id() == "123456789012"

    def test_error_is_credential_error(self):
        sts = MagicMock()
        sts.get_caller_identity.side_effect = _client_error("ExpiredToken")
        with pytest.raises(CredentialError):
            AccountResolver(_mock_session(sts=sts)).account_id()


class TestKeyPairProvisioner:
    def test_ensure_twice_leaves_one_key_pair(self, aws_session):
        provisioner = KeyPairProvisioner(aws_session)
        provisioner.ensure(KEY_PAIR_NAME)
        provisioner.ensure(KEY_PAIR_NAME)
        pairs = aws_session.client("ec2").describe_key_pairs(KeyNames=[KEY_PAIR_NAME])["KeyPairs"]
        assert len(pairs) == 1

    def test_other_errors_are_fatal(self):
        ec2 = MagicMock()
        ec2.create_key_pair.side_effect = _client_error("UnauthorizedOperation")
        with pytest.raises(KeyPairError):
            KeyPairProvisioner(_mock_session(ec2=ec2)).ensure(KEY_PAIR_NAME)

    def test_connection_failure_is_key_pair_error(self):
        ec2 = MagicMock()
        ec2.create_key_pair.side_effect = EndpointConnectionError(endpoint_url="https://ec2.us-east-1.amazonaws.com")
        with pytest.raises(KeyPairError):
            KeyPairProvisioner(_mock_session(ec2=ec2)).ensure(KEY_PAIR_NAME)


class TestIAMBootstrapper:
    def test_reconcile_twice_leaves_one_stack(self, aws_session):
        bootstrapper = IAMBootstrapper(aws_session, template_builder=_queue_template, waiter_delay=1)
        bootstrapper.reconcile(STACK, "123456789012")
        bootstrapper.reconcile(STACK, "123456789012")
        stacks = aws_session.client("cloudformation").describe_stacks(StackName=STACK)["Stacks"]
        assert len(stacks) == 1
        assert stacks[0]["StackStatus"] in ("CREATE_COMPLETE", "UPDATE_COMPLETE")

    def test_delete_removes_stack_and_tolerates_absence(self, aws_session):
        bootstrapper = IAMBootstrapper(aws_session, template_builder=_queue_template, waiter_delay=1)
        bootstrapper.reconcile(STACK, "123456789012")
        bootstrapper.delete(STACK)
        bootstrapper.delete(STACK)
        assert bootstrapper._stack_status(STACK) is None

    def test_no_updates_is_success(self):
        cfn = MagicMock()
        cfn.describe_stacks.return_value = {"Stacks": [{"StackStatus": "CREATE_COMPLETE"}]}
        cfn.update_stack.side_effect = _client_error("ValidationError", "No updates are to be performed.")
        IAMBootstrapper(_mock_session(cloudformation=cfn), template_builder=_queue_template).reconcile(
            STACK_NAME, "123456789012")
        cfn.get_waiter.assert_not_called()

    def test_rollback_complete_stack_is_recreated(self):
        cfn = MagicMock()
        cfn.describe_stacks.return_value = {"Stacks": [{"StackStatus": "ROLLBACK_COMPLETE"}]}
        IAMBootstrapper(_mock_session(cloudformation=cfn), template_builder=_queue_template).reconcile(
            STACK_NAME, "123456789012")
        cfn.delete_stack.assert_called_once_with(StackName=STACK_NAME)
        cfn.create_stack.assert_called_once()
        cfn.update_stack.assert_not_called()
        waiters = [c.args[0] for c in cfn.get_waiter.call_args_list]
        assert waiters == ["stack_delete_complete", "stack_create_complete"]

    def test_create_passes_capabilities(self):
        cfn = MagicMock()
        cfn.describe_stacks.side_effect = _client_error("ValidationError", f"Stack with id {STACK_NAME} does not exist")
        IAMBootstrapper(_mock_session(cloudformation=cfn), template_builder=_queue_template).reconcile(
            STACK_NAME, "123456789012")
        kwargs = cfn.create_stack.call_args.kwargs
        assert kwargs["Capabilities"] == ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]
        assert '"capa-123456789012"' in kwargs["TemplateBody"]

    def test_provider_failure_is_fatal(self):
        cfn = MagicMock()
        cfn.describe_stacks.side_effect = _client_error("AccessDenied")
        with pytest.raises(StackReconcileError):
            IAMBootstrapper(_mock_session(cloudformation=cfn)).reconcile(STACK_NAME, "123456789012")


class TestAccessKeyProvisioner:
    def test_mint_and_revoke(self, aws_session):
        iam = aws_session.client("iam")
        iam.create_user(UserName=BOOTSTRAP_USER_NAME)
        provisioner = AccessKeyProvisioner(aws_session)

        key = provisioner.mint(BOOTSTRAP_USER_NAME)
        assert key.user_name == BOOTSTRAP_USER_NAME
        assert key.access_key_id
        assert key.secret_access_key
        assert len(iam.list_access_keys(UserName=BOOTSTRAP_USER_NAME)["AccessKeyMetadata"]) == 1

        provisioner.revoke(key)
        assert iam.list_access_keys(UserName=BOOTSTRAP_USER_NAME)["AccessKeyMetadata"] == []

    def test_unknown_principal_is_fatal(self, aws_session):
        with pytest.raises(AccessKeyError):
            AccessKeyProvisioner(aws_session).mint("no-such-user")

    def test_connection_failure_is_access_key_error(self):
        iam = MagicMock()
        iam.create_access_key.side_effect = EndpointConnectionError(endpoint_url="https://iam.amazonaws.com")
        with pytest.raises(AccessKeyError):
            AccessKeyProvisioner(_mock_session(iam=iam)).mint(BOOTSTRAP_USER_NAME)

    def test_revoke_all(self, aws_session):
        aws_session.client("iam").create_user(UserName=BOOTSTRAP_USER_NAME)
        provisioner = AccessKeyProvisioner(aws_session)
        provisioner.mint(BOOTSTRAP_USER_NAME)
        provisioner.mint(BOOTSTRAP_USER_NAME)
        assert provisioner.revoke_all(BOOTSTRAP_USER_NAME) == 2
        assert provisioner.revoke_all(BOOTSTRAP_USER_NAME) == 0
        assert provisioner.revoke_all("no-such-user") == 0


def test_aws_services_binds_one_session(aws_session):
    services = aws_services(aws_session)
    assert services.accounts.account_id() == "123456789012"
    assert isinstance(services.iam, IAMBootstrapper)
