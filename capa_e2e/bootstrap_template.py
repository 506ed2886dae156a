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

"""CloudFormation template for the IAM resources the controllers need."""

from __future__ import annotations

from capa_e2e.constants import (
    BOOTSTRAP_USER_NAME,
    CONTROL_PLANE_ROLE_NAME,
    CONTROLLERS_POLICY_NAME,
    NODES_ROLE_NAME,
)

POLICY_VERSION = "2012-10-17"

_CONTROLLER_ACTIONS = [
    "ec2:AllocateAddress",
    "ec2:AssociateRouteTable",
    "ec2:AttachInternetGateway",
    "ec2:AuthorizeSecurityGroupIngress",
    "ec2:CreateInternetGateway",
    "ec2:CreateNatGateway",
    "ec2:CreateRoute",
    "ec2:CreateRouteTable",
    "ec2:CreateSecurityGroup",
    "ec2:CreateSubnet",
    "ec2:CreateTags",
    "ec2:CreateVpc",
    "ec2:ModifyVpcAttribute",
    "ec2:DeleteInternetGateway",
    "ec2:DeleteNatGateway",
    "ec2:DeleteRouteTable",
    "ec2:DeleteSecurityGroup",
    "ec2:DeleteSubnet",
    "ec2:DeleteTags",
    "ec2:DeleteVpc",
    "ec2:Describe*",
    "ec2:DetachInternetGateway",
    "ec2:DisassociateRouteTable",
    "ec2:DisassociateAddress",
    "ec2:ModifyInstanceAttribute",
    "ec2:ModifySubnetAttribute",
    "ec2:ReleaseAddress",
    "ec2:RevokeSecurityGroupIngress",
    "ec2:RunInstances",
    "ec2:TerminateInstances",
    "elasticloadbalancing:*",
    "tag:GetResources",
    "secretsmanager:CreateSecret",
    "secretsmanager:DeleteSecret",
    "secretsmanager:TagResource",
]

_CONTROL_PLANE_ACTIONS = [
    "autoscaling:DescribeAutoScalingGroups",
    "autoscaling:DescribeLaunchConfigurations",
    "autoscaling:DescribeTags",
    "ec2:Describe*",
    "ec2:CreateSecurityGroup",
    "ec2:CreateTags",
    "ec2:CreateVolume",
    "ec2:ModifyInstanceAttribute",
    "ec2:ModifyVolume",
    "ec2:AttachVolume",
    "ec2:AuthorizeSecurityGroupIngress",
    "ec2:CreateRoute",
    "ec2:DeleteRoute",
    "ec2:DeleteSecurityGroup",
    "ec2:DeleteVolume",
    "ec2:DetachVolume",
    "ec2:RevokeSecurityGroupIngress",
    "elasticloadbalancing:*",
    "iam:CreateServiceLinkedRole",
    "kms:DescribeKey",
]

_NODE_ACTIONS = [
    "ec2:DescribeInstances",
    "ec2:DescribeRegions",
    "ecr:GetAuthorizationToken",
    "ecr:BatchCheckLayerAvailability",
    "ecr:GetDownloadUrlForLayer",
    "ecr:GetRepositoryPolicy",
    "ecr:DescribeRepositories",
    "ecr:ListImages",
    "ecr:BatchGetImage",
    "secretsmanager:DeleteSecret",
    "secretsmanager:GetSecretValue",
]


def _ec2_assume_role_policy(partition: str) -> dict:
    service = "ec2.amazonaws.com.cn" if partition == "aws-cn" else "ec2.amazonaws.com"
    return {
        "Version": POLICY_VERSION,
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Service": [service]},
            "Action": ["sts:AssumeRole"],
        }],
    }


def _allow(actions: list[str], resources: list[str]) -> dict:
    return {"Effect": "Allow", "Action": actions, "Resource": resources}


def _role_with_profile(
    logical_id: str, role_name: str, partition: str, actions: list[str],
) -> tuple[dict, dict]:
    role = {
        "Type": "AWS::IAM::Role",
        "Properties": {
            "RoleName": role_name,
            "AssumeRolePolicyDocument": _ec2_assume_role_policy(partition),
            "Policies": [{
                "PolicyName": role_name,
                "PolicyDocument": {"Version": POLICY_VERSION, "Statement": [_allow(actions, ["*"])]},
            }],
        },
    }
    profile = {
        "Type": "AWS::IAM::InstanceProfile",
        "DependsOn": [logical_id],
        "Properties": {"InstanceProfileName": role_name, "Roles": [role_name]},
    }
    return role, profile


def bootstrap_template(account_id: str, partition: str) -> dict:
    """Render the bootstrap stack template.

    The controllers policy lets the provider controller pass the control
    plane and node roles, so their ARNs are rendered for *account_id* in
    *partition* rather than left to intrinsic functions.

    Args:
        account_id: AWS account the roles live in.
        partition: AWS partition (``aws``, ``aws-cn``, ``aws-us-gov``).

    Returns:
        CloudFormation template as a dictionary ready for JSON serialization.
    """
    control_plane_role, control_plane_profile = _role_with_profile(
        "AWSIAMRoleControlPlane", CONTROL_PLANE_ROLE_NAME, partition, _CONTROL_PLANE_ACTIONS)
    nodes_role, nodes_profile = _role_with_profile(
        "AWSIAMRoleNodes", NODES_ROLE_NAME, partition, _NODE_ACTIONS)

    pass_role_resources = [
        f"arn:{partition}:iam::{account_id}:role/{CONTROL_PLANE_ROLE_NAME}",
        f"arn:{partition}:iam::{account_id}:role/{NODES_ROLE_NAME}",
    ]
    controllers_policy = {
        "Type": "AWS::IAM::ManagedPolicy",
        "DependsOn": ["AWSIAMUserBootstrapper", "AWSIAMRoleControlPlane"],
        "Properties": {
            "ManagedPolicyName": CONTROLLERS_POLICY_NAME,
            "Description": "For the Kubernetes Cluster API Provider AWS Controllers",
            "PolicyDocument": {
                "Version": POLICY_VERSION,
                "Statement": [
                    _allow(_CONTROLLER_ACTIONS, ["*"]),
                    _allow(["iam:PassRole"], pass_role_resources),
                    _allow(
                        ["iam:CreateServiceLinkedRole"],
                        [f"arn:{partition}:iam::*:role/aws-service-role/"
                         "elasticloadbalancing.amazonaws.com/AWSServiceRoleForElasticLoadBalancing"],
                    ),
                ],
            },
            "Users": [BOOTSTRAP_USER_NAME],
            "Roles": [CONTROL_PLANE_ROLE_NAME],
        },
    }

    return {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Description": "IAM prerequisites for the cluster-api-provider-aws e2e suite",
        "Resources": {
            "AWSIAMUserBootstrapper": {
                "Type": "AWS::IAM::User",
                "Properties": {"UserName": BOOTSTRAP_USER_NAME},
            },
            "AWSIAMRoleControlPlane": control_plane_role,
            "AWSIAMInstanceProfileControlPlane": control_plane_profile,
            "AWSIAMRoleNodes": nodes_role,
            "AWSIAMInstanceProfileNodes": nodes_profile,
            "AWSIAMManagedPolicyControllers": controllers_policy,
        },
    }
