"""
EC2 Web Server Stack
Defines a single EC2 web server and the pipeline that delivers code to it

AWS Services Used:
- AWS IAM: Instance role for SSM and CodeDeploy
  Documentation: https://docs.aws.amazon.com/IAM/latest/UserGuide/introduction.html
- Amazon VPC / EC2: Network, security group and the web server instance
  Documentation: https://docs.aws.amazon.com/vpc/latest/userguide/what-is-amazon-vpc.html
- AWS CodePipeline: Source -> Build -> Deploy release pipeline
  Documentation: https://docs.aws.amazon.com/codepipeline/latest/userguide/welcome.html
- AWS CodeBuild: Test job run against the source checkout
  Documentation: https://docs.aws.amazon.com/codebuild/latest/userguide/welcome.html
- AWS CodeDeploy: In-place deployment to tagged EC2 instances
  Documentation: https://docs.aws.amazon.com/codedeploy/latest/userguide/welcome.html

Architecture Overview:
1. IAM role + VPC + security group
2. EC2 instance bootstrapped from assets/configure_amz_linux_sample_app.sh
3. CodePipeline pulls from GitHub, runs tests in CodeBuild
4. CodeDeploy ships the untouched source checkout to instances matching the tag set
"""

import logging
from pathlib import Path
from typing import Optional, Union

from aws_cdk import (
    Stack,
    SecretValue,
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_codebuild as codebuild,
    aws_codedeploy as codedeploy,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
)
from constructs import Construct

from .constants import (
    DEFAULT_SOURCE_REPO,
    DEFAULT_USER_DATA_PATH,
    DEPLOY_APPLICATION_NAME,
    DEPLOYMENT_GROUP_NAME,
    EC2_MANAGED_POLICIES,
    EC2_SERVICE_PRINCIPAL,
    HTTP_PORT,
    PIPELINE_NAME,
    PUBLIC_SUBNET_NAMES,
    SECURITY_GROUP_DESCRIPTION,
    STAGE_BUILD,
    STAGE_DEPLOY,
    STAGE_SOURCE,
    SUBNET_CIDR_MASK,
    WEB_APP_DEV_TAGS,
    GitHubRepo,
)
from .deploy_tags import DeploymentTargetTags
from .outputs import export_public_ip

logger = logging.getLogger(__name__)


def load_user_data(path: Union[str, Path]) -> str:
    """Read the bootstrap script verbatim. Raises FileNotFoundError if it is missing."""
    script = Path(path).read_text(encoding="utf-8")
    logger.info("Loaded %d bytes of user data from %s", len(script), path)
    return script


class Ec2CdkStack(Stack):
    """
    EC2 web server plus the CodePipeline that deploys to it.

    The bootstrap script is read before the stack joins the construct tree,
    so a missing script leaves ``scope`` untouched.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        user_data_path: Union[str, Path] = DEFAULT_USER_DATA_PATH,
        source_repo: GitHubRepo = DEFAULT_SOURCE_REPO,
        target_tags: DeploymentTargetTags = WEB_APP_DEV_TAGS,
        **kwargs,
    ) -> None:
        ec2_user_data = load_user_data(user_data_path)

        super().__init__(scope, construct_id, **kwargs)

        self.target_tags = target_tags

        # ========================================================================
        # IAM ROLE: EC2 Instance Role
        # ========================================================================
        # SSM for session access, CodeDeploy permissions for the deployment agent
        # Role documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_iam/Role.html
        self.ec2_role = iam.Role(
            self, "ec2Role",
            assumed_by=iam.ServicePrincipal(EC2_SERVICE_PRINCIPAL),
        )
        for policy_name in EC2_MANAGED_POLICIES:
            # ManagedPolicy documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_iam/ManagedPolicy.html
            self.ec2_role.add_managed_policy(
                iam.ManagedPolicy.from_aws_managed_policy_name(policy_name)
            )

        # ========================================================================
        # VPC: Two public subnet groups
        # ========================================================================
        # Only public subnets, so no NAT gateways are created
        # Vpc documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_ec2/Vpc.html
        self.vpc = ec2.Vpc(
            self, "main-vpc",
            subnet_configuration=[
                # SubnetConfiguration documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_ec2/SubnetConfiguration.html
                ec2.SubnetConfiguration(
                    name=subnet_name,
                    cidr_mask=SUBNET_CIDR_MASK,
                    subnet_type=ec2.SubnetType.PUBLIC,
                )
                for subnet_name in PUBLIC_SUBNET_NAMES
            ],
        )

        # ========================================================================
        # SECURITY GROUP: HTTP egress
        # ========================================================================
        # allow_all_outbound must stay False: with it set, CDK ignores explicit egress rules
        # SecurityGroup documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_ec2/SecurityGroup.html
        self.ec2_sg = ec2.SecurityGroup(
            self, "ec2-sg",
            vpc=self.vpc,
            description=SECURITY_GROUP_DESCRIPTION,
            allow_all_outbound=False,
        )
        self.ec2_sg.add_egress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(HTTP_PORT))

        # ========================================================================
        # EC2 INSTANCE: Web server
        # ========================================================================
        # Latest Amazon Linux 2 AMI, resolved through SSM at deploy time
        # AmazonLinuxImage documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_ec2/AmazonLinuxImage.html
        self.ami = ec2.AmazonLinuxImage(
            generation=ec2.AmazonLinuxGeneration.AMAZON_LINUX_2,
            cpu_type=ec2.AmazonLinuxCpuType.X86_64,
        )

        # Instance documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_ec2/Instance.html
        self.ec2_server = ec2.Instance(
            self, "ec2-server",
            vpc=self.vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            instance_type=ec2.InstanceType.of(ec2.InstanceClass.T2, ec2.InstanceSize.MICRO),
            machine_image=self.ami,
            role=self.ec2_role,
            security_group=self.ec2_sg,
        )

        # User data is appended after CDK's own "#!/bin/bash" line
        # UserData documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_ec2/UserData.html
        self.ec2_server.add_user_data(ec2_user_data)

        # CodeDeploy finds this instance through these tags, see deployment group below
        self.target_tags.apply_to(self.ec2_server)

        # OUTPUT: Public IP of the web server (reported, not fatal, if it can't be registered)
        self.public_ip_output = export_public_ip(self, self.ec2_server)

        # ========================================================================
        # CODEPIPELINE: Source -> Build -> Deploy
        # ========================================================================
        # cross_account_keys=False skips the KMS key CodePipeline creates for cross-account use
        # Pipeline documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_codepipeline/Pipeline.html
        self.code_pipeline = codepipeline.Pipeline(
            self, "python-web-app",
            pipeline_name=PIPELINE_NAME,
            cross_account_keys=False,
        )
        # Stages run in the order they are added
        source_stage = self.code_pipeline.add_stage(stage_name=STAGE_SOURCE)
        build_stage = self.code_pipeline.add_stage(stage_name=STAGE_BUILD)
        deploy_stage = self.code_pipeline.add_stage(stage_name=STAGE_DEPLOY)

        # SOURCE STAGE: GitHub checkout
        # OAuth token stored in AWS Secrets Manager, resolved at deploy time
        # GitHubSourceAction documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_codepipeline_actions/GitHubSourceAction.html
        self.source_output = codepipeline.Artifact()
        self.source_action = codepipeline_actions.GitHubSourceAction(
            action_name="GitHubSource",
            oauth_token=SecretValue.secrets_manager(source_repo.oauth_secret_name),
            owner=source_repo.owner,
            repo=source_repo.repo,
            branch=source_repo.branch,
            output=self.source_output,
        )
        source_stage.add_action(self.source_action)

        # BUILD STAGE: Run the application's tests
        # Uses the buildspec.yml checked into the application repository
        # PipelineProject documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_codebuild/PipelineProject.html
        python_test_project = codebuild.PipelineProject(
            self, "pythonTestProject",
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxBuildImage.AMAZON_LINUX_2_3,
            ),
        )

        self.python_test_output = codepipeline.Artifact()
        self.build_action = codepipeline_actions.CodeBuildAction(
            action_name="TestPythonApplication",
            project=python_test_project,
            input=self.source_output,
            outputs=[self.python_test_output],
        )
        build_stage.add_action(self.build_action)

        # DEPLOY STAGE: CodeDeploy to tagged EC2 instances
        # ServerDeploymentGroup documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_codedeploy/ServerDeploymentGroup.html
        deploy_application = codedeploy.ServerApplication(
            self, "pythonDeployApp",
            application_name=DEPLOY_APPLICATION_NAME,
        )

        self.deployment_group = codedeploy.ServerDeploymentGroup(
            self, "pythonAppDeployGrp",
            application=deploy_application,
            deployment_group_name=DEPLOYMENT_GROUP_NAME,
            # Installs the CodeDeploy agent on matching instances through SSM
            install_agent=True,
            ec2_instance_tags=self.target_tags.instance_tag_set(),
        )

        # The tests gate the release; the shipped artifact is the raw source checkout
        self.deploy_action = codepipeline_actions.CodeDeployServerDeployAction(
            action_name="PythonAppDeployment",
            input=self.source_output,
            deployment_group=self.deployment_group,
        )
        deploy_stage.add_action(self.deploy_action)

    @property
    def public_ip_error(self) -> Optional[str]:
        """Why the public IP output is missing, or None when it was registered."""
        return self.public_ip_output.error
