"""Shared constants for the EC2 web server stack & its delivery pipeline."""

from dataclasses import dataclass
from pathlib import Path

from .deploy_tags import DeploymentTargetTags

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Bootstrap script embedded as instance user data
DEFAULT_USER_DATA_PATH = PROJECT_ROOT / "assets" / "configure_amz_linux_sample_app.sh"

# IAM
EC2_SERVICE_PRINCIPAL = "ec2.amazonaws.com"
EC2_MANAGED_POLICIES = (
    "AmazonSSMManagedInstanceCore",
    "service-role/AmazonEC2RoleforAWSCodeDeploy",
)

# Networking
SUBNET_CIDR_MASK = 24
PUBLIC_SUBNET_NAMES = ("pub001", "pub002")
HTTP_PORT = 80
SECURITY_GROUP_DESCRIPTION = "Allow HTTP traffic to ec2 server"

# Tag contract between the EC2 instance and the CodeDeploy deployment group
WEB_APP_DEV_TAGS = DeploymentTargetTags.of({"app-name": "web-app", "stage": "dev"})

# Outputs
PUBLIC_IP_OUTPUT_ID = "IP addr"

# Pipeline
PIPELINE_NAME = "python-web-app"
STAGE_SOURCE = "Source"
STAGE_BUILD = "Build"
STAGE_DEPLOY = "Deploy"

# CodeDeploy
DEPLOY_APPLICATION_NAME = "pythonWebApp"
DEPLOYMENT_GROUP_NAME = "pythonAppDeployGrp"


@dataclass(frozen=True)
class GitHubRepo:
    """Coordinates of the application repository pulled by the Source stage."""

    owner: str
    repo: str
    branch: str = "main"
    # Secrets Manager secret holding the GitHub OAuth token
    oauth_secret_name: str = "github-oauth-token"


DEFAULT_SOURCE_REPO = GitHubRepo(owner="pgandla", repo="python-web-app")
