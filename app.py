#!/usr/bin/env python3
import logging
import os
import aws_cdk as cdk
from ec2_cdk.ec2_cdk_stack import Ec2CdkStack

# Synthesis-time logging (user data loading, output registration problems)
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize CDK application
# The App is the root construct that contains all stacks
# Documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/App.html
app = cdk.App()

# Create the EC2 web server + delivery pipeline stack
# Documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/Stack.html
Ec2CdkStack(
    app,
    "Ec2CdkStack",
    description="EC2 web server with a GitHub -> CodeBuild -> CodeDeploy pipeline",
    env=cdk.Environment(
        # Account and region are retrieved from environment variables or AWS CLI config
        # Documentation: https://docs.aws.amazon.com/cdk/v2/guide/environments.html
        account=os.getenv('CDK_DEFAULT_ACCOUNT'),
        region=os.getenv('CDK_DEFAULT_REGION', 'us-east-1')
    )
)

# Synthesize CloudFormation templates
# This generates JSON template files in the cdk.out directory
# Documentation: https://docs.aws.amazon.com/cdk/v2/guide/apps.html#apps_synth
app.synth()
