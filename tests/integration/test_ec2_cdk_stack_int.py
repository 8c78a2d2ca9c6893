"""
Integration Tests for the EC2 Web Server Stack
Checks the deployed stack through the CloudFormation and EC2 APIs

Test Level: Integration Testing
- Requires deployed infrastructure (skipped otherwise)
- Verifies the public IP output and the CodeDeploy tag contract against live resources

AWS Services Tested:
- AWS CloudFormation: Stack outputs and resources
  Documentation: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/cloudformation.html
- Amazon EC2: Instance lookup by tag filter
  Documentation: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/ec2.html
"""

import boto3
import pytest
from botocore.exceptions import BotoCoreError, ClientError
from ec2_cdk.constants import WEB_APP_DEV_TAGS

STACK_NAME = 'Ec2CdkStack'


@pytest.fixture(scope='module')
def cloudformation():
    try:
        return boto3.client('cloudformation')
    except BotoCoreError as e:
        pytest.skip(f"No AWS configuration available: {e}")


@pytest.fixture(scope='module')
def ec2():
    return boto3.client('ec2')


@pytest.fixture(scope='module')
def stack_description(cloudformation):
    """Describe the deployed stack, or skip when it isn't deployed"""
    try:
        response = cloudformation.describe_stacks(StackName=STACK_NAME)
    except (BotoCoreError, ClientError) as e:
        pytest.skip(f"Stack not found or not deployed: {e}")
    return response['Stacks'][0]


@pytest.fixture(scope='module')
def instance_id(cloudformation, stack_description):
    """Physical ID of the web server instance created by the stack"""
    resources = cloudformation.describe_stack_resources(StackName=STACK_NAME)['StackResources']
    instances = [r for r in resources if r['ResourceType'] == 'AWS::EC2::Instance']
    assert len(instances) == 1
    return instances[0]['PhysicalResourceId']


def test_public_ip_output_present(stack_description, instance_id, ec2):
    """The IPaddr output matches the instance's current public address"""
    outputs = {o['OutputKey']: o['OutputValue'] for o in stack_description.get('Outputs', [])}
    assert 'IPaddr' in outputs

    reservations = ec2.describe_instances(InstanceIds=[instance_id])['Reservations']
    instance = reservations[0]['Instances'][0]
    assert instance.get('PublicIpAddress') == outputs['IPaddr']


def test_tag_selector_finds_stack_instance(instance_id, ec2):
    """
    Filtering by the deployment tags (the way CodeDeploy selects targets)
    must return the stack's instance
    """
    filters = [
        {'Name': f'tag:{key}', 'Values': [value]}
        for key, value in WEB_APP_DEV_TAGS.as_dict().items()
    ]
    filters.append({'Name': 'instance-state-name', 'Values': ['pending', 'running']})

    reservations = ec2.describe_instances(Filters=filters)['Reservations']
    found = {i['InstanceId'] for r in reservations for i in r['Instances']}
    assert instance_id in found
