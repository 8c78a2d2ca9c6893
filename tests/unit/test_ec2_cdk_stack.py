import aws_cdk as core
import aws_cdk.assertions as assertions
import pytest
from ec2_cdk.ec2_cdk_stack import Ec2CdkStack

@pytest.fixture
def stack():
    app = core.App()
    stack = Ec2CdkStack(app, "ec2-cdk")
    return stack

@pytest.fixture
def template(stack):
    return assertions.Template.from_stack(stack)

def test_single_instance_created(template):
    """Test that exactly one EC2 instance is created"""
    template.resource_count_is("AWS::EC2::Instance", 1)

def test_instance_properties(template):
    """Test the instance is a t2.micro"""
    template.has_resource_properties("AWS::EC2::Instance", {
        "InstanceType": "t2.micro"
    })

def test_vpc_created(template):
    """Test a single VPC without NAT gateways"""
    template.resource_count_is("AWS::EC2::VPC", 1)
    template.resource_count_is("AWS::EC2::NatGateway", 0)

def test_security_group_created(template):
    """Test the web server security group"""
    template.has_resource_properties("AWS::EC2::SecurityGroup", {
        "GroupDescription": "Allow HTTP traffic to ec2 server"
    })

def test_pipeline_created(template):
    """Test the CodePipeline exists with its name"""
    template.has_resource_properties("AWS::CodePipeline::Pipeline", {
        "Name": "python-web-app"
    })

def test_codedeploy_application_created(template):
    """Test CodeDeploy server application"""
    template.has_resource_properties("AWS::CodeDeploy::Application", {
        "ApplicationName": "pythonWebApp",
        "ComputePlatform": "Server"
    })

def test_codebuild_project_created(template):
    """Test the CodeBuild test project"""
    template.resource_count_is("AWS::CodeBuild::Project", 1)
