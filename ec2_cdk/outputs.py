"""Stack outputs for the EC2 web server."""

import logging
from dataclasses import dataclass
from typing import Optional

from aws_cdk import Annotations, CfnOutput, Stack, aws_ec2 as ec2

from .constants import PUBLIC_IP_OUTPUT_ID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutputResult:
    """Outcome of registering a stack output: the output, or why it is missing."""

    output: Optional[CfnOutput] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.output is not None


def export_public_ip(
    stack: Stack,
    instance: ec2.Instance,
    output_id: str = PUBLIC_IP_OUTPUT_ID,
) -> OutputResult:
    """
    Export the instance's public IP address as a CloudFormation output.

    A construct error while registering the output does not abort the stack;
    it is returned in the result, logged, and attached to the stack as a
    warning annotation so it shows up in ``cdk synth``.

    CfnOutput documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/CfnOutput.html
    Annotations documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/Annotations.html
    """
    try:
        output = CfnOutput(
            stack, output_id,
            value=instance.instance_public_ip,
            description="Public IP address of the web server instance",
        )
    except RuntimeError as e:
        # jsii re-raises construct errors from the JS side as RuntimeError
        reason = f"Public IP output '{output_id}' not registered: {e}"
        logger.warning(reason)
        Annotations.of(stack).add_warning_v2("ec2-cdk:public-ip-output", reason)
        return OutputResult(error=reason)

    return OutputResult(output=output)
