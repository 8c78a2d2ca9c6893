"""
Tag contract shared by the EC2 instance and the CodeDeploy deployment group.

The deployment group selects its targets by exact tag match rather than by
holding a reference to the instance. Both sides read their tags from one
DeploymentTargetTags value so the two can't drift apart; a mismatch would
leave the Deploy stage targeting zero instances.

Tags documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/Tags.html
InstanceTagSet documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_codedeploy/InstanceTagSet.html
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

from aws_cdk import Tags, aws_codedeploy as codedeploy
from constructs import IConstruct


@dataclass(frozen=True)
class DeploymentTargetTags:
    items: Tuple[Tuple[str, str], ...]

    @classmethod
    def of(cls, tags: Mapping[str, str]) -> "DeploymentTargetTags":
        if not tags:
            raise ValueError("a deployment target needs at least one tag")
        return cls(items=tuple(tags.items()))

    def as_dict(self) -> Dict[str, str]:
        return dict(self.items)

    def apply_to(self, scope: IConstruct) -> None:
        """Tag ``scope`` (and every taggable construct beneath it)."""
        for key, value in self.items:
            Tags.of(scope).add(key, value)

    def instance_tag_set(self) -> codedeploy.InstanceTagSet:
        """Selector with all tags in a single CodeDeploy tag group."""
        return codedeploy.InstanceTagSet(
            {key: [value] for key, value in self.items}
        )
