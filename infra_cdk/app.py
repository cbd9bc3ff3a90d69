#!/usr/bin/env python3
import aws_cdk as cdk
from aws_cdk import Aspects
from cdk_nag import AwsSolutionsChecks, NagSuppressions

from infra_cdk.code_review_stack import CodeReviewStack

app = cdk.App()
stack = CodeReviewStack(app, "CodeReviewStack",
    resource_prefix=app.node.try_get_context("resource_prefix") or "code-review",
)

# Add AWS Solutions checks for best practices
Aspects.of(app).add(AwsSolutionsChecks())
NagSuppressions.add_stack_suppressions(stack, [
    {"id": "AwsSolutions-IAM4", "reason": "The review function uses the AWS managed Lambda, Bedrock and CodeCommit read-only policies."},
    {"id": "AwsSolutions-IAM5", "reason": "Pipeline and build roles are generated by CDK with scoped wildcards on their own artifacts."},
    {"id": "AwsSolutions-SNS2", "reason": "Notifications only carry commit metadata."},
    {"id": "AwsSolutions-SNS3", "reason": "The topic is only published to by CodeStar Notifications."},
    {"id": "AwsSolutions-S1", "reason": "Pipeline artifact bucket access logs are not needed for this pipeline."},
    {"id": "AwsSolutions-L1", "reason": "The runtime is pinned to the Python version the review function is tested on."},
    {"id": "AwsSolutions-CB4", "reason": "Build artifacts are encrypted with the default S3 managed key."},
])

app.synth()
