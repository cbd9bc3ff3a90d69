from pathlib import Path

import yaml
from aws_cdk import (
    Stack,
    Duration,
    BundlingOptions,
    RemovalPolicy,
    aws_codebuild as codebuild,
    aws_codecommit as codecommit,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_lambda_event_sources as lambda_event_sources,
    aws_logs as logs,
    aws_sns as sns,
    CfnOutput
)
from constructs import Construct

PROJECT_ROOT = Path(__file__).resolve().parent.parent
REVIEW_LAMBDA_DIR = PROJECT_ROOT / "lambdas" / "review_change"
BUILDSPEC_PATH = PROJECT_ROOT / "pipeline" / "build" / "buildspec.yml"

DEFAULT_MODEL_ID = "anthropic.claude-3-sonnet-20240229-v1:0"


def load_buildspec(path: Path = BUILDSPEC_PATH) -> dict:
    """Reads the CodeBuild build specification from the pipeline folder."""
    with open(path, 'r') as f:
        return yaml.safe_load(f)


class CodeReviewStack(Stack):
    '''
    CDK stack for the pull request review pipeline.
    A CodeCommit repository publishes pull request events to an SNS topic. A Lambda function subscribed
    to the topic fetches the changed files and asks a Bedrock model to review them.
    The same repository feeds a two stage CodePipeline (Source -> Build).
    '''

    def __init__(self, scope: Construct, construct_id: str, resource_prefix: str = "code-review",
                 bedrock_model_id: str = DEFAULT_MODEL_ID, bedrock_region: str = "us-east-1", **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # === SNS ===
        self.topic = sns.Topic(self, "ReviewTopic",
            topic_name=f"{resource_prefix}-topic",
        )

        # === CodeCommit ===
        # Seed the repository with the review Lambda sources on the main branch
        self.repository = codecommit.Repository(self, "Repository",
            repository_name=f"{resource_prefix}-repository",
            code=codecommit.Code.from_directory(str(REVIEW_LAMBDA_DIR), "main"),
        )
        self.repository.notify_on("notify", self.topic,
            notification_rule_name=f"{resource_prefix}-repository-notify",
            events=[
                codecommit.RepositoryNotificationEvents.PULL_REQUEST_COMMENT,
                codecommit.RepositoryNotificationEvents.PULL_REQUEST_CREATED,
                codecommit.RepositoryNotificationEvents.PULL_REQUEST_SOURCE_UPDATED,
            ],
        )

        source_output = codepipeline.Artifact()
        source_action = codepipeline_actions.CodeCommitSourceAction(
            action_name="CodeCommit",
            repository=self.repository,
            branch="main",
            output=source_output,
        )

        # === CodeBuild ===
        self.build_project = codebuild.Project(self, "BuildProject",
            project_name=f"{resource_prefix}-build",
            source=codebuild.Source.code_commit(repository=self.repository),
            build_spec=codebuild.BuildSpec.from_object_to_yaml(load_buildspec()),
        )

        build_output = codepipeline.Artifact()
        build_action = codepipeline_actions.CodeBuildAction(
            action_name="CodeBuild",
            project=self.build_project,
            input=source_output,
            outputs=[build_output],
        )

        # === Pipeline ===
        self.pipeline = codepipeline.Pipeline(self, "Pipeline",
            pipeline_name=f"{resource_prefix}-pipeline",
            cross_account_keys=False,
            pipeline_type=codepipeline.PipelineType.V2,
            stages=[
                codepipeline.StageProps(stage_name="Source", actions=[source_action]),
                codepipeline.StageProps(stage_name="Build", actions=[build_action]),
            ],
        )

        # === IAM ===
        # Read-only access to the repository; the function never writes to it
        self.review_function_role = iam.Role(self, "ReviewFunctionRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
        )
        for policy_name in (
            "service-role/AWSLambdaBasicExecutionRole",
            "AmazonBedrockFullAccess",
            "AWSCodeCommitReadOnly",
        ):
            self.review_function_role.add_managed_policy(iam.ManagedPolicy.from_aws_managed_policy_name(policy_name))

        # === Logs ===
        self.review_function_logs = logs.LogGroup(self, "ReviewFunctionLogs",
            log_group_name=f"/aws/lambda/{resource_prefix}-review-fn",
            retention=logs.RetentionDays.ONE_DAY,
            removal_policy=RemovalPolicy.DESTROY,
        )

        # === Lambda ===
        self.review_function = _lambda.Function(self, "ReviewFunction",
            function_name=f"{resource_prefix}-review-fn",
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=_lambda.Code.from_asset(str(REVIEW_LAMBDA_DIR),
                bundling=BundlingOptions(
                    image=_lambda.Runtime.PYTHON_3_12.bundling_image,
                    command=["bash", "-c", "pip install -r requirements.txt -t /asset-output && cp -au . /asset-output"],
                ),
            ),
            handler="app.handler",
            role=self.review_function_role,
            timeout=Duration.seconds(60),
            log_group=self.review_function_logs,
            environment={
                "REPOSITORY_NAME": self.repository.repository_name,
                "BEDROCK_MODEL_ID": bedrock_model_id,
                "BEDROCK_REGION": bedrock_region,
            },
        )
        # Empty filter policy: every notification on the topic triggers a review
        self.review_function.add_event_source(lambda_event_sources.SnsEventSource(self.topic, filter_policy={}))

        # === Outputs ===
        CfnOutput(self, "RepositoryCloneUrl", value=self.repository.repository_clone_url_http)
        CfnOutput(self, "ReviewTopicArn", value=self.topic.topic_arn)
        CfnOutput(self, "PipelineName", value=self.pipeline.pipeline_name)
        CfnOutput(self, "ReviewFunctionName", value=self.review_function.function_name)
