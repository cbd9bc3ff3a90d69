# lambdas/review_change/app.py
import json
from functools import lru_cache
from typing import Any, Dict

import boto3

# Import helper classes and models from other files in the same directory
from bedrock_reviewer import BedrockReviewer
from codecommit_fetcher import CodeCommitFetcher, RetrievalError
from event_parser import parse_change_notification
from models import ReviewSettings, get_settings


@lru_cache(maxsize=1)
def get_clients():
    """
    Builds the CodeCommit and Bedrock Runtime clients once per container so
    warm invocations reuse them.
    """
    settings = get_settings()
    codecommit_client = boto3.client("codecommit", region_name=settings.aws_region)
    bedrock_client = boto3.client(service_name="bedrock-runtime", region_name=settings.bedrock_region)
    return codecommit_client, bedrock_client


def review_change(event: Dict[str, Any], codecommit_client, bedrock_client,
                  settings: ReviewSettings) -> Dict[str, Any]:
    """
    Runs one review: parse the notification, retrieve the changed files,
    ask the model for a review and map its answer to a response dict.
    """
    # Parse the notification (First step). A malformed event fails the invocation.
    notification = parse_change_notification(event)
    repository_name = notification.repository_name or settings.repository_name

    # Retrieve the changes (Second step)
    fetcher = CodeCommitFetcher(codecommit_client, repository_name, max_file_bytes=settings.max_file_bytes)
    before_commit_id = notification.before_commit_id if settings.compare_with_before_commit else None
    retrieval = fetcher.collect_changes(notification.after_commit_id, before_commit_id)

    if retrieval.error and settings.abort_on_retrieval_error:
        raise RetrievalError(f"Could not list changes for commit {notification.after_commit_id}: {retrieval.error}")
    if retrieval.ok:
        print(f"Retrieved {len(retrieval.contents)} file(s) for review.")
    elif retrieval.partial_failure:
        print(f"WARNING: {len(retrieval.failures)} file(s) could not be fetched and are left out of the review.")

    # Ask the model for a review (Third step)
    reviewer = BedrockReviewer(
        bedrock_client,
        model_id=settings.bedrock_model_id,
        inference_config=settings.inference_config(),
        prompt_path=settings.review_prompt_path,
    )
    conversation = reviewer.build_conversation(notification, retrieval, repository_name, before_commit_id)
    result = reviewer.invoke(conversation)

    if result.succeeded:
        print("Review finished successfully.")
    else:
        print(f"ERROR: Review failed with status {result.status_code}: {result.body}")
    return result.to_response()


def handler(event: Dict[str, Any], context: object) -> Dict[str, Any]:
    """
    Main Lambda handler, triggered by the SNS topic the repository
    notification rule publishes to.
    """
    print(f"Received event: {json.dumps(event)}")
    codecommit_client, bedrock_client = get_clients()
    return review_change(event, codecommit_client, bedrock_client, get_settings())
