import argparse
import json
import os
import sys
from datetime import datetime, timezone

import boto3
from dotenv import load_dotenv

# The Lambda sources import each other by module name, as they do in the deployed package
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambdas", "review_change"))
from app import review_change
from models import get_settings

# Load environment variables from a .env file for local testing
load_dotenv()


def create_sns_event(repository_name: str, after_commit_id: str, before_commit_id: str = None,
                     pull_request_id: str = "1") -> dict:
    """
    Builds an SNS event shaped like the one a CodeCommit notification rule
    delivers to the review Lambda.
    """
    notification = {
        "account": "000000000000",
        "detailType": "CodeCommit Pull Request State Change",
        "region": os.environ.get("AWS_REGION", "us-east-1"),
        "source": "aws.codecommit",
        "time": datetime.now(timezone.utc).isoformat(),
        "resources": [f"arn:aws:codecommit:us-east-1:000000000000:{repository_name}"],
        "detail": {
            "event": "pullRequestSourceBranchUpdated",
            "repositoryNames": [repository_name],
            "pullRequestId": pull_request_id,
            "afterCommitId": after_commit_id,
        },
    }
    if before_commit_id:
        notification["detail"]["beforeCommitId"] = before_commit_id

    return {
        "Records": [
            {
                "EventSource": "aws:sns",
                "Sns": {
                    "Type": "Notification",
                    "Timestamp": notification["time"],
                    "Message": json.dumps(notification),
                },
            }
        ]
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a review for a commit against the real AWS services.")
    parser.add_argument("commit", help="Commit id to review (afterCommitId)")
    parser.add_argument("--before", help="Commit id to compare against (beforeCommitId)")
    parser.add_argument("--repository", help="Repository name, defaults to REPOSITORY_NAME")
    parser.add_argument("--dry-run", action="store_true", help="Only print the SNS event that would be sent")
    args = parser.parse_args(argv)

    repository_name = args.repository or os.environ.get("REPOSITORY_NAME")
    if not repository_name:
        print("❌ ERROR: Pass --repository or set REPOSITORY_NAME in a .env file.")
        return 1

    event = create_sns_event(repository_name, args.commit, args.before)
    if args.dry_run:
        print(json.dumps(event, indent=2))
        return 0

    os.environ.setdefault("REPOSITORY_NAME", repository_name)
    settings = get_settings()
    codecommit_client = boto3.client("codecommit", region_name=settings.aws_region)
    bedrock_client = boto3.client(service_name="bedrock-runtime", region_name=settings.bedrock_region)

    print(f"--- Reviewing {repository_name}@{args.commit} with {settings.bedrock_model_id} ---")
    response = review_change(event, codecommit_client, bedrock_client, settings)
    print(f"Status Code: {response['statusCode']}")
    print(response["body"])
    return 0 if response["statusCode"] == 200 else 2


if __name__ == "__main__":
    sys.exit(main())
