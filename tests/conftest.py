import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from models import ReviewSettings

AFTER_COMMIT_ID = "9f2c1e7b0a3d4c5e6f708192a3b4c5d6e7f80912"
BEFORE_COMMIT_ID = "1a2b3c4d5e6f708192a3b4c5d6e7f8091a2b3c4d"


def make_notification(**detail_overrides) -> dict:
    """A CodeCommit pull request notification as published by a notification rule."""
    detail = {
        "event": "pullRequestCreated",
        "repositoryNames": ["demo-repo"],
        "pullRequestId": "42",
        "afterCommitId": AFTER_COMMIT_ID,
        "beforeCommitId": BEFORE_COMMIT_ID,
        "title": "Add greeting",
    }
    detail.update(detail_overrides)
    return {
        "account": "123456789012",
        "detailType": "CodeCommit Pull Request State Change",
        "region": "us-east-1",
        "source": "aws.codecommit",
        "time": "2024-05-01T10:00:00Z",
        "resources": ["arn:aws:codecommit:us-east-1:123456789012:demo-repo"],
        "detail": detail,
    }


def make_sns_event(notification: dict) -> dict:
    return {"Records": [{"EventSource": "aws:sns", "Sns": {"Message": json.dumps(notification)}}]}


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


def make_codecommit_client(differences=None, files=None) -> MagicMock:
    """
    A CodeCommit client double. differences is returned as a single
    GetDifferences page; files maps a path to bytes or to an exception.
    """
    client = MagicMock()
    page = {} if differences is None else {"differences": differences}
    client.get_paginator.return_value.paginate.return_value = [page]

    files = files or {}

    def get_file(repositoryName, filePath, commitSpecifier):
        value = files[filePath]
        if isinstance(value, Exception):
            raise value
        return {"filePath": filePath, "fileContent": value}

    client.get_file.side_effect = get_file
    return client


def make_bedrock_client(text="Looks good to me.") -> MagicMock:
    client = MagicMock()
    client.converse.return_value = {
        "output": {"message": {"role": "assistant", "content": [{"text": text}]}},
        "stopReason": "end_turn",
    }
    return client


def added(path: str, blob_id: str = "blob-after") -> dict:
    return {"afterBlob": {"blobId": blob_id, "path": path, "mode": "100644"}, "changeType": "A"}


def modified(path: str) -> dict:
    return {
        "beforeBlob": {"blobId": "blob-before", "path": path, "mode": "100644"},
        "afterBlob": {"blobId": "blob-after", "path": path, "mode": "100644"},
        "changeType": "M",
    }


def deleted(path: str) -> dict:
    return {"beforeBlob": {"blobId": "blob-before", "path": path, "mode": "100644"}, "changeType": "D"}


@pytest.fixture
def settings() -> ReviewSettings:
    return ReviewSettings(repository_name="configured-repo")
