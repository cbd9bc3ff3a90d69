# lambdas/review_change/event_parser.py
import json
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class MalformedEventError(ValueError):
    """Raised when the SNS envelope or its nested notification cannot be parsed."""
    pass


class ChangeDetail(BaseModel):
    """
    The 'detail' block of a CodeCommit notification as delivered by a
    notification rule. Only afterCommitId is required.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    after_commit_id: str = Field(..., alias='afterCommitId')
    before_commit_id: Optional[str] = Field(None, alias='beforeCommitId')
    repository_names: List[str] = Field(default_factory=list, alias='repositoryNames')
    repository_name: Optional[str] = Field(None, alias='repositoryName')
    pull_request_id: Optional[str] = Field(None, alias='pullRequestId')
    event: Optional[str] = None
    title: Optional[str] = None

    @field_validator('after_commit_id')
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("afterCommitId must not be empty")
        return value


class ChangeNotification(BaseModel):
    """Inbound event describing a new commit on a pull request."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    detail: ChangeDetail
    source: Optional[str] = None
    detail_type: Optional[str] = Field(None, alias='detailType')
    region: Optional[str] = None
    resources: List[str] = Field(default_factory=list)

    @property
    def after_commit_id(self) -> str:
        return self.detail.after_commit_id

    @property
    def before_commit_id(self) -> Optional[str]:
        return self.detail.before_commit_id

    @property
    def repository_name(self) -> Optional[str]:
        if self.detail.repository_names:
            return self.detail.repository_names[0]
        return self.detail.repository_name


def parse_change_notification(event: dict) -> ChangeNotification:
    """
    Extracts the JSON-encoded notification nested in an SNS event and
    validates it.

    Args:
        event: The raw Lambda event delivered by the SNS subscription.

    Returns:
        The validated ChangeNotification.

    Raises:
        MalformedEventError: If any part of the envelope is missing or invalid.
    """
    try:
        message_string = event['Records'][0]['Sns']['Message']
        payload = json.loads(message_string)
    except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
        raise MalformedEventError(f"Could not read the SNS message from the event: {e}") from e

    try:
        notification = ChangeNotification.model_validate(payload)
    except ValidationError as e:
        raise MalformedEventError(f"Notification payload is not a valid change notification: {e}") from e

    print(f"Parsed notification for commit {notification.after_commit_id} "
          f"(repository: {notification.repository_name}, event: {notification.detail.event})")
    return notification
