# lambdas/review_change/models.py
"""
Settings and plain-dataclass models for the change review Lambda.
"""
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReviewSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A local .env file is picked up automatically for CLI runs.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    repository_name: str = Field(..., alias='REPOSITORY_NAME')
    aws_region: str = Field("us-east-1", alias='AWS_REGION')
    bedrock_region: str = Field("us-east-1", alias='BEDROCK_REGION')
    bedrock_model_id: str = Field("anthropic.claude-3-sonnet-20240229-v1:0", alias='BEDROCK_MODEL_ID')

    # Inference configuration
    max_tokens: int = Field(512, alias='MAX_TOKENS')
    temperature: float = Field(0.5, alias='TEMPERATURE')
    top_p: float = Field(0.9, alias='TOP_P')

    # Retrieval behaviour
    max_file_bytes: int = Field(20000, alias='MAX_FILE_BYTES')
    review_prompt_path: Optional[str] = Field(None, alias='REVIEW_PROMPT_PATH')
    compare_with_before_commit: bool = Field(False, alias='COMPARE_WITH_BEFORE_COMMIT')
    abort_on_retrieval_error: bool = Field(False, alias='ABORT_ON_RETRIEVAL_ERROR')

    def inference_config(self) -> dict:
        """Returns the Converse API inferenceConfig block."""
        return {
            "maxTokens": self.max_tokens,
            "temperature": self.temperature,
            "topP": self.top_p,
        }


@lru_cache
def get_settings() -> ReviewSettings:
    """Get cached settings instance."""
    return ReviewSettings()


# Data models
@dataclass
class FileDifference:
    """
    One changed path between two commits, as reported by GetDifferences.
    change_type is 'A' (added), 'M' (modified) or 'D' (deleted).
    """
    path: str
    change_type: str
    after_blob_id: Optional[str] = None
    before_blob_id: Optional[str] = None
    # Only differs from path when the file was moved
    before_path: Optional[str] = None

    @property
    def is_deletion(self) -> bool:
        return self.change_type == "D"


@dataclass
class FileContent:
    """Raw bytes of a file at a given commit."""
    path: str
    commit_specifier: str
    content: bytes
    truncated: bool = False

    def as_text(self) -> Optional[str]:
        """Decodes the content as UTF-8, or None for binary files."""
        # Truncation can cut a multi-byte character, so allow up to 3 bytes of slack
        slack = 4 if self.truncated else 1
        for cut in range(slack):
            try:
                return self.content[:len(self.content) - cut].decode("utf-8")
            except UnicodeDecodeError:
                continue
        return None


@dataclass
class FetchFailure:
    """A single file that could not be fetched."""
    path: str
    error: str


@dataclass
class RetrievalResult:
    """
    Outcome of the diff listing and content fetching stage.
    error is set when the listing call itself failed; failures collects
    per-file fetch errors that did not stop the loop.
    """
    differences: List[FileDifference] = field(default_factory=list)
    contents: List[FileContent] = field(default_factory=list)
    failures: List[FetchFailure] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures

    @property
    def partial_failure(self) -> bool:
        return self.error is None and bool(self.failures)


@dataclass
class ReviewResult:
    """Terminal value of one invocation: a status code and a body."""
    status_code: int
    body: str

    @property
    def succeeded(self) -> bool:
        return self.status_code == 200

    def to_response(self) -> dict:
        return {"statusCode": self.status_code, "body": self.body}
