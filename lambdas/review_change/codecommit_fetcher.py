# lambdas/review_change/codecommit_fetcher.py
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from models import FetchFailure, FileContent, FileDifference, RetrievalResult


class RetrievalError(RuntimeError):
    """Raised when the change listing fails and the caller asked to abort."""
    pass


class CodeCommitFetcher:
    """
    Lists the files changed by a commit and fetches their contents from
    CodeCommit. The boto3 client is passed in so tests can substitute it.
    """
    def __init__(self, codecommit_client, repository_name: str, max_file_bytes: int = 20000):
        self.codecommit = codecommit_client
        self.repository_name = repository_name
        self.max_file_bytes = max_file_bytes

    def list_differences(self, after_commit_id: str, before_commit_id: Optional[str] = None) -> List[FileDifference]:
        """
        Returns every file-level difference between after_commit_id and
        before_commit_id (or its parent when no before commit is given).
        An empty or absent listing yields an empty list.
        """
        request = {
            "repositoryName": self.repository_name,
            "afterCommitSpecifier": after_commit_id,
        }
        if before_commit_id:
            request["beforeCommitSpecifier"] = before_commit_id

        differences = []
        paginator = self.codecommit.get_paginator("get_differences")
        for page in paginator.paginate(**request):
            for raw in page.get("differences") or []:
                difference = self._to_file_difference(raw)
                if difference:
                    differences.append(difference)

        print(f"Found {len(differences)} changed file(s) in commit {after_commit_id}.")
        return differences

    def fetch_file(self, path: str, commit_specifier: str) -> FileContent:
        """Fetches the full content of one file at the given commit."""
        response = self.codecommit.get_file(
            repositoryName=self.repository_name,
            filePath=path,
            commitSpecifier=commit_specifier,
        )
        content = response.get("fileContent") or b""
        truncated = len(content) > self.max_file_bytes
        if truncated:
            content = content[:self.max_file_bytes]
        return FileContent(path=path, commit_specifier=commit_specifier, content=content, truncated=truncated)

    def collect_changes(self, after_commit_id: str, before_commit_id: Optional[str] = None) -> RetrievalResult:
        """
        Lists differences, then fetches every non-deleted file one by one.
        A failed fetch is recorded and skipped so the remaining files are
        still retrieved; a failed listing is recorded and stops the stage.
        Only boto errors (ClientError, BotoCoreError) are caught; anything
        else is a programming error and propagates.
        """
        result = RetrievalResult()
        try:
            result.differences = self.list_differences(after_commit_id, before_commit_id)
        except (BotoCoreError, ClientError) as e:
            print(f"ERROR: Could not list differences for commit {after_commit_id}: {e}")
            result.error = str(e)
            return result

        if not result.differences:
            print("No file differences to fetch.")
            return result

        for difference in result.differences:
            if difference.is_deletion:
                continue
            try:
                file_content = self.fetch_file(difference.path, after_commit_id)
            except (BotoCoreError, ClientError) as e:
                print(f"WARNING: Could not fetch '{difference.path}' at {after_commit_id}: {e}")
                result.failures.append(FetchFailure(path=difference.path, error=str(e)))
                continue
            print(f"Fetched '{difference.path}' ({len(file_content.content)} bytes"
                  f"{', truncated' if file_content.truncated else ''}).")
            result.contents.append(file_content)

        return result

    @staticmethod
    def _to_file_difference(raw: dict) -> Optional[FileDifference]:
        """Maps one GetDifferences entry to a FileDifference."""
        before_blob = raw.get("beforeBlob") or {}
        after_blob = raw.get("afterBlob") or {}
        path = after_blob.get("path") or before_blob.get("path")
        if not path:
            return None

        change_type = raw.get("changeType")
        if not change_type:
            change_type = "D" if not after_blob else ("A" if not before_blob else "M")

        return FileDifference(
            path=path,
            change_type=change_type,
            after_blob_id=after_blob.get("blobId"),
            before_blob_id=before_blob.get("blobId"),
            before_path=before_blob.get("path"),
        )
