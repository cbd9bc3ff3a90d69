# lambdas/review_change/bedrock_reviewer.py
import json
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional

from event_parser import ChangeNotification
from models import RetrievalResult, ReviewResult

DEFAULT_PROMPT_PATH = Path(__file__).parent / "review_prompt.txt"

SYSTEM_PROMPT = (
    "You are an experienced software engineer doing a code review. "
    "Be specific and concise, and only comment on the code you are shown."
)

_CHANGE_LABELS = {"A": "added", "M": "modified", "D": "deleted"}


class BedrockReviewer:
    """
    Uses the Bedrock Converse API to review the files changed by a commit.

    The conversation is a single user message rendered from a prompt
    template; the model's first text block becomes the review body.
    """
    def __init__(self, bedrock_client, model_id: str, inference_config: Dict[str, Any],
                 prompt_path: Optional[str] = None):
        """Initializes the reviewer and loads the prompt template."""
        self.bedrock_runtime = bedrock_client
        self.model_id = model_id
        self.inference_config = inference_config
        # A missing template is a deployment error, so let it raise.
        # Placeholders use $name; literal braces (e.g. JSON examples) pass through untouched.
        self.prompt_template = Template(Path(prompt_path or DEFAULT_PROMPT_PATH).read_text(encoding="utf-8"))

    def build_conversation(self, notification: ChangeNotification, retrieval: RetrievalResult,
                           repository_name: str, compared_commit_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Renders the prompt template from the retrieved changes.
        compared_commit_id is the commit the diff was actually taken against;
        None means the parent of the after commit.
        """
        user_prompt = self.prompt_template.safe_substitute(
            repository_name=repository_name,
            after_commit_id=notification.after_commit_id,
            compared_commit=compared_commit_id or "parent commit",
            changes_text=self._format_changes(retrieval),
            file_contents_text=self._format_contents(retrieval),
        )
        return [{"role": "user", "content": [{"text": user_prompt}]}]

    def invoke(self, conversation: List[Dict[str, Any]]) -> ReviewResult:
        """
        Sends the conversation to the model. Returns a 200 result carrying
        the generated text, or a 500 result describing what went wrong.
        """
        try:
            response = self.bedrock_runtime.converse(
                modelId=self.model_id,
                messages=conversation,
                system=[{"text": SYSTEM_PROMPT}],
                inferenceConfig=self.inference_config,
            )
        except Exception as e:
            print(f"ERROR: Bedrock invocation failed: {e}")
            return ReviewResult(500, json.dumps({"message": f"Error invoking Bedrock: {e}"}))

        response_text = self._extract_text_from_response(response)
        if not response_text:
            print(f"ERROR: Unexpected Bedrock response: {response}")
            return ReviewResult(500, json.dumps({"message": "Unexpected response format from Bedrock"}))

        print(f"Bedrock returned a review of {len(response_text)} characters.")
        return ReviewResult(200, response_text)

    @staticmethod
    def _extract_text_from_response(response: Any) -> Optional[str]:
        """Returns output.message.content[0].text, or None if any part is missing."""
        if not isinstance(response, dict):
            return None
        message = (response.get("output") or {}).get("message") or {}
        content = message.get("content")
        if not isinstance(content, list) or not content:
            return None
        first = content[0]
        if isinstance(first, dict) and first.get("text"):
            return first["text"]
        return None

    @staticmethod
    def _format_changes(retrieval: RetrievalResult) -> str:
        """One bullet per changed path, plus anything that could not be retrieved."""
        if retrieval.error:
            return f"- The list of changed files could not be retrieved ({retrieval.error})."
        if not retrieval.differences:
            return "- No file changes were found."

        lines = []
        for d in retrieval.differences:
            label = _CHANGE_LABELS.get(d.change_type, d.change_type)
            if d.before_path and d.before_path != d.path:
                lines.append(f"- {d.path} ({label}, moved from {d.before_path})")
            else:
                lines.append(f"- {d.path} ({label})")
        for failure in retrieval.failures:
            lines.append(f"- {failure.path}: content unavailable ({failure.error})")
        return "\n".join(lines)

    @staticmethod
    def _format_contents(retrieval: RetrievalResult) -> str:
        if not retrieval.contents:
            return "(no file contents available)"

        sections = []
        for file_content in retrieval.contents:
            text = file_content.as_text()
            if text is None:
                sections.append(f"### {file_content.path}\n(binary file, not shown)")
                continue
            note = "\n(truncated)" if file_content.truncated else ""
            sections.append(f"### {file_content.path}\n```\n{text}\n```{note}")
        return "\n\n".join(sections)
