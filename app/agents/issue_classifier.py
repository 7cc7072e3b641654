"""Issue classifier: asks the inference service to review one source file.

The model is prompted for a JSON object `{"issues": [...]}` (a bare array is
accepted too). Output is parsed tolerantly and each item is normalised onto
the closed IssueType / Severity enums.

Failures never propagate: a failed inference call or unparseable output
yields zero issues, with the cause kept in `ClassificationResult.degraded_reason`
so the run can record that the file was not really analysed.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, List, Optional

from app.agents.schemas import ClassificationResult, DetectedIssue, IssueType, Severity
from app.core.llm_client import LLMClient, LLMError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior software engineer doing a code review.\n"
    "Return ONLY a valid JSON object as described, no markdown and no commentary."
)

USER_PROMPT_TEMPLATE = """Analyze this {language} code file for potential issues. Look for:
1. bugs and logic errors
2. security vulnerabilities
3. code smells and bad practices
4. style issues
5. performance problems
6. maintainability issues

File: {file_path}
Code:
```{language}
{content}
```

Respond with a JSON object of the form {{"issues": [...]}}. For each issue provide:
- type: one of BUG, SECURITY, CODE_SMELL, STYLE, PERFORMANCE, MAINTAINABILITY
- severity: one of CRITICAL, WARNING, INFO
- title: short descriptive title
- description: detailed explanation of the issue
- suggestion: how to fix it (optional)
- lineNumber: line number where the issue occurs (optional)
- columnStart, columnEnd: column span on that line (optional)
- codeSnippet: the problematic code (optional)

Example:
{{"issues": [
  {{
    "type": "BUG",
    "severity": "CRITICAL",
    "title": "potential null pointer dereference",
    "description": "variable could be null when accessed",
    "suggestion": "add null check before access",
    "lineNumber": 42,
    "codeSnippet": "obj.method()"
  }}
]}}

If there are no issues, respond with {{"issues": []}}."""


def parse_json_safe(text: str) -> Any:
    """
    Try to robustly parse JSON returned by LLMs that may include markdown
    or stray text. Strategy:
    - Strip triple-backtick code fences
    - Try json.loads directly
    - If that fails, search for the first JSON object or array with regex and parse it
    - Raise ValueError if no JSON found or parsing fails
    """
    if not text:
        raise ValueError("Empty text")

    text = re.sub(r"```(?:json)?\n", "", text)
    text = text.replace("```", "")
    s = text.strip()

    try:
        return json.loads(s)
    except json.JSONDecodeError:
        pass

    for pattern in (r"(\{(?:.|\n)*\})", r"(\[(?:.|\n)*\])"):
        match = re.search(pattern, s)
        if match:
            try:
                return json.loads(match.group(1))
            except json.JSONDecodeError:
                continue

    raise ValueError("Could not parse JSON from LLM output")


def extract_issue_items(parsed: Any) -> List[dict]:
    """Return the list of raw issue objects from an array or an {"issues": [...]} wrapper."""
    if isinstance(parsed, list):
        items = parsed
    elif isinstance(parsed, dict) and isinstance(parsed.get("issues"), list):
        items = parsed["issues"]
    else:
        raise ValueError("Expected a JSON array or an object with an 'issues' array")
    return [item for item in items if isinstance(item, dict)]


def _enum_key(value: Any) -> str:
    return re.sub(r"[\s\-]+", "_", str(value or "").strip()).upper()


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def normalize_issue(item: dict) -> Optional[DetectedIssue]:
    """Map one raw item onto DetectedIssue, or None if it cannot be used."""
    try:
        issue_type = IssueType(_enum_key(item.get("type")))
    except ValueError:
        logger.debug("Dropping issue with unknown type %r", item.get("type"))
        return None

    try:
        severity = Severity(_enum_key(item.get("severity")))
    except ValueError:
        severity = Severity.INFO

    title = _optional_str(item.get("title"))
    if not title:
        return None

    return DetectedIssue(
        type=issue_type,
        severity=severity,
        title=title,
        description=_optional_str(item.get("description")) or "",
        suggestion=_optional_str(item.get("suggestion")),
        line_number=_optional_int(item.get("lineNumber", item.get("line_number"))),
        column_start=_optional_int(item.get("columnStart", item.get("column_start"))),
        column_end=_optional_int(item.get("columnEnd", item.get("column_end"))),
        code_snippet=_optional_str(item.get("codeSnippet", item.get("code_snippet"))),
    )


def build_messages(content: str, language: str, file_path: str) -> list[dict[str, str]]:
    user_prompt = USER_PROMPT_TEMPLATE.format(language=language, file_path=file_path, content=content)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


class IssueClassifier:
    def __init__(self, llm_client: LLMClient, timeout: Optional[float] = None):
        self.llm_client = llm_client
        self.timeout = timeout

    async def classify(self, content: str, language: str, file_path: str) -> ClassificationResult:
        messages = build_messages(content, language, file_path)
        try:
            coro = self.llm_client.chat(messages=messages, response_format={"type": "json_object"})
            raw = await asyncio.wait_for(coro, timeout=self.timeout) if self.timeout else await coro
        except (LLMError, asyncio.TimeoutError) as exc:
            reason = f"inference request failed: {str(exc) or type(exc).__name__}"
            logger.warning("No issues recorded for %s: %s", file_path, reason)
            return ClassificationResult(degraded_reason=reason)

        try:
            items = extract_issue_items(parse_json_safe(raw))
        except ValueError as exc:
            reason = f"unparseable inference output: {exc}"
            logger.warning("No issues recorded for %s: %s (output starts %r)", file_path, reason, raw[:200])
            return ClassificationResult(degraded_reason=reason)

        issues = [issue for issue in (normalize_issue(item) for item in items) if issue is not None]
        if len(issues) < len(items):
            logger.info("Dropped %d malformed issue(s) for %s", len(items) - len(issues), file_path)
        return ClassificationResult(issues=issues)
