"""Self-review tracking.

Records pass/fail quality assessments submitted by the model through the
``__review__`` tool. The tracker itself enforces nothing: the configuration
flags are surfaced to the model through the system prompt, and the turn loop
only gates completion when the require-pass policy is configured.
"""

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from hive_agent.agent.config import ReviewConfig
from hive_agent.agent.messages import ToolResult
from hive_agent.agent.tools import Tool, ToolContext

REVIEW_TOOL_NAME = "__review__"


class ReviewSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ReviewIssue:
    severity: ReviewSeverity
    message: str
    suggestion: str | None = None
    location: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewIssue":
        """Build an issue from tool input, defaulting unknown severities to warning."""
        try:
            severity = ReviewSeverity(str(data.get("severity", "warning")).lower())
        except ValueError:
            severity = ReviewSeverity.WARNING
        return cls(
            severity=severity,
            message=str(data.get("message", "")),
            suggestion=data.get("suggestion"),
            location=data.get("location"),
        )


@dataclass(frozen=True)
class ReviewResult:
    """One submitted review.

    Attributes:
        passed: Whether the work passed review
        summary: Short summary of the findings
        issues: Issues found, in submission order
        reviewed_at: Submission time (epoch seconds)
    """

    passed: bool
    summary: str
    issues: list[ReviewIssue] = field(default_factory=list)
    reviewed_at: float = field(default_factory=time.time)

    @property
    def blocking_issues(self) -> list[ReviewIssue]:
        return [i for i in self.issues if i.severity in (ReviewSeverity.ERROR, ReviewSeverity.CRITICAL)]


def format_review_result(review: ReviewResult) -> str:
    """Render a review as readable text."""
    lines = [f"Review {'Passed' if review.passed else 'Failed'}", "", f"Summary: {review.summary}"]
    if review.issues:
        lines += ["", "Issues:"]
        for issue in review.issues:
            lines.append(f"  [{issue.severity.upper()}] {issue.message}")
            if issue.suggestion:
                lines.append(f"     -> Suggestion: {issue.suggestion}")
            if issue.location:
                lines.append(f"     -> Location: {issue.location}")
    return "\n".join(lines)


class ReviewTracker:
    """Holds the review configuration, the current review and the history."""

    def __init__(self, config: ReviewConfig) -> None:
        self._config = config
        self._current: ReviewResult | None = None
        self._history: list[ReviewResult] = []

    @property
    def config(self) -> ReviewConfig:
        return self._config

    def is_enabled(self) -> bool:
        return self._config.enabled

    def is_auto_review_enabled(self) -> bool:
        return self._config.auto_review

    def requires_approval(self) -> bool:
        return self._config.require_approval

    @property
    def categories(self) -> list[str]:
        return list(self._config.categories)

    @property
    def current(self) -> ReviewResult | None:
        return self._current

    @property
    def history(self) -> list[ReviewResult]:
        return list(self._history)

    def submit(self, passed: bool, summary: str, issues: list[ReviewIssue] | None = None) -> ReviewResult:
        review = ReviewResult(passed=passed, summary=summary, issues=list(issues or []))
        self._current = review
        self._history.append(review)
        return review

    def last_review_passed(self) -> bool:
        """True when no review was submitted yet or the latest one passed."""
        return self._current.passed if self._current else True

    def clear_current(self) -> None:
        self._current = None


def _review_to_dict(review: ReviewResult) -> dict[str, Any]:
    return {
        "passed": review.passed,
        "summary": review.summary,
        "issues": [
            {
                "severity": str(issue.severity),
                "message": issue.message,
                "suggestion": issue.suggestion,
                "location": issue.location,
            }
            for issue in review.issues
        ],
        "reviewedAt": review.reviewed_at,
    }


def create_review_tool(tracker: ReviewTracker) -> Tool:
    """Create the ``__review__`` tool bound to a tracker."""

    async def execute(params: dict[str, Any], context: ToolContext) -> ToolResult:
        action = params.get("action")

        if action == "submit":
            passed = params.get("passed")
            summary = params.get("summary")
            if not isinstance(passed, bool):
                return ToolResult.fail('"passed" is required for submit action')
            if not summary:
                return ToolResult.fail('"summary" is required for submit action')
            issues = [ReviewIssue.from_dict(i) for i in params.get("issues") or [] if isinstance(i, dict)]
            review = tracker.submit(passed, summary, issues)
            return ToolResult.ok(
                {
                    "message": format_review_result(review),
                    "review": _review_to_dict(review),
                    "requiresApproval": tracker.requires_approval() and not passed,
                }
            )

        if action == "check":
            return ToolResult.ok(
                {
                    "enabled": tracker.is_enabled(),
                    "autoReview": tracker.is_auto_review_enabled(),
                    "requiresApproval": tracker.requires_approval(),
                    "categories": tracker.categories,
                    "hasCurrentReview": tracker.current is not None,
                }
            )

        if action == "status":
            current = tracker.current
            history = tracker.history
            return ToolResult.ok(
                {
                    "currentReview": _review_to_dict(current) if current else None,
                    "message": format_review_result(current) if current else "No review submitted yet",
                    "totalReviews": len(history),
                    "passedCount": sum(1 for r in history if r.passed),
                }
            )

        return ToolResult.fail(f"Unknown action: {action}")

    return Tool(
        name=REVIEW_TOOL_NAME,
        description=(
            "Review your work to ensure quality before completing.\n\n"
            f"Review Categories: {', '.join(tracker.categories)}\n\n"
            "Actions:\n"
            '- "submit": Submit a review with findings\n'
            '- "check": Check review configuration\n'
            '- "status": Get current review status\n\n'
            "Severity levels: info, warning, error (must be fixed), critical (fix immediately)"
        ),
        parameters={
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ["submit", "check", "status"],
                    "description": "The action to perform",
                },
                "passed": {"type": "boolean", "description": 'Whether the review passed (for "submit")'},
                "summary": {"type": "string", "description": 'Brief summary of the review (for "submit")'},
                "issues": {
                    "type": "array",
                    "description": 'Issues found (for "submit")',
                    "items": {
                        "type": "object",
                        "properties": {
                            "severity": {"type": "string", "enum": [s.value for s in ReviewSeverity]},
                            "message": {"type": "string"},
                            "suggestion": {"type": "string"},
                            "location": {"type": "string"},
                        },
                        "required": ["severity", "message"],
                    },
                },
            },
            "required": ["action"],
        },
        execute=execute,
    )
