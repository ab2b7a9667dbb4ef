"""Exception hierarchy for agent execution.

Only conditions that must abort a run are modelled as exceptions. Tool
failures, unknown tools and sub-agent failures are reported as data in the
run result instead.
"""


class HiveError(Exception):
    """Base exception for all agent execution errors."""


class ContextLimitExceededError(HiveError):
    """Raised when the conversation exceeds the token budget under the error strategy."""

    def __init__(self, current_tokens: int, max_tokens: int):
        self.current_tokens = current_tokens
        self.max_tokens = max_tokens
        super().__init__(f"Context limit exceeded: {current_tokens} > {max_tokens} tokens")


class MaxIterationsExceededError(HiveError):
    """Raised when the turn loop runs out of iterations without terminating."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(f"Max iterations ({max_iterations}) reached")
