"""GitHub Copilot service layer: validation, classification and retry."""

from .copilot import CopilotService
from .exceptions import ClassifiedError, ErrorKind, ValidationFailure
from .github_client import GitHubClient

__all__ = [
    "CopilotService",
    "GitHubClient",
    "ClassifiedError",
    "ErrorKind",
    "ValidationFailure",
]
