"""GitHub integration for Review Conductor."""

from review_conductor.github.client import GitHubClient

__all__ = ["GitHubClient"]
