"""HTTP interface for Review Conductor."""

from review_conductor.api.app import PREvent, create_app, verify_signature

__all__ = ["PREvent", "create_app", "verify_signature"]
