"""HTTP API and GitHub webhook server for review sessions."""

import asyncio
import hashlib
import hmac
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request

from review_conductor import __version__
from review_conductor.errors import (
    ConfigurationError,
    SessionCancelledError,
    SessionNeedsRerunError,
    SessionNotCompleteError,
    SessionNotFoundError,
)
from review_conductor.formatting import report_to_dict, snapshot_to_dict
from review_conductor.github.client import GitHubClient
from review_conductor.models.artifact import Artifact
from review_conductor.orchestrator.service import ReviewService

logger = logging.getLogger(__name__)

# Pull request actions that trigger a review
TRIGGER_ACTIONS = {"opened", "synchronize", "reopened"}


@dataclass
class PREvent:
    """Represents a PR webhook event."""

    repo: str
    pr_number: int
    action: str
    sender: str = ""


def create_app(
    service: ReviewService,
    webhook_secret: str | None = None,
    github_client: GitHubClient | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        service: Review service that owns the sessions
        webhook_secret: Optional GitHub webhook secret for signature verification
        github_client: Client used to load PRs from webhook events

    Returns:
        FastAPI application
    """
    background: set[asyncio.Task] = set()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.shutdown()

    app = FastAPI(
        title="Review Conductor",
        description="Multi-role review orchestration service",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "review-conductor"}

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": "Review Conductor",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "sessions": "/sessions",
                "webhook": "/webhook",
            },
        }

    @app.post("/sessions", status_code=202)
    async def submit_session(request: Request, wait: bool = False):
        """Submit an artifact for review."""
        payload = await _read_json(request)
        raw_artifact = payload.get("artifact")
        if not isinstance(raw_artifact, dict):
            raise HTTPException(status_code=400, detail="Body must contain an 'artifact' object")
        roles = payload.get("roles")
        if roles is not None and not (
            isinstance(roles, list) and all(isinstance(r, str) for r in roles)
        ):
            raise HTTPException(status_code=400, detail="'roles' must be a list of role names")

        try:
            artifact = Artifact.from_dict(raw_artifact)
            session_id = service.submit(artifact, roles)
        except (ConfigurationError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if wait:
            await service.wait(session_id)
        snapshot = service.status(session_id)
        return {"session_id": session_id, "status": snapshot.status.value}

    @app.get("/sessions")
    async def list_sessions():
        """List known sessions."""
        return {
            "sessions": [
                {
                    "session_id": session.id,
                    "artifact_id": session.artifact.id,
                    "status": session.status.value,
                    "completion_ratio": session.completion_ratio,
                }
                for session in service.sessions()
            ]
        }

    @app.get("/sessions/{session_id}")
    async def session_status(session_id: str):
        """Status, completion ratio and findings so far."""
        try:
            return snapshot_to_dict(service.status(session_id))
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @app.get("/sessions/{session_id}/report")
    async def session_report(session_id: str, archive: bool = False):
        """Final aggregated report of a session, optionally archiving it once delivered."""
        try:
            report = report_to_dict(service.report(session_id))
            if archive:
                service.close(session_id)
            return report
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except SessionCancelledError as e:
            raise HTTPException(status_code=410, detail=str(e)) from e
        except SessionNeedsRerunError as e:
            raise HTTPException(
                status_code=409,
                detail={
                    "message": str(e),
                    "status": e.status,
                    "report": report_to_dict(e.report),
                },
            ) from e
        except SessionNotCompleteError as e:
            raise HTTPException(
                status_code=409, detail={"message": str(e), "status": e.status}
            ) from e

    @app.delete("/sessions/{session_id}")
    async def cancel_session(session_id: str):
        """Cancel a session."""
        try:
            cancelled = service.cancel(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return {"session_id": session_id, "cancelled": cancelled}

    @app.post("/sessions/{session_id}/archive")
    async def archive_session(session_id: str):
        """Archive a session, cancelling it first if it is still running."""
        try:
            service.close(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return {"session_id": session_id, "archived": True}

    @app.post("/sessions/{session_id}/rerun", status_code=202)
    async def rerun_session(session_id: str):
        """Resubmit a session's artifact."""
        try:
            new_id = service.rerun(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return {"session_id": new_id, "rerun_of": session_id}

    @app.post("/webhook")
    async def github_webhook(request: Request):
        """Handle GitHub webhook events."""
        # Read body once (required for signature verification and parsing)
        body = await request.body()

        if webhook_secret:
            signature = request.headers.get("X-Hub-Signature-256", "")
            if not verify_signature(body, signature, webhook_secret):
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}") from e

        event_type = request.headers.get("X-GitHub-Event", "")

        if event_type == "pull_request":
            try:
                pr_event = PREvent(
                    repo=payload["repository"]["full_name"],
                    pr_number=payload["pull_request"]["number"],
                    action=payload["action"],
                    sender=payload.get("sender", {}).get("login", ""),
                )
            except (KeyError, TypeError) as e:
                raise HTTPException(status_code=400, detail=f"Malformed event: {e}") from e

            if pr_event.action not in TRIGGER_ACTIONS:
                logger.debug(f"Ignoring PR action: {pr_event.action}")
                return {"status": "ignored"}
            if github_client is None:
                logger.warning("No GitHub client configured, cannot review PR events")
                return {"status": "ignored"}

            # Process async to respond quickly
            task = asyncio.create_task(handle_pr_event(pr_event, service, github_client))
            background.add(task)
            task.add_done_callback(background.discard)
            return {"status": "accepted"}

        elif event_type == "ping":
            logger.info("Received ping from GitHub")
            return {"status": "pong"}

        else:
            logger.debug(f"Ignoring event type: {event_type}")

        return {"status": "ok"}

    return app


async def handle_pr_event(
    event: PREvent, service: ReviewService, github_client: GitHubClient
) -> str | None:
    """Load a PR and submit it for review.

    Returns:
        Session id, or None if the PR could not be loaded or routed
    """
    logger.info(f"Triggering review for {event.repo} PR #{event.pr_number}")
    try:
        # PyGithub is blocking
        artifact = await asyncio.to_thread(
            github_client.load_artifact, event.repo, event.pr_number
        )
        session_id = service.submit(artifact)
    except Exception as e:
        logger.exception(f"Error reviewing {event.repo} PR #{event.pr_number}: {e}")
        return None
    logger.info(f"Submitted {event.repo} PR #{event.pr_number} as {session_id}")
    return session_id


async def _read_json(request: Request) -> dict[str, Any]:
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return payload


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify GitHub webhook signature.

    Args:
        payload: Raw request body
        signature: X-Hub-Signature-256 header value
        secret: Webhook secret

    Returns:
        True if signature is valid
    """
    if not signature.startswith("sha256="):
        return False

    expected = (
        "sha256="
        + hmac.new(
            secret.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()
    )

    return hmac.compare_digest(expected, signature)
