"""GitHub API client for loading pull requests as review artifacts."""

import logging

from github import Github
from github.GithubException import GithubException
from github.PullRequest import PullRequest
from github.Repository import Repository

from review_conductor.models.artifact import Artifact, ArtifactKind, infer_kind

logger = logging.getLogger(__name__)

# PR labels that pin the artifact kind, e.g. "kind/service"
KIND_LABEL_PREFIX = "kind/"


class GitHubClient:
    """Client for GitHub API operations."""

    def __init__(self, token: str, base_url: str | None = None) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token or app token
            base_url: Optional base URL for GitHub Enterprise
        """
        self._token = token
        self._base_url = base_url
        if base_url:
            self._gh = Github(token, base_url=base_url)
        else:
            self._gh = Github(token)

    def get_repo(self, repo_name: str) -> Repository:
        """Get a repository by name.

        Args:
            repo_name: Repository in "owner/name" format

        Returns:
            Repository object
        """
        return self._gh.get_repo(repo_name)

    def get_pull_request(self, repo_name: str, pr_number: int) -> PullRequest:
        """Get a pull request.

        Args:
            repo_name: Repository in "owner/name" format
            pr_number: Pull request number

        Returns:
            PullRequest object
        """
        repo = self.get_repo(repo_name)
        return repo.get_pull(pr_number)

    def get_pr_diff(self, pr: PullRequest) -> str:
        """Get the unified diff for a PR.

        Args:
            pr: Pull request object

        Returns:
            Unified diff string
        """
        files = pr.get_files()
        diff_parts = []

        for file in files:
            if file.patch:
                diff_parts.append(f"diff --git a/{file.filename} b/{file.filename}")
                diff_parts.append(f"--- a/{file.filename}")
                diff_parts.append(f"+++ b/{file.filename}")
                diff_parts.append(file.patch)
                diff_parts.append("")

        return "\n".join(diff_parts)

    def get_changed_files(self, pr: PullRequest) -> dict[str, str]:
        """Get the contents of changed files at the PR head.

        Args:
            pr: Pull request object

        Returns:
            Dict mapping file paths to their contents
        """
        files = {}
        repo = pr.base.repo

        for file in pr.get_files():
            if file.status == "removed":
                continue

            try:
                content = repo.get_contents(file.filename, ref=pr.head.sha)
                if hasattr(content, "decoded_content"):
                    files[file.filename] = content.decoded_content.decode("utf-8")
            except (GithubException, UnicodeDecodeError) as e:
                logger.warning(f"Could not fetch {file.filename}: {e}")

        return files

    def load_artifact(self, repo_name: str, pr_number: int) -> Artifact:
        """Build a diff artifact from a pull request.

        The artifact kind comes from a ``kind/<kind>`` label when present and is
        inferred from the changed paths otherwise.

        Args:
            repo_name: Repository in "owner/name" format
            pr_number: Pull request number

        Returns:
            Artifact with the PR diff, head file contents and PR metadata
        """
        pr = self.get_pull_request(repo_name, pr_number)
        diff = self.get_pr_diff(pr)
        files = self.get_changed_files(pr)
        labels = [label.name for label in pr.get_labels()]

        kind = _kind_from_labels(labels)
        if kind is None:
            kind = infer_kind(list(files) or [f.filename for f in pr.get_files()])

        logger.info(f"Loaded {repo_name} PR #{pr_number}: {pr.title} ({len(files)} files, {kind.value})")

        return Artifact(
            kind=kind,
            files=files,
            diff=diff,
            name=f"{repo_name}#{pr_number}",
            metadata={
                "repo": repo_name,
                "pr_number": pr_number,
                "title": pr.title,
                "author": pr.user.login,
                "base_branch": pr.base.ref,
                "head_branch": pr.head.ref,
                "head_sha": pr.head.sha,
                "additions": pr.additions,
                "deletions": pr.deletions,
                "labels": labels,
            },
        )


def _kind_from_labels(labels: list[str]) -> ArtifactKind | None:
    for label in labels:
        if label.lower().startswith(KIND_LABEL_PREFIX):
            kind = ArtifactKind.parse(label[len(KIND_LABEL_PREFIX):])
            if kind is not ArtifactKind.UNKNOWN:
                return kind
    return None
