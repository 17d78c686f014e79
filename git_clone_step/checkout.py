"""Clone request model and checkout target selection."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

PULL_REQUEST = "pull_request"
COMMIT_HASH = "commit_hash"
TAG = "tag"
BRANCH = "branch"


@dataclass(frozen=True)
class CloneRequest:
    repo_url: str
    destination_dir: Path
    branch: Optional[str] = None
    tag: Optional[str] = None
    commit_hash: Optional[str] = None
    pull_request_id: Optional[str] = None
    clone_depth: Optional[int] = None
    report_path: Optional[Path] = None
    ssh_key: Optional[str] = None


@dataclass(frozen=True)
class CheckoutTarget:
    """A single ref the clone will check out."""

    kind: str
    value: str

    @property
    def ref(self) -> str:
        """The string handed to ``git checkout``."""
        if self.kind == PULL_REQUEST:
            return f"pull/{self.value}"
        return self.value

    @property
    def fetch_refspec(self) -> Optional[str]:
        """Refspec fetched from origin, or None to use the default fetch."""
        if self.kind == PULL_REQUEST:
            return f"pull/{self.value}/merge:{self.ref}"
        if self.kind == TAG:
            return f"refs/tags/{self.value}:refs/tags/{self.value}"
        if self.kind == BRANCH:
            return self.value
        return None


def select_checkout_target(request: CloneRequest) -> Optional[CheckoutTarget]:
    """Pick the checkout target by precedence: pull request, commit, tag, branch.

    The first non-empty field wins and the remaining ones are ignored.
    Returns None when nothing is set.
    """
    candidates = (
        (PULL_REQUEST, request.pull_request_id),
        (COMMIT_HASH, request.commit_hash),
        (TAG, request.tag),
        (BRANCH, request.branch),
    )
    for kind, value in candidates:
        if value:
            return CheckoutTarget(kind=kind, value=value)
    return None
