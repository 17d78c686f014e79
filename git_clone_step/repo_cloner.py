"""Clone a git repository into a destination directory and check out one ref."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Type

from .checkout import CheckoutTarget, CloneRequest
from .credentials import git_environment

logger = logging.getLogger(__name__)


class CloneError(RuntimeError):
    stage = "clone"


class AlreadyExistsError(CloneError):
    stage = "directory-check"


class DirectoryCreateError(CloneError):
    stage = "directory-check"


class InitError(CloneError):
    stage = "init"


class RemoteAddError(CloneError):
    stage = "remote-add"


class FetchError(CloneError):
    stage = "fetch"


class CheckoutError(CloneError):
    stage = "checkout"


class SubmoduleError(CloneError):
    stage = "submodule-update"


class MetadataError(CloneError):
    stage = "metadata"


@dataclass(frozen=True)
class CommitMetadata:
    commit_hash: str
    subject: str
    body: str
    author_name: str
    author_email: str
    committer_name: str
    committer_email: str
    log: str = ""


@dataclass(frozen=True)
class CloneOutcome:
    success: bool
    commit_hash: str = ""
    metadata: Optional[CommitMetadata] = None
    error: Optional[str] = None


# git log pretty-format placeholders for each CommitMetadata field.
_METADATA_FORMATS = {
    "commit_hash": "%H",
    "subject": "%s",
    "body": "%b",
    "author_name": "%an",
    "author_email": "%ae",
    "committer_name": "%cn",
    "committer_email": "%ce",
}


def _run_git(
    args: List[str],
    cwd: Path,
    error_cls: Type[CloneError],
    message: str,
    env: Optional[Dict[str, str]] = None,
) -> str:
    cmd = ["git", *args]
    logger.debug("Running %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        raise error_cls(f"{message}: {(exc.stderr or '').strip() or exc}") from exc
    except OSError as exc:
        raise error_cls(f"{message}: {exc}") from exc
    return result.stdout


def fetch_arguments(target: Optional[CheckoutTarget], clone_depth: Optional[int] = None) -> List[str]:
    """Arguments for the single fetch issued for ``target``."""
    args = ["fetch"]
    refspec = target.fetch_refspec if target is not None else None
    if refspec:
        args.extend(["origin", refspec])
    if clone_depth and clone_depth > 0:
        args.append(f"--depth={clone_depth}")
    return args


def read_commit_metadata(repo_dir: Path) -> CommitMetadata:
    """Read the checked out commit's fields and the newest commit's fuller log."""
    values = {}
    for field_name, placeholder in _METADATA_FORMATS.items():
        output = _run_git(
            ["log", "-1", f"--format={placeholder}"],
            repo_dir,
            MetadataError,
            "Could not read commit metadata",
        )
        values[field_name] = output.rstrip("\n")

    log = _run_git(
        ["log", "-n", "1", "--tags", "--branches", "--remotes", "--format=fuller"],
        repo_dir,
        MetadataError,
        "Could not read commit log",
    )
    return CommitMetadata(log=log.rstrip("\n"), **values)


def _first_missing_ancestor(path: Path) -> Optional[Path]:
    missing = None
    for candidate in (path, *path.parents):
        if candidate.exists():
            break
        missing = candidate
    return missing


def _prepare_directory(destination: Path) -> None:
    git_dir = destination / ".git"
    if git_dir.is_dir():
        raise AlreadyExistsError(f".git folder already exists in the destination dir at: {git_dir}")
    created_root = _first_missing_ancestor(destination)
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        # Parents created before the failure are not left behind.
        if created_root is not None and created_root.exists():
            shutil.rmtree(created_root, ignore_errors=True)
        raise DirectoryCreateError(f"Failed to create the clone destination dir at: {destination}: {exc}") from exc


def _clone_into(
    request: CloneRequest,
    target: Optional[CheckoutTarget],
    ssh_key_path: Optional[Path],
) -> CloneOutcome:
    destination = request.destination_dir
    env = git_environment(ssh_key_path)

    _run_git(["init"], destination, InitError, "Could not init git repository")
    _run_git(
        ["remote", "add", "origin", request.repo_url],
        destination,
        RemoteAddError,
        "Could not add remote",
        env=env,
    )
    _run_git(
        fetch_arguments(target, request.clone_depth),
        destination,
        FetchError,
        "Could not fetch from repository",
        env=env,
    )

    if target is None:
        logger.warning("No checkout parameter (branch, tag, commit hash or pull request ID) provided")
        return CloneOutcome(success=True)

    _run_git(["checkout", target.ref], destination, CheckoutError, f"Could not do checkout {target.ref}")
    _run_git(
        ["submodule", "update", "--init", "--recursive"],
        destination,
        SubmoduleError,
        "Could not fetch from submodule repositories",
        env=env,
    )

    metadata = read_commit_metadata(destination)
    return CloneOutcome(success=True, commit_hash=metadata.commit_hash, metadata=metadata)


def clone_repository(
    request: CloneRequest,
    target: Optional[CheckoutTarget],
    ssh_key_path: Optional[Path] = None,
) -> CloneOutcome:
    """Run init, remote add, fetch, checkout and submodule update in the destination.

    The destination is never reused when it already holds a repository. Once
    the directory exists, a failure at any later stage removes the whole
    destination tree so the caller sees either a complete checkout or nothing.
    """
    destination = request.destination_dir
    try:
        _prepare_directory(destination)
    except CloneError as exc:
        logger.error("[%s] %s", exc.stage, exc)
        return CloneOutcome(success=False, error=str(exc))

    try:
        outcome = _clone_into(request, target, ssh_key_path)
    except CloneError as exc:
        logger.error("[%s] %s", exc.stage, exc)
        outcome = CloneOutcome(success=False, error=str(exc))
    except Exception as exc:
        logger.exception("Unexpected error while cloning %s", request.repo_url)
        outcome = CloneOutcome(success=False, error=str(exc))

    if not outcome.success:
        logger.info("Removing partially cloned directory: %s", destination)
        shutil.rmtree(destination, ignore_errors=True)

    return outcome
