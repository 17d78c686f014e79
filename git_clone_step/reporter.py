"""Publish clone results as step outputs and a formatted report."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import List, Tuple

from .repo_cloner import CommitMetadata
from .template_engine import render_template

logger = logging.getLogger(__name__)

ENVMAN_ENV_VAR = "GIT_CLONE_ENVMAN"
REPORT_TEMPLATE = "report.md.j2"
LOG_INDENT = "    "


class OutputError(RuntimeError):
    """Raised when a step output cannot be exported."""


def output_pairs(metadata: CommitMetadata) -> List[Tuple[str, str]]:
    # COMMITER is misspelled in the published key names; pipelines depend on it.
    return [
        ("GIT_CLONE_COMMIT_HASH", metadata.commit_hash),
        ("GIT_CLONE_COMMIT_MESSAGE_SUBJECT", metadata.subject),
        ("GIT_CLONE_COMMIT_MESSAGE_BODY", metadata.body),
        ("GIT_CLONE_COMMIT_AUTHOR_NAME", metadata.author_name),
        ("GIT_CLONE_COMMIT_AUTHOR_EMAIL", metadata.author_email),
        ("GIT_CLONE_COMMIT_COMMITER_NAME", metadata.committer_name),
        ("GIT_CLONE_COMMIT_COMMITER_EMAIL", metadata.committer_email),
    ]


def export_step_output(key: str, value: str) -> None:
    """Export one key/value pair through envman, passing the value on stdin."""
    envman = os.environ.get(ENVMAN_ENV_VAR, "envman")
    try:
        subprocess.run(
            [envman, "add", "--key", key],
            input=value,
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        raise OutputError(f"Failed to export {key}: {(exc.stderr or '').strip() or exc}") from exc
    except OSError as exc:
        raise OutputError(f"Failed to export {key}: {exc}") from exc


def publish_outputs(metadata: CommitMetadata) -> None:
    for key, value in output_pairs(metadata):
        export_step_output(key, value)
    logger.info("Exported commit outputs for %s", metadata.commit_hash)


def prepend_lines(text: str, prefix: str) -> str:
    return "\n".join(prefix + line for line in text.split("\n"))


def render_report(metadata: CommitMetadata) -> str:
    return render_template(
        REPORT_TEMPLATE,
        {
            "indent": LOG_INDENT,
            "commit_hash": metadata.commit_hash,
            "commit_log": prepend_lines(metadata.log, LOG_INDENT),
        },
    )


def write_report(path: Path, metadata: CommitMetadata) -> None:
    """Write the markdown report with the commit hash and the indented commit log."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_report(metadata), encoding="utf-8")
    logger.info("Formatted output written to %s", path)
