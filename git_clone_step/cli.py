"""Command line interface for the git clone step."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .checkout import CloneRequest, select_checkout_target
from .credentials import provision_ssh_key
from .reporter import OutputError, publish_outputs, write_report
from .repo_cloner import clone_repository

logger = logging.getLogger(__name__)

SSH_KEY_ENV_VAR = "auth_ssh_private_key"
LOG_LEVEL_ENV_VAR = "GIT_CLONE_LOG_LEVEL"

OPTION_KEYS = (
    "repo_url",
    "branch",
    "tag",
    "commit_hash",
    "pull_request",
    "dest_dir",
    "clone_depth",
    "formatted_output_file",
)


class ValidationError(ValueError):
    """Raised when the step configuration is incomplete or malformed."""


def _load_config(path: Path | None) -> Dict[str, Any]:
    if not path:
        return {}
    if not path.exists():
        raise ValidationError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() in {".yml", ".yaml"}:
            data = yaml.safe_load(handle) or {}
        else:
            data = json.load(handle)
    if not isinstance(data, dict):
        raise ValidationError(f"Config file must contain a mapping: {path}")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-clone-step",
        description="Clone a git repository and check out a branch, tag, commit or pull request.",
    )
    parser.add_argument("--repo-url", default=None, help="Repository URL (required).")
    parser.add_argument(
        "--branch",
        default=None,
        help="Branch name. Ignored when a tag, commit hash or pull request is given.",
    )
    parser.add_argument(
        "--tag",
        default=None,
        help="Tag name. Ignored when a commit hash or pull request is given.",
    )
    parser.add_argument(
        "--commit-hash",
        default=None,
        help="Commit hash. Ignored when a pull request is given.",
    )
    parser.add_argument(
        "--pull-request",
        default=None,
        help="Pull request ID. Works only with GitHub style pull/<id>/merge refs.",
    )
    parser.add_argument("--dest-dir", default=None, help="Local clone destination directory (required).")
    parser.add_argument(
        "--clone-depth",
        default=None,
        help="Limit fetching to the specified number of commits.",
    )
    parser.add_argument(
        "--formatted-output-file",
        default=None,
        help="If given, a formatted (markdown) report is written to this path.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to optional configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    )
    return parser


def _optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


def _parse_depth(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        depth = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"clone_depth must be an integer, got {value!r}") from exc
    if depth <= 0:
        logger.warning("Ignoring non-positive clone_depth: %s", depth)
        return None
    return depth


def merge_options(args: argparse.Namespace, config: Mapping[str, Any]) -> Dict[str, Any]:
    """Combine config file values with command line flags; flags win."""
    values = {key: config.get(key) for key in OPTION_KEYS}
    for key in OPTION_KEYS:
        flag_value = getattr(args, key, None)
        if flag_value is not None:
            values[key] = flag_value
    return values


def resolve_request(values: Mapping[str, Any], environ: Mapping[str, str]) -> CloneRequest:
    """Validate raw option values and normalize paths into a CloneRequest."""
    repo_url = _optional(values.get("repo_url"))
    if not repo_url:
        raise ValidationError("repo_url is required")
    dest_dir = _optional(values.get("dest_dir"))
    if not dest_dir:
        raise ValidationError("dest_dir is required")

    # An explicitly empty report path means no report.
    report = _optional(values.get("formatted_output_file"))

    return CloneRequest(
        repo_url=repo_url,
        destination_dir=Path(dest_dir).expanduser().resolve(),
        branch=_optional(values.get("branch")),
        tag=_optional(values.get("tag")),
        commit_hash=_optional(values.get("commit_hash")),
        pull_request_id=_optional(values.get("pull_request")),
        clone_depth=_parse_depth(values.get("clone_depth")),
        report_path=Path(report).expanduser().resolve() if report else None,
        ssh_key=environ.get(SSH_KEY_ENV_VAR) or None,
    )


def describe_request(request: CloneRequest) -> str:
    lines = [
        "========== Configs ==========",
        f" * repo_url: {request.repo_url}",
        f" * branch: {request.branch or ''}",
        f" * tag: {request.tag or ''}",
        f" * commit_hash: {request.commit_hash or ''}",
        f" * pull_request_id: {request.pull_request_id or ''}",
        f" * clone_destination_dir: {request.destination_dir}",
        f" * clone_depth: {request.clone_depth or ''}",
        f" * formatted_output_file_path: {request.report_path or ''}",
        f" * auth_ssh_key_raw: {'*****' if request.ssh_key else 'no SSH key provided'}",
    ]
    return "\n".join(lines)


def _log_level(value: Any) -> int:
    """Accept a level name ('debug', 'INFO') or a numeric level (10, '20')."""
    if value is None or value == "":
        value = os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO"
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    if not isinstance(level, int):
        raise ValidationError(f"Unknown log level: {value!r}")
    return level


def _configure_logging(level: Any) -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=_log_level(level),
    )


def run_clone(request: CloneRequest) -> int:
    """Clone, report and clean up; returns the process exit code."""
    target = select_checkout_target(request)
    if target is None:
        logger.warning("No checkout parameter found")

    try:
        with provision_ssh_key(request.ssh_key) as key_path:
            outcome = clone_repository(request, target, key_path)
    except OSError as exc:
        logger.error("Could not provision the SSH key: %s", exc)
        return 1

    logger.info("Clone Is Success?: %s", outcome.success)
    logger.info("Cloned commit hash: %s", outcome.commit_hash)
    if not outcome.success:
        return 1

    if outcome.metadata is not None:
        try:
            publish_outputs(outcome.metadata)
            if request.report_path:
                write_report(request.report_path, outcome.metadata)
        except (OutputError, OSError) as exc:
            logger.error("Could not publish clone results: %s", exc)
            return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(Path(args.config)) if args.config else {}
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        _configure_logging(args.log_level or config.get("log_level"))
        request = resolve_request(merge_options(args, config), os.environ)
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return 1

    print(describe_request(request))
    return run_clone(request)


if __name__ == "__main__":
    raise SystemExit(main())
