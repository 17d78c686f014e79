"""SSH key provisioning for authenticated git transport."""

from __future__ import annotations

import logging
import os
import shlex
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional

logger = logging.getLogger(__name__)

KEY_RELATIVE_PATH = Path(".ssh") / "git-clone-step"

_SSH_BASE_OPTIONS = (
    "-o",
    "StrictHostKeyChecking=no",
    "-o",
    "UserKnownHostsFile=/dev/null",
    "-o",
    "BatchMode=yes",
)


def key_file_path(home: Optional[Path] = None) -> Path:
    base = Path(home) if home is not None else Path.home()
    return base / KEY_RELATIVE_PATH


def write_private_key(key_material: str, home: Optional[Path] = None) -> Path:
    """Write the key to its fixed path under ``home`` with owner-only permissions."""
    path = key_file_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(key_material)
    # O_CREAT's mode does not apply to a file that already existed.
    os.chmod(path, 0o600)
    return path


def remove_private_key(path: Path) -> None:
    logger.info("Removing private key file: %s", path)
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("Could not remove private key file %s: %s", path, exc)


@contextmanager
def provision_ssh_key(key_material: Optional[str], home: Optional[Path] = None) -> Iterator[Optional[Path]]:
    """Persist the key for the duration of the block and always remove it afterwards.

    Yields None when no key material is given; git then relies on ambient
    credentials (ssh-agent, public access).
    """
    if not key_material:
        logger.info("No SSH key provided, trying without authentication")
        yield None
        return

    path = key_file_path(home)
    try:
        write_private_key(key_material, home)
        yield path
    finally:
        remove_private_key(path)


def ssh_command(key_path: Optional[Path] = None) -> str:
    """Build a non-interactive ssh command line for ``GIT_SSH_COMMAND``."""
    parts = ["ssh", *_SSH_BASE_OPTIONS]
    if key_path is not None:
        parts.extend(["-i", str(key_path), "-o", "IdentitiesOnly=yes"])
    return " ".join(shlex.quote(part) for part in parts)


def git_environment(
    key_path: Optional[Path] = None,
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Environment for git network commands that must never prompt."""
    env = dict(os.environ if base is None else base)
    env["GIT_ASKPASS"] = "echo"
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GIT_SSH_COMMAND"] = ssh_command(key_path)
    return env
