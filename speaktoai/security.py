"""Integrity and size checks for configuration and temporary files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from speaktoai.config import Config


class IntegrityError(Exception):
    """A security check on a file failed."""


def _file_hash(filename: str | Path) -> str:
    digest = hashlib.sha256()
    with open(filename, "rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_config_integrity(filename: str | Path, config: Config) -> None:
    """Check the file's SHA-256 against the stored hash when the check is enabled."""
    if not config.security.check_integrity or not config.security.config_hash:
        return
    try:
        actual = _file_hash(filename)
    except OSError as err:
        raise IntegrityError(f"failed to calculate config file hash: {err}") from err
    if actual != config.security.config_hash:
        raise IntegrityError("config file integrity check failed: hash mismatch")


def update_config_hash(filename: str | Path, config: Config) -> None:
    """Store the file's SHA-256 hash in the configuration."""
    try:
        config.security.config_hash = _file_hash(filename)
    except OSError as err:
        raise IntegrityError(f"failed to calculate config file hash: {err}") from err


def enforce_file_size_limit(filename: str | Path, config: Config) -> None:
    """Raise IntegrityError if the file is larger than the configured maximum."""
    size = os.stat(filename).st_size
    limit = config.security.max_temp_file_size
    if size > limit:
        raise IntegrityError(
            f"file size exceeds limit: {size} bytes (limit: {limit} bytes)"
        )