"""Utility functions for ievms."""

from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from ievms.constants import _LOG_VERBOSE, IEVMS_VERSION, TRUTHY
from ievms.exceptions import DownloadTransportFailure, IevmsError

# curl exit code when the server refuses a byte-range request.
_CURL_RANGE_ERROR = 33


def log(level: str, message: str) -> None:
    """Lightweight structured logging with a coloured level tag."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}{level}:{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise IevmsError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise IevmsError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise IevmsError(f"{name} must be <= {max_val} (got {value})")
    return value


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def has_command(name: str) -> bool:
    return shutil.which(name) is not None


def md5sum(path: Path) -> str:
    digest = hashlib.md5()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fetch_text(url: str, curl_opts: Optional[List[str]] = None) -> str:
    """Fetch a small text resource (catalog, hash list, index page) into memory.

    Goes through the same curl transport as :func:`download_file` so that
    ``CURL_OPTS`` (proxies, ``--insecure``) applies to every request.
    """
    cmd = ["curl", "-sL", "--fail", "-A", f"ievms/{IEVMS_VERSION}", *(curl_opts or []), url]
    try:
        result = run(cmd, check=False, capture_output=True)
    except FileNotFoundError:
        raise DownloadTransportFailure("curl is required to download artifacts but was not found on PATH")
    if result.returncode != 0:
        raise DownloadTransportFailure(f"Failed to fetch {url} using 'curl', error code ({result.returncode})")
    return result.stdout


def download_file(url: str, destination: Path, curl_opts: Optional[List[str]] = None) -> None:
    """Download ``url`` to ``destination`` with curl, resuming a partial download.

    Bytes land in ``<destination>.part`` first, so an interrupted transfer can be
    continued by the next run; the part file is renamed only once curl succeeds.
    """
    partial = destination.with_name(destination.name + ".part")
    base_cmd = ["curl", "-L", "--fail", *(curl_opts or []), "-o", str(partial)]
    resume = partial.exists()
    if resume:
        log("INFO", f"Resuming partial download {partial} ({partial.stat().st_size} bytes)")
    try:
        result = run(base_cmd + (["-C", "-"] if resume else []) + [url], check=False)
        if result.returncode == _CURL_RANGE_ERROR and resume:
            log("WARN", "Server does not support resuming; restarting download")
            partial.unlink(missing_ok=True)
            result = run(base_cmd + [url], check=False)
    except FileNotFoundError:
        raise DownloadTransportFailure("curl is required to download artifacts but was not found on PATH")
    if result.returncode != 0:
        raise DownloadTransportFailure(
            f"Failed to download {url} to {destination} using 'curl', error code ({result.returncode})"
        )
    partial.replace(destination)


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, check=check, text=True, **kwargs)
    return result
