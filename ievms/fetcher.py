"""Integrity-verified downloads for ievms."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from ievms.exceptions import ChecksumExhausted
from ievms.models import ArtifactState, LocalArtifact
from ievms.utils import download_file, log, md5sum


class Fetcher:
    """Download artifacts and verify them against an expected MD5.

    An existing file with the right hash is reused without touching the
    network. A file with the wrong hash is deleted and downloaded again, up
    to ``max_attempts`` downloads. Transport errors are not retried.
    """

    def __init__(self, curl_opts: Optional[List[str]] = None, max_attempts: int = 3) -> None:
        self.curl_opts = list(curl_opts or [])
        self.max_attempts = max_attempts

    def _verify(self, path: Path, expected_md5: str) -> bool:
        actual = md5sum(path)
        if actual != expected_md5:
            log("WARN", f"MD5 check failed for {path} (wanted {expected_md5}, got {actual})")
            return False
        log("INFO", f"MD5 check succeeded for {path}")
        return True

    def fetch(self, name: str, url: str, destination: Path, expected_md5: str) -> LocalArtifact:
        expected = expected_md5.strip().lower()
        artifact = LocalArtifact(path=destination)

        if destination.exists():
            log("INFO", f"Found {name} at {destination} - verifying before download")
            if self._verify(destination, expected):
                artifact.state = ArtifactState.VERIFIED
                return artifact
            artifact.state = ArtifactState.CORRUPT
            log("WARN", f"Check failed - redownloading {name}")
            destination.unlink()
            artifact.state = ArtifactState.ABSENT

        for attempt in range(1, self.max_attempts + 1):
            log("INFO", f"Downloading {name} from {url} to {destination} (attempt {attempt} of {self.max_attempts})")
            artifact.state = ArtifactState.DOWNLOADING
            download_file(url, destination, self.curl_opts)
            artifact.state = ArtifactState.DOWNLOADED
            if self._verify(destination, expected):
                artifact.state = ArtifactState.VERIFIED
                return artifact
            artifact.state = ArtifactState.CORRUPT
            destination.unlink(missing_ok=True)
            if attempt < self.max_attempts:
                log("INFO", f"Redownloading {name}")

        raise ChecksumExhausted(
            f"Failed to download {url} to {destination} (attempt {self.max_attempts} of {self.max_attempts})"
        )
