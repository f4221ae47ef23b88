"""Archive extraction for ievms."""

from __future__ import annotations

from pathlib import Path

from ievms.constants import ARCHIVE_SUFFIX, IMAGE_SUFFIX
from ievms.exceptions import ExtractionFailure, MissingDependency
from ievms.utils import log, run


def image_name_for(archive_name: str) -> str:
    """Map an archive name to the image it contains.

    ``IE8.Win7.VirtualBox.zip`` -> ``IE8 - Win7.ova``. Downstream steps find
    the image by this name alone, so the rule must stay exact.
    """
    name = archive_name.replace(".", " - ", 1)
    if name.endswith(ARCHIVE_SUFFIX):
        name = name[: -len(ARCHIVE_SUFFIX)]
    return name + IMAGE_SUFFIX


class Materializer:
    def __init__(self, install_path: Path, unar: str = "unar") -> None:
        self.install_path = install_path
        self.unar = unar

    def image_path(self, archive_path: Path) -> Path:
        return self.install_path / image_name_for(archive_path.name)

    def materialize(self, archive_path: Path) -> Path:
        target = self.image_path(archive_path)
        if target.exists():
            log("INFO", f"Found existing image at {target} - skipping extraction")
            return target
        if not archive_path.exists():
            raise ExtractionFailure(f"Archive {archive_path} does not exist")

        log("INFO", f"Extracting OVA from {archive_path}")
        try:
            result = run([self.unar, "-o", str(self.install_path), str(archive_path)], check=False)
        except FileNotFoundError:
            raise MissingDependency(f"Extraction utility '{self.unar}' not found")
        if result.returncode != 0:
            raise ExtractionFailure(
                f"Failed to extract {archive_path} to {target}, unar command returned error code {result.returncode}"
            )
        if not target.exists():
            raise ExtractionFailure(f"Extracting {archive_path} did not produce {target}")
        log("SUCCESS", f"Extracted {target.name}")
        return target
