"""Custom exceptions for ievms."""

from __future__ import annotations

from typing import List, Optional


class IevmsError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""


class UnsupportedHost(IevmsError):
    pass


class MissingDependency(IevmsError):
    pass


class UnknownIdentifier(IevmsError):
    pass


class DownloadTransportFailure(IevmsError):
    """The transport itself failed; the whole run is aborted."""


class ChecksumExhausted(IevmsError):
    """Every download attempt produced an artifact with the wrong hash."""


class ExtractionFailure(IevmsError):
    pass


class CatalogLookupFailure(IevmsError):
    pass


class ShutdownTimeout(IevmsError):
    pass


class HostCommandFailure(IevmsError):
    """A VBoxManage invocation exited non-zero."""

    def __init__(self, cmd: List[str], returncode: int, stderr: Optional[str] = None) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"'{' '.join(cmd)}' failed with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)
