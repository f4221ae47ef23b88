"""Provisioning pipeline for ievms."""

from __future__ import annotations

from typing import List, Optional, Sequence

from ievms.catalog import Resolver
from ievms.config import load_image_table
from ievms.exceptions import DownloadTransportFailure, IevmsError
from ievms.fetcher import Fetcher
from ievms.host import HostInfo, HostManager
from ievms.materializer import Materializer
from ievms.models import IevmsConfig, Outcome, ProvisionResult
from ievms.provision import Provisioner
from ievms.utils import log
from ievms.virtualbox import VirtualBox


class Pipeline:
    """Resolve, fetch, extract and provision each requested image in order.

    By default the first error ends the run. With ``keep_going`` set, an
    identifier that fails is recorded and the next one starts; transport
    failures still end the run because nothing later can download either.
    """

    def __init__(
        self,
        cfg: IevmsConfig,
        vbox: Optional[VirtualBox] = None,
        resolver: Optional[Resolver] = None,
        fetcher: Optional[Fetcher] = None,
        provisioner: Optional[Provisioner] = None,
        host_manager: Optional[HostManager] = None,
    ) -> None:
        self.cfg = cfg
        self.vbox = vbox or VirtualBox()
        self.resolver = resolver or Resolver(cfg, load_image_table(cfg.images_path))
        self.fetcher = fetcher or Fetcher(cfg.curl_opts, cfg.download_attempts)
        self.provisioner = provisioner or Provisioner(self.vbox, cfg)
        self.host_manager = host_manager or HostManager(cfg, self.vbox, self.fetcher)
        self.materializer = Materializer(cfg.install_path)
        self.results: List[ProvisionResult] = []

    def prepare(self) -> HostInfo:
        host = self.host_manager.prepare()
        self.materializer = Materializer(self.cfg.install_path, host.unar)
        return host

    def build(self, identifier: str) -> ProvisionResult:
        entry = self.resolver.resolve(identifier)

        if self.provisioner.existing(entry.vm_name) is not None:
            log("INFO", f"Found {entry.vm_name} VM - skipping")
            return ProvisionResult(identifier, Outcome.SKIPPED, vm_name=entry.vm_name)

        image = self.cfg.install_path / entry.image_name
        log("INFO", f"Checking for existing OVA at {image}")
        if not image.exists():
            archive = self.cfg.install_path / entry.archive_name
            self.fetcher.fetch("OVA ZIP", entry.url, archive, entry.md5)
            image = self.materializer.materialize(archive)

        self.provisioner.provision(entry, image)
        return ProvisionResult(identifier, Outcome.PROVISIONED, vm_name=entry.vm_name)

    def run(self, identifiers: Optional[Sequence[str]] = None) -> List[ProvisionResult]:
        self.prepare()
        self.results = []
        for identifier in identifiers if identifiers is not None else self.cfg.versions:
            log("INFO", f"Building IE {identifier} VM")
            try:
                result = self.build(identifier)
            except DownloadTransportFailure:
                raise
            except IevmsError as exc:
                if not self.cfg.keep_going:
                    raise
                log("ERROR", f"IE {identifier}: {exc}")
                result = ProvisionResult(identifier, Outcome.FAILED, error=str(exc))
            self.results.append(result)
        return self.results
