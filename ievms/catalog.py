"""Image identifier resolution for ievms.

An identifier ("8", "11", "EDGE", ...) is first mapped to a row of the static
image table; the row fixes the machine name, archive name and import unit.
The download URL and MD5 then come either from the same row (static source)
or from Microsoft's JSON VM catalog (remote source).
"""

from __future__ import annotations

import json
import re
from typing import Dict, List, Optional, Tuple

from ievms.constants import ARCHIVE_SUFFIX
from ievms.exceptions import CatalogLookupFailure, DownloadTransportFailure, IevmsError, UnknownIdentifier
from ievms.materializer import image_name_for
from ievms.models import CatalogEntry, IevmsConfig, ImageId, ImageProfile
from ievms.utils import fetch_text, log

_MD5_RE = re.compile(r"^[0-9a-f]{32}$")

# ImageId -> (table key without Win7 reuse, table key with Win7 reuse)
_VARIANTS: Dict[ImageId, Tuple[str, str]] = {
    ImageId.IE8: ("IE8-Win7", "IE8-Win7"),
    ImageId.IE9: ("IE9-Win7", "IE9-Win7"),
    ImageId.IE10: ("IE10-Win7", "IE10-Win7"),
    ImageId.IE11: ("IE11-Win81", "IE11-Win7"),
    ImageId.EDGE: ("MSEdge-Win10", "MSEdge-Win10"),
}


def vm_name_for(profile: ImageProfile) -> str:
    return f"{profile.browser} - {profile.os}"


def archive_name_for(vm_name: str) -> str:
    return vm_name.replace(" - ", ".", 1) + ARCHIVE_SUFFIX


def legacy_hash_url(reference_hash_url: str) -> str:
    """Derive the hash-list URL for the non-Edge images.

    The catalog's own md5 links are broken for every entry except Edge, so the
    Edge link is rewritten by splicing "vms" over characters 31-33. The offsets
    match the catalog layout observed when this was written.
    """
    return reference_hash_url[:31] + "vms" + reference_hash_url[34:]


def parse_identifier(identifier: str) -> ImageId:
    try:
        return ImageId(identifier)
    except ValueError:
        supported = " ".join(ImageId.tokens())
        raise UnknownIdentifier(f"Invalid IE version: {identifier} (supported: {supported})")


class StaticCatalog:
    """URLs and hashes straight from the image table."""

    def lookup(self, profile: ImageProfile) -> Tuple[str, str]:
        return profile.url, profile.md5


class RemoteCatalog:
    """URLs and hashes read from the remote JSON catalog, fetched once per run."""

    def __init__(self, url: str, table: Dict[str, ImageProfile], curl_opts: Optional[List[str]] = None) -> None:
        self.url = url
        self.table = table
        self.curl_opts = list(curl_opts or [])
        self._entries: Optional[List[dict]] = None
        self._hash_cache: Dict[str, str] = {}

    def _load(self) -> List[dict]:
        if self._entries is None:
            log("INFO", f"Querying VM catalog at {self.url}")
            try:
                payload = json.loads(fetch_text(self.url, self.curl_opts))
            except DownloadTransportFailure as exc:
                raise CatalogLookupFailure(str(exc)) from exc
            except json.JSONDecodeError as exc:
                raise CatalogLookupFailure(f"VM catalog at {self.url} is not valid JSON: {exc}") from exc
            if not isinstance(payload, list):
                raise CatalogLookupFailure(f"VM catalog at {self.url} is not a JSON list")
            self._entries = payload
        return self._entries

    def _file(self, index: int, file_index: int) -> dict:
        entries = self._load()
        try:
            descriptor = entries[index]["software"][0]["files"][file_index]
        except (IndexError, KeyError, TypeError):
            raise CatalogLookupFailure(f"VM catalog has no file #{file_index} for entry #{index}")
        if not isinstance(descriptor, dict):
            raise CatalogLookupFailure(f"VM catalog file #{file_index} for entry #{index} is malformed")
        return descriptor

    def _field(self, descriptor: dict, name: str, index: int) -> str:
        value = descriptor.get(name)
        if not isinstance(value, str) or not value:
            raise CatalogLookupFailure(f"VM catalog entry #{index} has no '{name}' field")
        return value

    def _hash_url(self, profile: ImageProfile) -> str:
        if profile.hash_source == "catalog":
            descriptor = self._file(profile.catalog_index, profile.catalog_file)
            return self._field(descriptor, "md5", profile.catalog_index)
        reference = next((p for p in self.table.values() if p.hash_source == "catalog"), None)
        if reference is None:
            raise CatalogLookupFailure("No image with a trusted catalog hash to derive hash-list URLs from")
        descriptor = self._file(reference.catalog_index, reference.catalog_file)
        return legacy_hash_url(self._field(descriptor, "md5", reference.catalog_index))

    def _fetch_hash(self, hash_url: str) -> str:
        if hash_url not in self._hash_cache:
            log("INFO", f"Grabbing md5 file {hash_url}")
            try:
                text = fetch_text(hash_url, self.curl_opts)
            except DownloadTransportFailure as exc:
                raise CatalogLookupFailure(str(exc)) from exc
            tokens = text.strip().lower().split()
            if not tokens or not _MD5_RE.match(tokens[0]):
                raise CatalogLookupFailure(f"No md5 found in {hash_url}")
            self._hash_cache[hash_url] = tokens[0]
        return self._hash_cache[hash_url]

    def lookup(self, profile: ImageProfile) -> Tuple[str, str]:
        descriptor = self._file(profile.catalog_index, profile.catalog_file)
        url = self._field(descriptor, "url", profile.catalog_index)
        return url, self._fetch_hash(self._hash_url(profile))


class Resolver:
    """Turn identifiers into immutable catalog entries, caching each result."""

    def __init__(self, cfg: IevmsConfig, table: Dict[str, ImageProfile], source=None) -> None:
        self.cfg = cfg
        self.table = table
        if source is None:
            if cfg.catalog_source == "remote":
                source = RemoteCatalog(cfg.catalog_url, table, cfg.curl_opts)
            else:
                source = StaticCatalog()
        self.source = source
        self._cache: Dict[ImageId, CatalogEntry] = {}

    def profile_for(self, image_id: ImageId) -> ImageProfile:
        key = _VARIANTS[image_id][1 if self.cfg.reuse_win7 else 0]
        profile = self.table.get(key)
        if profile is None:
            raise IevmsError(f"Image table has no entry '{key}' for IE version {image_id.value}")
        return profile

    def resolve(self, identifier: str) -> CatalogEntry:
        image_id = parse_identifier(identifier)
        cached = self._cache.get(image_id)
        if cached is not None:
            return cached

        profile = self.profile_for(image_id)
        url, md5 = self.source.lookup(profile)
        vm_name = vm_name_for(profile)
        archive_name = archive_name_for(vm_name)
        entry = CatalogEntry(
            image_id=image_id,
            vm_name=vm_name,
            os_label=profile.os,
            archive_name=archive_name,
            image_name=image_name_for(archive_name),
            url=url,
            md5=md5.lower(),
            unit=profile.unit,
            bringup=profile.bringup,
            boot_wait=profile.boot_wait,
            vram=profile.vram,
        )
        self._cache[image_id] = entry
        return entry
