"""Configuration loading and environment variable parsing for ievms."""

from __future__ import annotations

import platform
import shlex
from pathlib import Path
from typing import Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from ievms.constants import (
    CATALOG_SOURCES,
    CATALOG_URL,
    DEFAULT_IMAGES_PATH,
    DEFAULT_INSTALL_PATH,
    DEFAULT_VERSIONS,
)
from ievms.exceptions import IevmsError
from ievms.models import BringUp, IevmsConfig, ImageProfile
from ievms.utils import get_env, get_env_bool, parse_int_env

_REQUIRED_IMAGE_FIELDS = ("browser", "os", "unit", "url", "md5", "catalog_index")


def load_image_table(config_path: Optional[Path] = None) -> Dict[str, ImageProfile]:
    if config_path is None:
        config_path = DEFAULT_IMAGES_PATH
    if not config_path.exists():
        raise IevmsError(f"Image table missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise IevmsError(f"Image table {config_path} contains invalid YAML: {exc}")
    images = data.get("images") or {}
    if not isinstance(images, dict) or not images:
        raise IevmsError(f"No images defined in {config_path}")

    table: Dict[str, ImageProfile] = {}
    for key, info in images.items():
        missing = [name for name in _REQUIRED_IMAGE_FIELDS if name not in (info or {})]
        if missing:
            raise IevmsError(f"Image '{key}' in {config_path} is missing: {', '.join(missing)}")
        try:
            bringup = BringUp(info.get("bringup", BringUp.GUEST_ADDITIONS.value))
        except ValueError:
            supported = ", ".join(member.value for member in BringUp)
            raise IevmsError(f"Image '{key}' has unknown bringup '{info['bringup']}'. Supported: {supported}")
        table[key] = ImageProfile(
            key=key,
            browser=str(info["browser"]),
            os=str(info["os"]),
            unit=int(info["unit"]),
            url=str(info["url"]),
            md5=str(info["md5"]).lower(),
            catalog_index=int(info["catalog_index"]),
            catalog_file=int(info.get("catalog_file", 1)),
            hash_source=str(info.get("hash_source", "hash-list")),
            bringup=bringup,
            boot_wait=info.get("boot_wait"),
            vram=info.get("vram"),
        )
    return table


def parse_versions(raw: Optional[str]) -> List[str]:
    """Split IEVMS_VERSIONS, keeping request order and dropping repeats."""
    tokens = (raw or "").split()
    if not tokens:
        return list(DEFAULT_VERSIONS)
    versions: List[str] = []
    for token in tokens:
        if token not in versions:
            versions.append(token)
    return versions


def parse_env() -> IevmsConfig:
    install_raw = (get_env("INSTALL_PATH") or "").strip()
    install_path = Path(install_raw).expanduser() if install_raw else DEFAULT_INSTALL_PATH

    catalog_source = (get_env("IEVMS_CATALOG") or "static").strip().lower()
    if catalog_source not in CATALOG_SOURCES:
        supported = ", ".join(sorted(CATALOG_SOURCES))
        raise IevmsError(f"Unsupported IEVMS_CATALOG '{catalog_source}'. Supported: {supported}")

    # The remote catalog lists a real Win8.1 image, so reuse defaults off there.
    reuse_win7 = get_env_bool("REUSE_WIN7", catalog_source == "static")

    curl_opts_raw = get_env("CURL_OPTS", "") or ""
    try:
        curl_opts = shlex.split(curl_opts_raw)
    except ValueError as exc:
        raise IevmsError(f"Cannot parse CURL_OPTS '{curl_opts_raw}': {exc}")

    images_raw = (get_env("IEVMS_IMAGES_FILE") or "").strip()
    images_path = Path(images_raw).expanduser() if images_raw else DEFAULT_IMAGES_PATH

    return IevmsConfig(
        install_path=install_path,
        versions=parse_versions(get_env("IEVMS_VERSIONS")),
        reuse_win7=reuse_win7,
        curl_opts=curl_opts,
        catalog_source=catalog_source,
        catalog_url=(get_env("IEVMS_CATALOG_URL") or CATALOG_URL).strip(),
        images_path=images_path,
        kernel=platform.system(),
        download_attempts=parse_int_env("DOWNLOAD_ATTEMPTS", "3", min_val=1, max_val=20),
        sleep_wait=parse_int_env("SLEEP_WAIT", "5", min_val=1),
        os_boot_wait=parse_int_env("OS_BOOT_WAIT", "20", min_val=0),
        shutdown_timeout=parse_int_env("SHUTDOWN_TIMEOUT", "0", min_val=0),
        keep_going=get_env_bool("IEVMS_KEEP_GOING", False),
    )
