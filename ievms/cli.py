"""CLI entry points for ievms."""

from __future__ import annotations

import argparse
import dataclasses
from typing import List, Optional

from ievms.catalog import Resolver, StaticCatalog, vm_name_for
from ievms.config import load_image_table, parse_env
from ievms.exceptions import IevmsError
from ievms.models import IevmsConfig, ImageId, Outcome, ProvisionResult
from ievms.pipeline import Pipeline
from ievms.utils import log


def list_images(cfg: IevmsConfig) -> None:
    """Print the supported identifiers and the machines they produce."""
    resolver = Resolver(cfg, load_image_table(cfg.images_path), source=StaticCatalog())
    for image_id in ImageId:
        profile = resolver.profile_for(image_id)
        print(f"  {image_id.value:<4}  {vm_name_for(profile)}  (os={profile.os}, unit={profile.unit})")


def show_config(cfg: IevmsConfig) -> None:
    """Print the resolved configuration and exit."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if isinstance(value, list):
            value = " ".join(str(item) for item in value)
        print(f"  {field.name}: {value}")


def dry_run(cfg: IevmsConfig) -> int:
    """Resolve every requested identifier without touching the host."""
    resolver = Resolver(cfg, load_image_table(cfg.images_path))
    for identifier in cfg.versions:
        entry = resolver.resolve(identifier)
        log("INFO", f"IE {identifier}: {entry.vm_name} (unit {entry.unit})")
        log("INFO", f"  archive: {cfg.install_path / entry.archive_name}")
        log("INFO", f"  url:     {entry.url}")
        log("INFO", f"  md5:     {entry.md5}")
    log("INFO", "=== Dry-run complete (nothing downloaded or imported) ===")
    return 0


def print_summary(results: List[ProvisionResult]) -> None:
    for result in results:
        name = result.vm_name or "-"
        if result.outcome == Outcome.FAILED:
            log("ERROR", f"IE {result.identifier}: failed ({result.error})")
        elif result.outcome == Outcome.SKIPPED:
            log("INFO", f"IE {result.identifier}: {name} already provisioned")
        else:
            log("SUCCESS", f"IE {result.identifier}: {name} provisioned")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Provision Internet Explorer / Edge test VMs in VirtualBox")
    parser.add_argument("--list-images", action="store_true", help="List supported IE versions and exit")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    parser.add_argument("--dry-run", action="store_true", help="Resolve download locations, then exit")
    args = parser.parse_args(argv)

    try:
        cfg = parse_env()
    except IevmsError as exc:
        log("ERROR", str(exc))
        return 1

    if args.show_config:
        show_config(cfg)
        return 0

    try:
        if args.list_images:
            list_images(cfg)
            return 0
        if args.dry_run:
            return dry_run(cfg)

        pipeline = Pipeline(cfg)
        results = pipeline.run()
    except IevmsError as exc:
        log("ERROR", str(exc))
        return 1
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1

    print_summary(results)
    if any(result.outcome == Outcome.FAILED for result in results):
        return 1
    log("SUCCESS", "Done!")
    return 0
