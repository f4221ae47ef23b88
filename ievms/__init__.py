"""ievms package."""

__all__ = [
    "bringup",
    "catalog",
    "cli",
    "config",
    "constants",
    "exceptions",
    "fetcher",
    "host",
    "materializer",
    "models",
    "pipeline",
    "provision",
    "utils",
    "virtualbox",
]
