"""ggmlsys tooling: CPU and backend detection, native build, bindings and link planning for ggml."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION = "ggmlsys-tooling"


def package_version() -> str | None:
    """Installed distribution version, or None when running from a bare checkout."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return None


__version__ = package_version() or "0.0.0"
