"""Build inputs, environment variable names and path layout.

The environment is read exactly once, into a frozen BuildInputs value, and that
value is passed to every component. Names and paths have defaults suited to a
checkout with ggml vendored under ``ggml/``; override them per project in
``ggmlsys.yaml``::

    features: [vulkan, blas]
    layout:
      out_dir: build/native
    env:
      target: MY_TARGET_TRIPLE
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = "ggmlsys.yaml"

DEFAULT_ENV_VARS: dict[str, str] = {
    "target_os": "GGMLSYS_TARGET_OS",
    "target": "GGMLSYS_TARGET",
    "host": "GGMLSYS_HOST",
    "target_features": "GGMLSYS_TARGET_FEATURES",
    "docs_marker": "READTHEDOCS",
    "toolchain_root": "ROCM_PATH",
}

DEFAULT_LAYOUT: dict[str, str] = {
    "source_dir": "ggml",
    "include_dir": "ggml/include",
    "codegen_dir": "ggml/src",
    "out_dir": "target/ggmlsys",
    "bindings_output": "ggml_sys/bindings.py",
}

DEFAULT_TOOLCHAIN_ROOT = "/opt/rocm"

_MACHINE_ALIASES = {"amd64": "x86_64", "x64": "x86_64", "arm64": "aarch64", "i86pc": "x86_64"}


def resolve_env_vars(env_vars: Mapping[str, Any] | None) -> dict[str, str]:
    """Return env var name mapping with defaults filled. Unknown keys are ignored."""
    out = dict(DEFAULT_ENV_VARS)
    if env_vars:
        out.update({k: str(v) for k, v in env_vars.items() if k in out})
    return out


def resolve_layout(layout: Mapping[str, Any] | None) -> dict[str, str]:
    """Return layout dict with defaults filled. Paths are relative to project_root."""
    out = dict(DEFAULT_LAYOUT)
    if layout:
        out.update({k: str(v) for k, v in layout.items() if k in out})
    return out


def load_project_config(config_path: Path) -> dict[str, Any]:
    """Load ggmlsys.yaml. Returns {"features": [...], "layout": {...}, "env": {...}}.

    A missing file yields empty settings; a malformed one raises ValueError.
    """
    if not config_path.is_file():
        return {"features": [], "layout": {}, "env": {}}
    with config_path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        msg = f"{config_path}: expected a mapping at top level"
        raise ValueError(msg)
    features = data.get("features") or []
    if isinstance(features, str):
        features = [t for t in features.split(",") if t.strip()]
    layout = data.get("layout") or {}
    env = data.get("env") or {}
    if not isinstance(layout, dict) or not isinstance(env, dict):
        msg = f"{config_path}: 'layout' and 'env' must be mappings"
        raise ValueError(msg)
    return {
        "features": [str(f).strip() for f in features],
        "layout": layout,
        "env": env,
    }


def os_from_triple(triple: str) -> str:
    """Target OS implied by a triple: macos, linux, windows, or the triple's last component."""
    parts = triple.lower().split("-")
    if "darwin" in parts or "macos" in parts:
        return "macos"
    if any(p.startswith("linux") for p in parts):
        return "linux"
    if "windows" in parts:
        return "windows"
    return parts[-1] if len(parts) > 1 else "unknown"


def native_triple() -> tuple[str, str]:
    """(triple, target_os) for the running machine, e.g. ("x86_64-unknown-linux-gnu", "linux")."""
    machine = platform.machine().lower() or "unknown"
    arch = _MACHINE_ALIASES.get(machine, machine)
    system = platform.system()
    if system == "Linux":
        return f"{arch}-unknown-linux-gnu", "linux"
    if system == "Darwin":
        return f"{arch}-apple-darwin", "macos"
    if system == "Windows":
        return f"{arch}-pc-windows-msvc", "windows"
    name = system.lower() or "unknown"
    return f"{arch}-unknown-{name}", name


@dataclass(frozen=True)
class BuildInputs:
    """Everything the pipeline takes from the environment, captured once.

    Required values may be None here; PlatformProbe rejects them. The docs
    marker is checked before anything else so a docs build never needs them.
    """

    target_os: str | None
    target_triple: str | None
    host_triple: str | None
    declared_features: str | None = None
    docs_build: bool = False
    toolchain_root: str = DEFAULT_TOOLCHAIN_ROOT

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str],
        env_vars: Mapping[str, Any] | None = None,
        overrides: Mapping[str, str | None] | None = None,
    ) -> BuildInputs:
        """Snapshot environ. overrides (keys of DEFAULT_ENV_VARS) win over the environment when not None."""
        names = resolve_env_vars(env_vars)
        values: dict[str, str | None] = {key: environ.get(name) for key, name in names.items()}
        for key, value in (overrides or {}).items():
            if key in values and value is not None:
                values[key] = value
        inputs = cls(
            target_os=values["target_os"] or None,
            target_triple=values["target"] or None,
            host_triple=values["host"] or None,
            declared_features=values["target_features"],
            docs_build=values["docs_marker"] is not None,
            toolchain_root=values["toolchain_root"] or DEFAULT_TOOLCHAIN_ROOT,
        )
        log.debug("build inputs: %s", inputs)
        return inputs

    def with_native_defaults(self) -> BuildInputs:
        """Fill missing target/host/target_os from the running machine."""
        triple, host_os = native_triple()
        target_os = self.target_os
        if not target_os:
            target_os = os_from_triple(self.target_triple) if self.target_triple else host_os
        return BuildInputs(
            target_os=target_os,
            target_triple=self.target_triple or triple,
            host_triple=self.host_triple or triple,
            declared_features=self.declared_features,
            docs_build=self.docs_build,
            toolchain_root=self.toolchain_root,
        )
