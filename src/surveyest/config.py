from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import SimpleNamespace
from typing import Mapping, Optional

from .norms.registry import DEFAULT_DATA_DIR, NormRegistry
from .rules.engine import EngineOptions


_BOOLEAN_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration assembled from environment variables and CLI options."""

    data_dir: Path
    norm_version: Optional[str]
    strict_mode: bool
    auto_select: bool
    include_reference: bool
    output_path: Optional[Path]
    verbose: bool = False

    def engine_options(self) -> EngineOptions:
        return EngineOptions(
            strict_mode=self.strict_mode,
            auto_select_highest_priority=self.auto_select,
            enable_logging=self.verbose,
            include_reference_variants=self.include_reference,
        )

    def build_registry(self) -> NormRegistry:
        return NormRegistry(data_dir=self.data_dir, version_override=self.norm_version)


def _to_path(value: object | None) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser().resolve()
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser().resolve()


def _flag(value: object | None, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return default
    return text in _BOOLEAN_TRUE


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a runtime :class:`Config` from environment variables and CLI options."""

    data_dir = _to_path(env.get("NORM_DATA_DIR")) or DEFAULT_DATA_DIR
    norm_version = (env.get("NORM_VERSION") or "").strip() or None
    strict_mode = _flag(env.get("RULES_STRICT_MODE"))
    auto_select = _flag(env.get("RULES_AUTO_SELECT"), default=True)
    include_reference = _flag(env.get("RULES_INCLUDE_REFERENCE"), default=True)
    output_path = _to_path(env.get("OUTPUT_PATH"))
    verbose = _flag(env.get("RULES_VERBOSE"))

    cli_ns = _namespace(cli_args)
    if getattr(cli_ns, "data_dir", None):
        data_dir = _to_path(cli_ns.data_dir) or data_dir
    if getattr(cli_ns, "norm_version", None):
        norm_version = str(cli_ns.norm_version)
    if getattr(cli_ns, "strict", False):
        strict_mode = True
    if getattr(cli_ns, "output", None):
        output_path = _to_path(cli_ns.output)
    if getattr(cli_ns, "verbose", False):
        verbose = bool(cli_ns.verbose)

    return Config(
        data_dir=data_dir,
        norm_version=norm_version,
        strict_mode=strict_mode,
        auto_select=auto_select,
        include_reference=include_reference,
        output_path=output_path,
        verbose=verbose,
    )


__all__ = ["Config", "load_config"]
