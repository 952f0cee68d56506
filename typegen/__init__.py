"""Generate TypeScript declarations and axios clients from Apifox OpenAPI exports."""

from __future__ import annotations

__version__ = "0.3.0"

from .codegen import write_module
from .config import GeneratorConfig, RequestConfig, load_config
from .context_builder import Module, build_context, build_module
from .errors import ConfigError, ModuleError, SpecError, TranslationError, TypegenError
from .loader import fetch_spec, load_spec

__all__ = [
    "ConfigError",
    "GeneratorConfig",
    "Module",
    "ModuleError",
    "RequestConfig",
    "SpecError",
    "TranslationError",
    "TypegenError",
    "build_context",
    "build_module",
    "fetch_spec",
    "load_config",
    "load_spec",
    "write_module",
]
