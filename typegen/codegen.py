"""Render templates and write generated output.

Takes the context from context_builder and produces <module>.d.ts and,
when a request config is set, the <module>.ts axios client.
"""

from __future__ import annotations

import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any

import jinja2

from .config import GeneratorConfig
from .context_builder import Module, build_context

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=1)
def _environment() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=jinja2.StrictUndefined,
        autoescape=False,
    )


def render_types(context: dict[str, Any]) -> str:
    """Render the .d.ts declarations of one module."""
    return _environment().get_template("types.d.ts.j2").render(**context)


def render_client(context: dict[str, Any]) -> str:
    """Render the axios client of one module."""
    return _environment().get_template("client.ts.j2").render(**context)


def write_text_atomic(path: Path, content: str) -> None:
    """Write content to path through a temporary sibling and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_module(module: Module, config: GeneratorConfig) -> list[Path]:
    """Render and write every output file of a module.

    All files are rendered before any is written, so a template error leaves
    the output directories untouched.
    """
    context = build_context(module, config.request_config)
    outputs: list[tuple[Path, str]] = [
        (config.output_dir / f"{module.name}.d.ts", render_types(context)),
    ]
    if config.request_config is not None:
        outputs.append((
            config.request_config.services_path / f"{module.name}.ts",
            render_client(context),
        ))

    written: list[Path] = []
    for path, content in outputs:
        write_text_atomic(path, content)
        logger.info("Generated %s (%d operations)", path, context["operation_count"])
        written.append(path)
    return written
