"""Command-line interface: apifox-typegen.

Loads the config, fetches the spec, picks modules (interactively or from
--modules) and writes one .d.ts (plus an optional axios client) per module.

Exit status is 1 when the config or spec is unusable, or when any selected
module failed to generate.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click

from . import __version__
from .codegen import write_module
from .config import GeneratorConfig, load_config
from .context_builder import build_module
from .errors import ConfigError, ModuleError, SpecError, TypegenError
from .loader import fetch_spec, get_tags, iter_operations
from .naming import dedupe_names
from .translator import AlibabaTranslator, Translator, translate_labels

logger = logging.getLogger(__name__)

_ENGLISH_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9]*$")

_BOX_WIDTH = 80


@dataclass
class ModuleChoice:
    label: str
    name: str


def error_box(title: str, content: str) -> str:
    line = click.style("─" * _BOX_WIDTH, fg="bright_black")
    badge = click.style(" ERROR ", bg="red", fg="white", bold=True)
    heading = click.style(title, fg="red", bold=True)
    return f"\n{line}\n  {badge} {heading}\n{line}\n\n{content}\n\n{line}"


def _fail(title: str, exc: Exception) -> NoReturn:
    click.echo(error_box(title, str(exc)), err=True)
    raise SystemExit(1)


def _make_translator(config: GeneratorConfig) -> Translator | None:
    if not config.alibaba_cloud.complete:
        logger.debug("No Alibaba Cloud credentials; module names come from tag labels")
        return None
    try:
        return AlibabaTranslator(config.alibaba_cloud)
    except ConfigError as exc:
        logger.warning("Translation disabled: %s", exc)
        return None


def validate_english_name(value: str) -> str:
    value = value.strip()
    if not _ENGLISH_NAME_RE.match(value):
        raise click.BadParameter("Name must start with a letter and contain only letters and numbers")
    return value


def parse_selection(answer: str, modules: list[ModuleChoice]) -> list[ModuleChoice]:
    """Resolve comma-separated 1-based indexes, labels or names to modules."""
    answer = answer.strip()
    if answer.lower() in ("", "all", "*"):
        return list(modules)

    selected: list[ModuleChoice] = []
    for token in (t.strip() for t in answer.split(",")):
        if not token:
            continue
        match: ModuleChoice | None = None
        if token.isdigit() and 1 <= int(token) <= len(modules):
            match = modules[int(token) - 1]
        else:
            match = next((m for m in modules if token in (m.label, m.name)), None)
        if match is None:
            raise click.BadParameter(f"Unknown module: {token}")
        if match not in selected:
            selected.append(match)
    return selected


def _prompt_modules(modules: list[ModuleChoice], default: str = "all") -> list[ModuleChoice]:
    click.secho("Modules:", bold=True)
    for index, module in enumerate(modules, start=1):
        click.echo(f"  {index:>2}. {module.label} ({module.name})")
    return click.prompt(
        "Select modules (comma-separated numbers or names, 'all' for every module)",
        default=default,
        value_proc=lambda answer: parse_selection(answer, modules),
    )


def _interactive(
    config: GeneratorConfig,
    modules: list[ModuleChoice],
    requested: str | None = None,
) -> tuple[GeneratorConfig, list[ModuleChoice]]:
    output_dir = click.prompt("Enter output directory", default=str(config.output_dir))
    selected = _prompt_modules(modules, default=requested or "all")
    for module in selected:
        module.name = click.prompt(
            f'Confirm or modify English name for "{module.label}"',
            default=module.name,
            value_proc=validate_english_name,
        )
    type_prefix = click.prompt("Enter type prefix (e.g., Api)", default=config.type_prefix)
    config = config.model_copy(update={"output_dir": Path(output_dir), "type_prefix": type_prefix})
    return config, selected


def _select_non_interactive(
    modules: list[ModuleChoice],
    requested: str | None,
) -> tuple[list[ModuleChoice], list[ModuleError]]:
    if not requested:
        return list(modules), []
    selected: list[ModuleChoice] = []
    errors: list[ModuleError] = []
    for token in (t.strip() for t in requested.split(",")):
        if not token:
            continue
        match = next((m for m in modules if token in (m.label, m.name)), None)
        if match is None:
            errors.append(ModuleError("not found among the spec's tags", token))
        elif match not in selected:
            selected.append(match)
    return selected, errors


def _dedupe_names(selected: list[ModuleChoice]) -> None:
    """Suffix repeated module names so no two modules share an output file."""
    for module, renamed in zip(selected, dedupe_names([m.name for m in selected])):
        if renamed != module.name:
            logger.warning("Module name %s used twice; writing %r as %s", module.name, module.label, renamed)
            module.name = renamed


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-u", "--url", help="OpenAPI export URL (or local file).")
@click.option("-o", "--output", "output_dir", help="Output directory for .d.ts files.")
@click.option("-p", "--prefix", "type_prefix", help="Prefix for generated type names.")
@click.option("-m", "--modules", help="Modules to generate (comma-separated tags or names).")
@click.option(
    "-c", "--config", "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to a config file instead of searching for one.",
)
@click.option("--no-interactive", "non_interactive", is_flag=True, help="Run without prompts.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="apifox-typegen")
def main(
    url: str | None,
    output_dir: str | None,
    type_prefix: str | None,
    modules: str | None,
    config_file: Path | None,
    non_interactive: bool,
    verbose: bool,
) -> None:
    """Generate TypeScript types from an Apifox OpenAPI specification."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(
            config_file=config_file,
            overrides={"url": url, "output_dir": output_dir, "type_prefix": type_prefix},
        )
    except ConfigError as exc:
        _fail("Configuration", exc)

    try:
        spec = fetch_spec(config.url)
    except SpecError as exc:
        _fail("Spec", exc)

    operations = iter_operations(spec)
    labels = get_tags(spec)
    if not labels:
        _fail("Spec", SpecError("No tags found in OpenAPI specification", config.url))

    names = asyncio.run(translate_labels(labels, _make_translator(config)))
    choices = [ModuleChoice(label=label, name=names[label]) for label in labels]

    errors: list[TypegenError] = []
    if non_interactive:
        selected, missing = _select_non_interactive(choices, modules)
        errors.extend(missing)
    else:
        config, selected = _interactive(config, choices, modules)
    _dedupe_names(selected)

    for module in selected:
        try:
            built = build_module(spec, module.label, module.name, config.type_prefix, operations)
            written = write_module(built, config)
        except ModuleError as exc:
            errors.append(exc)
            continue
        except OSError as exc:
            errors.append(ModuleError(f"could not write output: {exc}", module.label))
            continue
        for path in written:
            click.secho(f"Generated types for {module.label} -> {path}", fg="green")

    for error in errors:
        click.secho(f"✖ {error}", fg="red", err=True)
    if errors:
        raise SystemExit(1)
