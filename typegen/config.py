"""Generator configuration: config file, environment, then CLI overrides.

Handles:
- Discovery of apifox.config.* / .apifoxrc* walking up from the start dir
- JSON and YAML config files (camelCase or snake_case keys)
- ALIBABA_CLOUD_ACCESS_KEY_ID / _SECRET and APIFOX_URL from the environment
- Path shorthand in config values (~, file://, leading / for project root)

Priority: CLI overrides > environment > config file > defaults

The file layer is validated by pydantic (ConfigFile); paths inside it are
resolved against the config file's directory through the validation context.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse
from urllib.request import url2pathname

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = (
    "apifox.config.json",
    "apifox.config.yaml",
    "apifox.config.yml",
    ".apifoxrc",
    ".apifoxrc.json",
    ".apifoxrc.yaml",
    ".apifoxrc.yml",
)

ENV_URL = "APIFOX_URL"
ENV_ACCESS_KEY_ID = "ALIBABA_CLOUD_ACCESS_KEY_ID"
ENV_ACCESS_KEY_SECRET = "ALIBABA_CLOUD_ACCESS_KEY_SECRET"

DEFAULT_OUTPUT_DIR = "src/types"
DEFAULT_TYPE_PREFIX = "Api"

EXAMPLE_CONFIG = """\
// apifox.config.json
{
  "url": "http://localhost:4523/export/openapi/2?version=3.0",
  "outputDir": "src/types",
  "typePrefix": "Api",
  "alibabaCloud": {
    "accessKeyId": "your-access-key-id",
    "accessKeySecret": "your-access-key-secret"
  },
  "requestConfig": {
    "importPath": "@/utils/request",
    "servicesPath": "src/services",
    "typesPath": "@/types"
  }
}"""

_WINDOWS_DRIVE_RE = re.compile(r"^[a-zA-Z]:[\\/]")

# Config files use camelCase keys; snake_case field names work too
_MODEL_CONFIG = ConfigDict(
    populate_by_name=True,
    frozen=True,
    extra="ignore",
    str_strip_whitespace=True,
)


def resolve_config_path(raw: str, config_dir: Path, project_root: Path) -> Path:
    """Resolve a path written in a config file.

    A leading single slash means project-relative (`/src/types`), while `//`
    forces a filesystem-absolute path. Relative paths resolve against the
    directory holding the config file.
    """
    value = (raw or "").strip()
    if not value:
        return Path(config_dir)
    if value.startswith("file://"):
        return Path(url2pathname(urlparse(value).path))
    if value.startswith("~"):
        return Path(os.path.normpath(Path.home() / value[1:].lstrip("/\\")))
    if _WINDOWS_DRIVE_RE.match(value):
        return Path(os.path.normpath(value))
    if value.startswith("//"):
        return Path(os.path.normpath("/" + value.lstrip("/")))
    if value.startswith("/"):
        return Path(os.path.normpath(Path(project_root) / value.lstrip("/")))
    if os.path.isabs(value):
        return Path(os.path.normpath(value))
    return Path(os.path.normpath(Path(config_dir) / value))


def _resolve_in_context(value: Any, info: ValidationInfo) -> Any:
    """Resolve a path string against the config_dir/project_root in context."""
    if not isinstance(value, str):
        return value
    if not value.strip():
        raise ValueError("must not be empty")
    if not info.context:
        return Path(value)
    return resolve_config_path(value, info.context["config_dir"], info.context["project_root"])


class AlibabaCloudCredentials(BaseModel):
    model_config = _MODEL_CONFIG

    access_key_id: str = Field(default="", alias="accessKeyId")
    access_key_secret: str = Field(default="", alias="accessKeySecret")

    @property
    def complete(self) -> bool:
        return bool(self.access_key_id and self.access_key_secret)


class RequestConfig(BaseModel):
    """Where the axios client files go and what they import."""

    model_config = _MODEL_CONFIG

    import_path: str = Field(alias="importPath", min_length=1)
    services_path: Path = Field(alias="servicesPath")
    types_path: str = Field(alias="typesPath", min_length=1)
    base_url: str = Field(
        default="",
        validation_alias=AliasChoices("baseURL", "baseUrl", "base_url"),
    )

    @field_validator("services_path", mode="before")
    @classmethod
    def _resolve_services_path(cls, value: Any, info: ValidationInfo) -> Any:
        return _resolve_in_context(value, info)


class ConfigFile(BaseModel):
    """Contents of an apifox.config.* file. Every key is optional."""

    model_config = _MODEL_CONFIG

    url: str | None = None
    output_dir: Path = Field(default=DEFAULT_OUTPUT_DIR, alias="outputDir", validate_default=True)
    type_prefix: str | None = Field(default=None, alias="typePrefix")
    alibaba_cloud: AlibabaCloudCredentials = Field(
        default_factory=AlibabaCloudCredentials,
        alias="alibabaCloud",
    )
    request_config: RequestConfig | None = Field(default=None, alias="requestConfig")

    @field_validator("output_dir", mode="before")
    @classmethod
    def _resolve_output_dir(cls, value: Any, info: ValidationInfo) -> Any:
        return _resolve_in_context(value, info)


class GeneratorConfig(BaseModel):
    """Effective settings for one run, after every layer is applied."""

    model_config = _MODEL_CONFIG

    url: str = Field(min_length=1)
    output_dir: Path
    type_prefix: str = DEFAULT_TYPE_PREFIX
    alibaba_cloud: AlibabaCloudCredentials = Field(default_factory=AlibabaCloudCredentials)
    request_config: RequestConfig | None = None
    config_path: Path | None = None


def find_config_file(start_dir: Path) -> Path | None:
    """Search start_dir and its parents for the first known config file."""
    current = Path(start_dir).resolve()
    for directory in (current, *current.parents):
        for filename in CONFIG_FILENAMES:
            candidate = directory / filename
            if candidate.is_file():
                logger.debug("Using config file %s", candidate)
                return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a JSON or YAML config file into a dict."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file: {exc.strerror}", config_path=path) from exc

    if not raw.strip():
        return {}
    try:
        if path.suffix == ".json":
            data = json.loads(raw)
        else:
            # .apifoxrc may hold either; YAML is a superset of JSON
            data = yaml.safe_load(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Config file is not valid JSON/YAML: {exc}", config_path=path) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain an object at the top level", config_path=path)
    return data


def _config_error(exc: ValidationError, config_path: Path | None) -> ConfigError:
    """Report the first pydantic error against its dotted config key."""
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"])
    message = error["msg"]
    if field == "url":
        message = "No spec URL configured. Create a config file like:\n\n" + EXAMPLE_CONFIG
    elif len(exc.errors()) > 1:
        message += f" (and {len(exc.errors()) - 1} more)"
    return ConfigError(message, config_path=config_path, field=field)


def load_config(
    start_dir: Path | None = None,
    *,
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> GeneratorConfig:
    """Build the GeneratorConfig for a run.

    overrides holds CLI values (url, output_dir, type_prefix); None entries
    are ignored.
    """
    start_dir = Path(start_dir or Path.cwd())
    env = os.environ if environ is None else environ
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    if config_file is not None:
        config_path: Path | None = Path(config_file)
        if not config_path.is_file():
            raise ConfigError("Config file not found", config_path=config_path)
    else:
        config_path = find_config_file(start_dir)

    project_root = start_dir.resolve()
    context = {
        "config_dir": config_path.parent.resolve() if config_path else project_root,
        "project_root": project_root,
    }
    try:
        file_config = ConfigFile.model_validate(
            read_config_file(config_path) if config_path else {},
            context=context,
        )
    except ValidationError as exc:
        raise _config_error(exc, config_path) from exc

    output_dir = file_config.output_dir
    if overrides.get("output_dir"):
        output_dir = Path(overrides["output_dir"])
        if not output_dir.is_absolute():
            output_dir = project_root / output_dir

    type_prefix = overrides.get("type_prefix")
    if type_prefix is None:
        type_prefix = file_config.type_prefix
    if type_prefix is None:
        type_prefix = DEFAULT_TYPE_PREFIX

    cloud = file_config.alibaba_cloud
    try:
        return GeneratorConfig(
            url=overrides.get("url") or env.get(ENV_URL) or file_config.url,
            output_dir=output_dir,
            type_prefix=type_prefix,
            alibaba_cloud=AlibabaCloudCredentials(
                access_key_id=env.get(ENV_ACCESS_KEY_ID) or cloud.access_key_id,
                access_key_secret=env.get(ENV_ACCESS_KEY_SECRET) or cloud.access_key_secret,
            ),
            request_config=file_config.request_config,
            config_path=config_path,
        )
    except ValidationError as exc:
        raise _config_error(exc, config_path) from exc
