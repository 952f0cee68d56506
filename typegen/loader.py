"""Load and parse an Apifox-exported OpenAPI spec.

Fetches the document over HTTP (or reads it from disk) and extracts paths,
tags, operations and component schemas.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import httpx
import yaml

from .errors import SpecError
from .schema_parser import SchemaNode, PrimitiveNode, parse_schema

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Path-item keys that are operations, in the order OpenAPI lists them
HTTP_METHODS: tuple[str, ...] = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_PARAMETER_LOCATIONS = {"path", "query"}


@dataclass(frozen=True)
class Parameter:
    """A path or query parameter of an operation."""
    name: str
    location: str
    required: bool
    schema: SchemaNode
    description: str = ""


@dataclass(frozen=True)
class RequestBody:
    content: tuple[tuple[str, SchemaNode | None], ...]
    required: bool = False
    description: str = ""


@dataclass(frozen=True)
class Response:
    status: str
    content: tuple[tuple[str, SchemaNode | None], ...]
    description: str = ""


@dataclass(frozen=True)
class Operation:
    """One (method, path) pair of the spec, parsed once and never mutated."""
    method: str
    path: str
    tags: tuple[str, ...]
    summary: str = ""
    description: str = ""
    operation_id: str = ""
    parameters: tuple[Parameter, ...] = ()
    request_body: RequestBody | None = None
    responses: tuple[Response, ...] = ()

    @property
    def path_placeholders(self) -> tuple[str, ...]:
        """Names of {param} placeholders in the path template, in order."""
        names: list[str] = []
        for segment in self.path.split("/"):
            start = segment.find("{")
            while start != -1:
                end = segment.find("}", start)
                if end == -1:
                    break
                name = segment[start + 1:end].strip()
                if name and name not in names:
                    names.append(name)
                start = segment.find("{", end)
        return tuple(names)


def load_spec(path: Path) -> dict[str, Any]:
    """Load an OpenAPI spec from disk.

    Supports both YAML and JSON formats.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecError(f"Could not read spec file: {exc.strerror}", str(path)) from exc
    spec = _parse_document(raw, str(path), prefer_yaml=path.suffix.lower() in {".yml", ".yaml"})
    _validate_spec(spec, str(path))
    return spec


def fetch_spec(
    url: str,
    *,
    client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Fetch the OpenAPI spec from an Apifox export URL, file:// URL or path."""
    if not url:
        raise SpecError("No spec URL configured. Pass --url or set 'url' in apifox.config.json")

    parsed = urlparse(url)
    if parsed.scheme == "file":
        return load_spec(Path(url2pathname(parsed.path)))
    if parsed.scheme not in ("http", "https"):
        return load_spec(Path(url))

    owns_client = client is None
    http = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        response = http.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecError(
            f"Server returned HTTP {exc.response.status_code}. "
            "Check the export URL and that the project is shared",
            url,
        ) from exc
    except httpx.RequestError as exc:
        raise SpecError(f"Could not reach spec server: {exc}", url) from exc
    finally:
        if owns_client:
            http.close()

    spec = _parse_document(response.text, url)
    _validate_spec(spec, url)
    logger.info("Fetched spec %s (%d paths)", url, len(get_paths(spec)))
    return spec


def _parse_document(raw: str, source: str, prefer_yaml: bool = False) -> dict[str, Any]:
    data: Any = None
    if not prefer_yaml:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            data = None
    if data is None:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise SpecError(f"Spec is neither valid JSON nor YAML: {exc}", source) from exc
    if not isinstance(data, dict):
        raise SpecError("Spec document must be a JSON/YAML object", source)
    return data


def _validate_spec(spec: dict[str, Any], source: str) -> None:
    if "openapi" not in spec and "swagger" not in spec:
        raise SpecError(
            "Invalid OpenAPI specification: missing 'openapi' version field. "
            "Export the project from Apifox as OpenAPI 3.x",
            source,
        )
    if not isinstance(spec.get("paths", {}), dict):
        raise SpecError("Invalid OpenAPI specification: 'paths' must be an object", source)


def get_paths(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the spec."""
    return spec.get("paths") or {}


def get_schemas(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract component schemas from the spec."""
    return (spec.get("components") or {}).get("schemas") or {}


def get_tags(spec: dict[str, Any]) -> list[str]:
    """Return tag labels: declared tags first, then tags only used on operations."""
    labels: list[str] = []
    for tag in spec.get("tags") or []:
        name = tag.get("name") if isinstance(tag, dict) else None
        if isinstance(name, str) and name and name not in labels:
            labels.append(name)
    for operation in iter_operations(spec):
        for name in operation.tags:
            if name not in labels:
                labels.append(name)
    return labels


def resolve_ref(spec: dict[str, Any], ref: str) -> dict[str, Any] | None:
    """Resolve a local $ref pointer in the spec, or None if it dangles."""
    if not ref.startswith("#/"):
        return None
    node: Any = spec
    for part in ref[2:].split("/"):
        part = unquote(part).replace("~1", "/").replace("~0", "~")
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, dict) else None


def _deref(spec: dict[str, Any], obj: Any, what: str) -> dict[str, Any] | None:
    """Follow a non-schema $ref (parameters, requestBodies, responses)."""
    if not isinstance(obj, dict):
        return None
    seen: set[str] = set()
    while "$ref" in obj:
        ref = obj["$ref"]
        if ref in seen:
            logger.warning("Circular %s reference %s; skipping", what, ref)
            return None
        seen.add(ref)
        target = resolve_ref(spec, ref)
        if target is None:
            logger.warning("Unresolvable %s reference %s; skipping", what, ref)
            return None
        obj = target
    return obj


def _parse_content(spec: dict[str, Any], content: Any) -> tuple[tuple[str, SchemaNode | None], ...]:
    entries: list[tuple[str, SchemaNode | None]] = []
    if not isinstance(content, dict):
        return ()
    for media_type, media in content.items():
        media = _deref(spec, media, "media type") or {}
        schema = media.get("schema")
        entries.append((media_type, parse_schema(schema) if isinstance(schema, dict) else None))
    return tuple(entries)


def _parse_parameters(
    spec: dict[str, Any],
    path_level: list[Any],
    operation_level: list[Any],
    path: str,
    placeholders: tuple[str, ...],
) -> tuple[Parameter, ...]:
    merged: dict[tuple[str, str], Parameter] = {}
    for raw in list(path_level) + list(operation_level):
        param = _deref(spec, raw, "parameter")
        if not param or "name" not in param:
            continue
        location = param.get("in", "query")
        if location not in _PARAMETER_LOCATIONS:
            logger.debug("Ignoring %s parameter %r on %s", location, param["name"], path)
            continue
        schema = param.get("schema")
        merged[(param["name"], location)] = Parameter(
            name=param["name"],
            location=location,
            required=True if location == "path" else bool(param.get("required", False)),
            schema=parse_schema(schema) if isinstance(schema, dict) else PrimitiveNode(type="string"),
            description=param.get("description") or "",
        )

    declared_path = {name for name, location in merged if location == "path"}
    for name in placeholders:
        if name in declared_path:
            continue
        if (name, "query") in merged:
            logger.warning(
                "Parameter %r on %s is a path placeholder but declared in query; treating it as a path parameter",
                name, path,
            )
            relocated: dict[tuple[str, str], Parameter] = {}
            for key, value in merged.items():
                if key == (name, "query"):
                    relocated[(name, "path")] = replace(value, location="path", required=True)
                else:
                    relocated[key] = value
            merged = relocated
        else:
            logger.debug("Path placeholder {%s} on %s is not declared; assuming string", name, path)
            merged[(name, "path")] = Parameter(
                name=name,
                location="path",
                required=True,
                schema=PrimitiveNode(type="string"),
            )
    return tuple(merged.values())


def parse_operation(
    spec: dict[str, Any],
    method: str,
    path: str,
    details: dict[str, Any],
    path_level_params: list[Any] | None = None,
) -> Operation:
    """Build an Operation from its raw path-item entry."""
    tags = tuple(t for t in details.get("tags") or [] if isinstance(t, str))
    operation = Operation(method=method, path=path, tags=tags)
    placeholders = operation.path_placeholders

    request_body: RequestBody | None = None
    raw_body = _deref(spec, details.get("requestBody"), "request body")
    if raw_body:
        request_body = RequestBody(
            content=_parse_content(spec, raw_body.get("content")),
            required=bool(raw_body.get("required", False)),
            description=raw_body.get("description") or "",
        )

    responses: list[Response] = []
    for status, raw_response in (details.get("responses") or {}).items():
        response = _deref(spec, raw_response, "response")
        if response is None:
            continue
        responses.append(Response(
            status=str(status),
            content=_parse_content(spec, response.get("content")),
            description=response.get("description") or "",
        ))

    return Operation(
        method=method,
        path=path,
        tags=tags,
        summary=(details.get("summary") or "").strip(),
        description=details.get("description") or "",
        operation_id=details.get("operationId") or "",
        parameters=_parse_parameters(
            spec,
            path_level_params or [],
            details.get("parameters") or [],
            path,
            placeholders,
        ),
        request_body=request_body,
        responses=tuple(responses),
    )


def iter_operations(spec: dict[str, Any]) -> list[Operation]:
    """Parse every operation of the spec in document encounter order."""
    operations: list[Operation] = []
    for path, path_item in get_paths(spec).items():
        if not isinstance(path_item, dict):
            continue
        path_level = path_item.get("parameters") or []
        for method, details in path_item.items():
            method = method.lower()
            if method not in HTTP_METHODS or not isinstance(details, dict):
                continue
            operations.append(parse_operation(spec, method, path, details, path_level))
    return operations
