"""Compile one operation into its Request/Response type pair.

Request shaping by method:
  - GET/DELETE/HEAD/OPTIONS: path params go into the URL, the rest is query
  - POST/PUT/PATCH: body encoding is multipart, then urlencoded, then JSON

A JSON body next to query parameters is sent URL-encoded, because the
request helpers cannot carry query fields inside a JSON payload.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .loader import Operation, Parameter, Response
from .naming import operation_function_name, type_name
from .renderer import GeneratedType, TypeRenderer, doc_lines
from .schema_parser import ResolutionContext, SchemaNode

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset({"post", "put", "patch"})

MULTIPART = "multipart/form-data"
URLENCODED = "application/x-www-form-urlencoded"

# JSON-compatible content types, most preferred first
JSON_CONTENT_TYPES: tuple[str, ...] = (
    "application/json",
    "application/json;charset=utf-8",
    "text/json",
)

WILDCARD_CONTENT_TYPE = "*/*"

# Body encodings
ENCODING_NONE = "none"
ENCODING_JSON = "json"
ENCODING_MULTIPART = "multipart"
ENCODING_URLENCODED = "urlencoded"

# Client helper needed per body encoding
ENCODING_HELPERS: dict[str, str] = {
    ENCODING_MULTIPART: "toFormData",
    ENCODING_URLENCODED: "toUrlEncoded",
}

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True)
class CompiledOperation:
    """An operation with its generated types and parameter classification."""
    operation: Operation
    function_name: str
    request: GeneratedType
    response: GeneratedType
    path_params: tuple[str, ...] = ()
    query_params: tuple[str, ...] = ()
    body_fields: tuple[str, ...] = ()
    body_encoding: str = ENCODING_NONE
    # Member holding a non-object body merged with parameters
    body_field: str | None = None

    @property
    def request_is_alias(self) -> bool:
        return self.request.kind == "alias"

    @property
    def helper(self) -> str | None:
        return ENCODING_HELPERS.get(self.body_encoding)


def _media_key(media_type: str) -> str:
    return media_type.lower().replace(" ", "")


def _find_media(
    content: tuple[tuple[str, SchemaNode | None], ...],
    wanted: str,
) -> tuple[str, SchemaNode | None] | None:
    for media_type, schema in content:
        if _media_key(media_type).split(";")[0] == wanted:
            return media_type, schema
    return None


def pick_content(
    content: tuple[tuple[str, SchemaNode | None], ...],
) -> tuple[str, SchemaNode] | None:
    """Pick the JSON-compatible schema, else the first declared schema."""
    with_schema = [(mt, schema) for mt, schema in content if schema is not None]
    if not with_schema:
        return None
    by_key = {_media_key(mt): (mt, schema) for mt, schema in with_schema}
    for preferred in JSON_CONTENT_TYPES:
        if preferred in by_key:
            return by_key[preferred]
    for media_type, schema in with_schema:
        key = _media_key(media_type).split(";")[0]
        if key == "application/json" or key.endswith("+json"):
            return media_type, schema
    if WILDCARD_CONTENT_TYPE in by_key:
        return by_key[WILDCARD_CONTENT_TYPE]
    return with_schema[0]


def select_response(operation: Operation) -> Response | None:
    """Pick the lowest 2xx response, then `default`, then `2XX`."""
    numeric: list[tuple[int, Response]] = []
    default: Response | None = None
    wildcard: Response | None = None
    for response in operation.responses:
        status = response.status.strip()
        if status.isdigit() and 200 <= int(status) < 300:
            numeric.append((int(status), response))
        elif status.lower() == "default":
            default = response
        elif status.upper() == "2XX":
            wildcard = response
    if numeric:
        return min(numeric, key=lambda item: item[0])[1]
    return default or wildcard


def select_body(
    operation: Operation,
    has_query: bool,
) -> tuple[str, SchemaNode | None, bool]:
    """Return (encoding, body schema, body required) for an operation."""
    body = operation.request_body
    if operation.method not in BODY_METHODS or body is None:
        return ENCODING_NONE, None, False

    multipart = _find_media(body.content, MULTIPART)
    if multipart is not None:
        return ENCODING_MULTIPART, multipart[1], body.required

    urlencoded = _find_media(body.content, URLENCODED)
    if urlencoded is not None:
        return ENCODING_URLENCODED, urlencoded[1], body.required

    picked = pick_content(body.content)
    if picked is None:
        return ENCODING_NONE, None, False
    if has_query:
        return ENCODING_URLENCODED, picked[1], body.required
    return ENCODING_JSON, picked[1], body.required


def url_template(path: str, names: dict[str, str] | None = None) -> str:
    """Turn `/pets/{petId}` into the template-literal form `/pets/${petId}`.

    names maps a placeholder to the local variable holding its value.
    """
    def substitute(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        return "${" + (names or {}).get(name, name) + "}"

    return _PLACEHOLDER_RE.sub(substitute, path.replace("`", "\\`"))


def _parameter_lines(renderer: TypeRenderer, param: Parameter) -> list[str]:
    return renderer.field_lines(
        param.name,
        param.schema,
        required=param.required,
        context=ResolutionContext(),
        description=param.description,
    )


def _operation_docs(operation: Operation, kind: str) -> tuple[str, ...]:
    title = " ".join(doc_lines(operation.summary)) or operation.operation_id or operation.path
    path = operation.path.replace("*/", "*\\/")
    tag = operation.tags[0] if operation.tags else "Uncategorized"
    return (
        f"{kind} type for [{title}]({path})",
        "",
        f"@tag {tag}",
        f"@request `{operation.method.upper()} {path}`",
    )


def compile_operation(
    operation: Operation,
    renderer: TypeRenderer,
    prefix: str,
) -> CompiledOperation:
    """Build the Request and Response types for one operation."""
    base = type_name(prefix, operation.method, operation.path)
    request_name = f"{base}Request"
    response_name = f"{base}Response"

    path_params = [p for p in operation.parameters if p.location == "path"]
    query_params = [p for p in operation.parameters if p.location == "query"]
    encoding, body_schema, body_required = select_body(operation, has_query=bool(query_params))

    param_names = {p.name for p in operation.parameters}
    member_lines: list[str] = []
    for param in operation.parameters:
        member_lines.extend(_parameter_lines(renderer, param))

    body_fields: list[str] = []
    body_field: str | None = None
    request: GeneratedType | None = None

    if body_schema is not None:
        obj = renderer.as_object(body_schema)
        if obj is not None:
            node, context = obj
            dropped = [name for name, _ in node.properties if name in param_names]
            if dropped:
                logger.debug(
                    "%s %s: body fields %s shadowed by parameters",
                    operation.method.upper(), operation.path, ", ".join(dropped),
                )
            body_fields = [name for name, _ in node.properties if name not in param_names]
            fields = renderer.render_fields(node, context, exclude=param_names)
            if fields:
                member_lines.extend(fields.split("\n"))
        elif not operation.parameters:
            request = GeneratedType(
                name=request_name,
                kind="alias",
                body=renderer.render(body_schema),
                doc=_operation_docs(operation, "Request"),
            )
        else:
            body_field = "body" if "body" not in param_names else "requestBody"
            member_lines.extend(renderer.field_lines(
                body_field,
                body_schema,
                required=body_required,
                description=operation.request_body.description if operation.request_body else "",
            ))

    if request is None:
        request = GeneratedType(
            name=request_name,
            kind="interface",
            body="\n".join(member_lines),
            doc=_operation_docs(operation, "Request"),
        )

    response = _compile_response(operation, renderer, response_name)

    return CompiledOperation(
        operation=operation,
        function_name=operation_function_name(operation.method, operation.path),
        request=request,
        response=response,
        path_params=tuple(p.name for p in path_params),
        query_params=tuple(p.name for p in query_params),
        body_fields=tuple(body_fields),
        body_encoding=encoding,
        body_field=body_field,
    )


def _compile_response(
    operation: Operation,
    renderer: TypeRenderer,
    name: str,
) -> GeneratedType:
    docs = _operation_docs(operation, "Response")
    response = select_response(operation)
    picked = pick_content(response.content) if response is not None else None
    if picked is None:
        return GeneratedType(name=name, kind="interface", body="", doc=docs)

    schema = picked[1]
    obj = renderer.as_object(schema)
    if obj is not None:
        return GeneratedType(
            name=name,
            kind="interface",
            body=renderer.render_fields(obj[0], obj[1]),
            doc=docs,
        )
    return GeneratedType(name=name, kind="alias", body=renderer.render(schema), doc=docs)
