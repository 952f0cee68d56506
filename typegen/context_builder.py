"""Build Jinja2 template context from the parsed OpenAPI spec.

Assigns each operation to the module of its tag, compiles its types,
and assembles the context dicts for types.d.ts.j2 and client.ts.j2.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable

from .compiler import (
    ENCODING_HELPERS,
    ENCODING_JSON,
    ENCODING_MULTIPART,
    ENCODING_NONE,
    CompiledOperation,
    compile_operation,
    url_template,
)
from .config import RequestConfig
from .errors import ModuleError
from .loader import Operation, iter_operations
from .naming import camel_case, dedupe_names
from .renderer import GeneratedType, TypeRenderer, doc_lines
from .schema_parser import SchemaRegistry

logger = logging.getLogger(__name__)

# Request helpers exported by the user's request module, in import order
_VERB_ORDER = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE")

# Names a destructured local must not take
_TS_RESERVED: frozenset[str] = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger",
    "default", "delete", "do", "else", "enum", "export", "extends", "false",
    "finally", "for", "function", "if", "import", "in", "instanceof", "new",
    "null", "return", "super", "switch", "this", "throw", "true", "try",
    "typeof", "var", "void", "while", "with", "let", "static", "yield",
    "await", "implements", "interface", "package", "private", "protected",
    "public", "params", "config",
})


@dataclass(frozen=True)
class Module:
    """Everything one tag's output units need."""
    tag: str
    name: str
    operations: tuple[CompiledOperation, ...]
    named_types: tuple[GeneratedType, ...] = ()

    @property
    def helpers(self) -> list[str]:
        """Body helpers referenced by at least one operation."""
        used = {op.helper for op in self.operations if op.helper}
        return [h for h in sorted(ENCODING_HELPERS.values()) if h in used]

    @property
    def verbs(self) -> list[str]:
        used = {op.operation.method.upper() for op in self.operations}
        return [v for v in _VERB_ORDER if v in used]

    @property
    def type_imports(self) -> list[str]:
        names = {op.request.name for op in self.operations}
        names |= {op.response.name for op in self.operations}
        return sorted(names)

    @property
    def declarations(self) -> list[GeneratedType]:
        """Named types, then each operation's Request/Response, each name once."""
        seen: set[str] = set()
        result: list[GeneratedType] = []
        candidates = [*self.named_types]
        for op in self.operations:
            candidates.extend((op.request, op.response))
        for gtype in candidates:
            if gtype.name not in seen:
                seen.add(gtype.name)
                result.append(gtype)
        return result


def select_operations(operations: Iterable[Operation], tags: Iterable[str]) -> list[Operation]:
    """Operations tagged with any of tags, in document order."""
    wanted = set(tags)
    return [op for op in operations if wanted.intersection(op.tags)]


def _collect_named_types(renderer: TypeRenderer) -> list[GeneratedType]:
    """Render requested registry schemas until no new names appear."""
    rendered: dict[str, GeneratedType] = {}
    while True:
        pending = [name for name in renderer.named_types if name not in rendered]
        if not pending:
            break
        for name in pending:
            rendered[name] = renderer.render_named(name)
    return [rendered[name] for name in sorted(rendered)]


def _ensure_unique(
    compiled: list[CompiledOperation],
    named_types: list[GeneratedType],
) -> list[CompiledOperation]:
    """Keep every declaration name unique within the module.

    Named schema types keep their names since bodies refer to them. An
    operation type that clashes with a different declaration gets a numeric
    suffix; one identical to an existing declaration is reused.
    """
    declared: dict[str, GeneratedType] = {t.name: t for t in named_types}

    def claim(gtype: GeneratedType) -> GeneratedType:
        existing = declared.get(gtype.name)
        if existing is None:
            declared[gtype.name] = gtype
            return gtype
        if existing.same_shape(gtype):
            return existing
        index = 2
        while f"{gtype.name}{index}" in declared:
            index += 1
        renamed = replace(gtype, name=f"{gtype.name}{index}")
        logger.warning("Type name %s already declared; using %s", gtype.name, renamed.name)
        declared[renamed.name] = renamed
        return renamed

    function_names = dedupe_names([op.function_name for op in compiled])
    result: list[CompiledOperation] = []
    for op, function_name in zip(compiled, function_names):
        result.append(replace(
            op,
            function_name=function_name,
            request=claim(op.request),
            response=claim(op.response),
        ))
    return result


def build_module(
    spec: dict[str, Any],
    tag: str,
    name: str,
    prefix: str,
    operations: list[Operation] | None = None,
) -> Module:
    """Compile all operations tagged `tag` into a Module."""
    all_operations = operations if operations is not None else iter_operations(spec)
    matched = select_operations(all_operations, [tag])
    if not matched:
        raise ModuleError(
            "no operations carry this tag. Check the module name against the "
            "tags listed in the spec",
            tag,
        )

    renderer = TypeRenderer(SchemaRegistry.from_spec(spec))
    compiled = [compile_operation(op, renderer, prefix) for op in matched]
    named_types = _collect_named_types(renderer)
    compiled = _ensure_unique(compiled, named_types)

    logger.info("Module %s: %d operations, %d named types", name, len(compiled), len(named_types))
    return Module(tag=tag, name=name, operations=tuple(compiled), named_types=tuple(named_types))


def _local_name(name: str, taken: set[str]) -> str:
    local = camel_case(name) or "param"
    if not local[0].isalpha() and local[0] not in "_$":
        local = f"param{local[0].upper()}{local[1:]}"
    if local in _TS_RESERVED:
        local = f"{local}Param"
    while local in taken:
        local = f"_{local}"
    taken.add(local)
    return local


def _destructure_entry(name: str, local: str) -> str:
    if name == local:
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}": {local}'


def build_client_call(op: CompiledOperation, base_url: str = "") -> dict[str, Any]:
    """Work out how an operation's params map onto url/params/data.

    Returns the destructuring pattern (or None), the URL template literal,
    and the expressions for axios `params` and `data`.
    """
    taken: set[str] = set()
    entries: list[str] = []
    locals_by_name: dict[str, str] = {}
    for name in op.path_params:
        local = _local_name(name, taken)
        locals_by_name[name] = local
        entries.append(_destructure_entry(name, local))
    url = url_template(op.operation.path, locals_by_name)

    query_expr: str | None = None
    data_expr: str | None = None

    if op.body_encoding == ENCODING_NONE:
        if op.query_params:
            query_expr = "params"
            if entries:
                rest = _local_name("query", taken)
                entries.append(f"...{rest}")
                query_expr = rest
    elif op.request_is_alias:
        data_expr = "params"
    elif op.body_encoding == ENCODING_JSON and op.body_field:
        local = _local_name(op.body_field, taken)
        entries.append(_destructure_entry(op.body_field, local))
        data_expr = local
    else:
        if op.body_encoding == ENCODING_MULTIPART and op.query_params:
            # Query fields travel as params; only the rest goes into FormData
            query_entries: list[str] = []
            for name in op.query_params:
                local = _local_name(name, taken)
                entry = _destructure_entry(name, local)
                entries.append(entry)
                query_entries.append(entry)
            query_expr = "{ " + ", ".join(query_entries) + " }"
        payload = "params"
        if entries:
            payload = _local_name("data", taken)
            entries.append(f"...{payload}")
        helper = op.helper
        data_expr = f"{helper}({payload})" if helper else payload

    return {
        "destructure": "{ " + ", ".join(entries) + " }" if entries else None,
        "url": f"{base_url.rstrip('/')}{url}" if base_url else url,
        "query_expr": query_expr,
        "data_expr": data_expr,
    }


def _operation_context(op: CompiledOperation, base_url: str) -> dict[str, Any]:
    operation = op.operation
    summary = " ".join(doc_lines(operation.summary)) or op.function_name
    tag = operation.tags[0] if operation.tags else "Uncategorized"
    return {
        "function_name": op.function_name,
        "method": operation.method,
        "verb": operation.method.upper(),
        "path": operation.path.replace("*/", "*\\/"),
        "summary": summary,
        "tag": tag.replace("*/", "*\\/"),
        "request_type": op.request.name,
        "response_type": op.response.name,
        **build_client_call(op, base_url),
    }


def build_context(module: Module, request_config: RequestConfig | None = None) -> dict[str, Any]:
    """Build the full template context for one module."""
    base_url = request_config.base_url if request_config else ""
    types_import = ""
    if request_config is not None:
        types_import = f"{request_config.types_path.rstrip('/')}/{module.name}.d"
    return {
        "module_name": module.name,
        "tag": module.tag,
        "declarations": [t.declaration() for t in module.declarations],
        "operations": [_operation_context(op, base_url) for op in module.operations],
        "type_imports": module.type_imports,
        "verbs": module.verbs,
        "helpers": module.helpers,
        "import_path": request_config.import_path if request_config else "",
        "types_import": types_import,
        "operation_count": len(module.operations),
    }
