"""Render resolved schema nodes as TypeScript type text.

The renderer only produces text. Whether a top-level schema becomes an
interface or a type alias is decided by the caller via as_object().
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from .naming import ts_property_key
from .schema_parser import (
    MAX_DEPTH,
    ArrayNode,
    CompositeNode,
    CycleMarker,
    DepthExceededMarker,
    ObjectNode,
    PrimitiveNode,
    RefNode,
    Resolved,
    ResolutionContext,
    SchemaNode,
    SchemaRegistry,
    UnknownNode,
    UnresolvedRef,
    resolve,
)

logger = logging.getLogger(__name__)

INDENT = "  "

_PRIMITIVE_TS: dict[str, str] = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
    "null": "null",
}

OPEN_RECORD = "Record<string, any>"


@dataclass(frozen=True)
class GeneratedType:
    """A named declaration: `export interface` or `export type`."""
    name: str
    kind: str  # "interface" | "alias"
    body: str
    doc: tuple[str, ...] = ()

    def declaration(self) -> str:
        lines = doc_block(self.doc, "")
        if self.kind == "alias":
            lines.append(f"export type {self.name} = {self.body};")
        elif self.body:
            lines.append(f"export interface {self.name} {{\n{self.body}\n}}")
        else:
            lines.append(f"export interface {self.name} {{}}")
        return "\n".join(lines)

    def same_shape(self, other: GeneratedType) -> bool:
        return self.kind == other.kind and self.body == other.body


def _strip_html(text: str) -> str:
    """Strip HTML tags and trailing whitespace."""
    return re.sub(r"<[^>]+>", "", text).strip()


def doc_lines(*parts: str | None) -> tuple[str, ...]:
    """Split description texts into comment-safe lines."""
    lines: list[str] = []
    for part in parts:
        if not part:
            continue
        for line in _strip_html(part).splitlines():
            line = line.rstrip().replace("*/", "*\\/")
            if line:
                lines.append(line)
    return tuple(lines)


def doc_block(lines: tuple[str, ...] | list[str], indent: str) -> list[str]:
    """Format lines as a /** ... */ block, or nothing when empty."""
    if not lines:
        return []
    body = [f"{indent} * {line}" if line else f"{indent} *" for line in lines]
    return [f"{indent}/**", *body, f"{indent} */"]


def _nested(context: ResolutionContext, node: SchemaNode) -> ResolutionContext:
    """Context for a child schema.

    One unit of depth per nesting level. A $ref is counted when resolve()
    enters it, so only inline structures are counted here.
    """
    if isinstance(node, (ObjectNode, ArrayNode, CompositeNode)):
        return context.deeper()
    return context


def _needs_parens(text: str) -> bool:
    if text.startswith("{") and text.endswith("}"):
        return False
    return " | " in text or " & " in text or "/*" in text


class TypeRenderer:
    """Render schema nodes for one module.

    Schemas that must be referenced by name (array items and cycle points)
    are recorded and later spelled out once with render_named().
    """

    def __init__(self, registry: SchemaRegistry) -> None:
        self.registry = registry
        self._named: set[str] = set()

    @property
    def named_types(self) -> list[str]:
        """Registry names requested as standalone declarations, sorted."""
        return sorted(self._named)

    def render(
        self,
        node: SchemaNode,
        context: ResolutionContext | None = None,
        indent: str = "",
    ) -> str:
        result = resolve(node, self.registry, context or ResolutionContext())

        if isinstance(result, DepthExceededMarker):
            logger.warning("Schema nesting exceeds depth %d; emitting any", MAX_DEPTH)
            return f"any /* max depth {MAX_DEPTH} reached */"
        if isinstance(result, CycleMarker):
            self._named.add(result.name)
            return self._nullable(result.name, node.nullable)
        if isinstance(result, UnresolvedRef):
            logger.warning(
                "Schema %r not found in components.schemas; emitting a bare reference",
                result.name,
            )
            return self._nullable(result.name, node.nullable)

        text = self._render_resolved(result, indent)
        return self._nullable(text, node.nullable or result.nullable or result.node.nullable)

    @staticmethod
    def _nullable(text: str, nullable: bool) -> str:
        if not nullable or text in ("any", "null") or text.endswith(" | null"):
            return text
        return f"{text} | null"

    def _render_resolved(self, result: Resolved, indent: str) -> str:
        node, context = result.node, result.context

        if isinstance(node, PrimitiveNode):
            return self._render_primitive(node)
        if isinstance(node, ArrayNode):
            return self._render_array(node, context, indent)
        if isinstance(node, ObjectNode):
            if not node.properties:
                return self._render_record(node, context, indent)
            fields = self.render_fields(node, context, indent + INDENT)
            return f"{{\n{fields}\n{indent}}}"
        if isinstance(node, CompositeNode):
            return self._render_composite(node, context, indent)
        if isinstance(node, UnknownNode) and node.type:
            logger.warning("Unsupported schema type %r; emitting any", node.type)
            return f"any /* unsupported type: {node.type} */"
        return "any"

    def _render_primitive(self, node: PrimitiveNode) -> str:
        if node.enum is not None:
            literals = []
            for value in node.enum:
                literal = json.dumps(value, ensure_ascii=False)
                if literal not in literals:
                    literals.append(literal)
            return " | ".join(literals) if literals else "never"
        return _PRIMITIVE_TS.get(node.type, "any")

    def _render_array(self, node: ArrayNode, context: ResolutionContext, indent: str) -> str:
        items = node.items
        if items is None:
            logger.warning("Array schema missing items definition; emitting any[]")
            return "any[]"

        if isinstance(items, RefNode):
            if self.registry.lookup(items) is None:
                logger.warning(
                    "Array items reference %r not found in components.schemas",
                    items.name,
                )
            else:
                self._named.add(items.name)
            return f"{items.name}[]"

        text = self.render(items, _nested(context, items), indent)
        if _needs_parens(text):
            text = f"({text})"
        return f"{text}[]"

    def _render_record(self, node: ObjectNode, context: ResolutionContext, indent: str) -> str:
        if isinstance(node.additional, SchemaNode):
            value = self.render(node.additional, _nested(context, node.additional), indent)
            return f"Record<string, {value}>"
        return OPEN_RECORD

    def _render_composite(self, node: CompositeNode, context: ResolutionContext, indent: str) -> str:
        if node.mode == "allOf":
            merged = self._merge_all_of(node, context)
            if merged is not None:
                obj, merged_context = merged
                fields = self.render_fields(obj, merged_context, indent + INDENT)
                return f"{{\n{fields}\n{indent}}}"

        parts: list[str] = []
        for variant in node.variants:
            text = self.render(variant, _nested(context, variant), indent)
            if node.mode == "allOf" and _needs_parens(text):
                text = f"({text})"
            if text not in parts:
                parts.append(text)
        if not parts:
            return "any"
        return (" & " if node.mode == "allOf" else " | ").join(parts)

    def _merge_all_of(
        self,
        node: CompositeNode,
        context: ResolutionContext,
    ) -> tuple[ObjectNode, ResolutionContext] | None:
        """Merge allOf parts that are all objects with declared properties."""
        properties: dict[str, SchemaNode] = {}
        required: set[str] = set()
        merged_context = context
        for variant in node.variants:
            result = resolve(variant, self.registry, _nested(context, variant))
            if not isinstance(result, Resolved):
                return None
            part = self.as_object(result.node, result.context)
            if part is None:
                return None
            obj, part_context = part
            properties.update(obj.properties)
            required |= obj.required
            merged_context = merged_context.merge(part_context)
        if not properties:
            return None
        merged = ObjectNode(
            properties=tuple(properties.items()),
            required=frozenset(required),
            description=node.description,
            nullable=node.nullable,
        )
        return merged, merged_context

    def as_object(
        self,
        node: SchemaNode,
        context: ResolutionContext | None = None,
    ) -> tuple[ObjectNode, ResolutionContext] | None:
        """Return the object view of node if it is object-shaped, else None.

        Object-shaped means an object with declared properties, or an allOf
        whose parts all are. Primitives, arrays, records and unions are not.
        """
        result = resolve(node, self.registry, context or ResolutionContext())
        if not isinstance(result, Resolved):
            return None
        target = result.node
        if isinstance(target, ObjectNode) and target.properties:
            return target, result.context
        if isinstance(target, CompositeNode) and target.mode == "allOf":
            return self._merge_all_of(target, result.context)
        return None

    def render_fields(
        self,
        node: ObjectNode,
        context: ResolutionContext,
        indent: str = INDENT,
        exclude: frozenset[str] | set[str] = frozenset(),
    ) -> str:
        """Render the properties of node as interface member lines."""
        lines: list[str] = []
        for name, prop in node.properties:
            if name in exclude:
                continue
            lines.extend(self.field_lines(
                name,
                prop,
                required=name in node.required,
                context=context,
                indent=indent,
            ))
        return "\n".join(lines)

    def field_lines(
        self,
        name: str,
        schema: SchemaNode,
        required: bool,
        context: ResolutionContext | None = None,
        indent: str = INDENT,
        description: str = "",
    ) -> list[str]:
        """Render one member: doc block, then `name?: Type;`."""
        context = context or ResolutionContext()
        fmt = schema.format if isinstance(schema, PrimitiveNode) else None
        docs = doc_lines(description or schema.description)
        if fmt:
            docs = (*docs, f"@format {fmt}")
        type_text = self.render(schema, _nested(context, schema), indent)
        optional = "" if required else "?"
        return [
            *doc_block(docs, indent),
            f"{indent}{ts_property_key(name)}{optional}: {type_text};",
        ]

    def render_named(self, name: str) -> GeneratedType:
        """Render registry schema `name` as a standalone declaration.

        The schema's own name is already on the path, so self references
        come out as plain `name` references.
        """
        node = self.registry.get(name)
        if node is None:
            return GeneratedType(name=name, kind="alias", body="any")
        context = ResolutionContext().enter(name)
        docs = doc_lines(node.description)
        obj = self.as_object(node, context)
        if obj is not None:
            fields = self.render_fields(obj[0], obj[1], INDENT)
            return GeneratedType(name=name, kind="interface", body=fields, doc=docs)
        return GeneratedType(name=name, kind="alias", body=self.render(node, context), doc=docs)
