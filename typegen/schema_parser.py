"""Parse JSON-Schema fragments into typed nodes and resolve $ref pointers.

Handles:
- $ref lookup against components.schemas
- Cycle detection along the current resolution path
- A fixed recursion depth ceiling
- allOf/oneOf/anyOf detection
- OpenAPI 3.0 `nullable` and 3.1 `type: [..., "null"]`
- Enum values

Every node is frozen; resolving never touches the raw document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import unquote

# Maximum nested object/array/$ref unwinding before giving up
MAX_DEPTH = 10

REF_PREFIX = "#/components/schemas/"

PRIMITIVE_TYPES = frozenset({"string", "integer", "number", "boolean", "null"})

COMPOSITE_MODES = ("allOf", "oneOf", "anyOf")


@dataclass(frozen=True)
class SchemaNode:
    """Base of the schema variants. Never instantiated directly."""
    description: str = ""
    nullable: bool = False


@dataclass(frozen=True)
class RefNode(SchemaNode):
    name: str = ""
    pointer: str = ""


@dataclass(frozen=True)
class ArrayNode(SchemaNode):
    items: SchemaNode | None = None


@dataclass(frozen=True)
class ObjectNode(SchemaNode):
    properties: tuple[tuple[str, SchemaNode], ...] = ()
    required: frozenset[str] = frozenset()
    # True/None: open record, False: closed, SchemaNode: typed values
    additional: SchemaNode | bool | None = None


@dataclass(frozen=True)
class PrimitiveNode(SchemaNode):
    type: str = ""
    format: str | None = None
    enum: tuple[Any, ...] | None = None


@dataclass(frozen=True)
class CompositeNode(SchemaNode):
    mode: str = "anyOf"
    variants: tuple[SchemaNode, ...] = ()


@dataclass(frozen=True)
class UnknownNode(SchemaNode):
    type: str | None = None


def ref_name(pointer: str) -> str:
    """Return the schema name a $ref pointer ends with."""
    name = pointer.rsplit("/", 1)[-1]
    return unquote(name).replace("~1", "/").replace("~0", "~")


def parse_schema(raw: Any) -> SchemaNode:
    """Classify a raw JSON-Schema dict into a SchemaNode variant."""
    if not isinstance(raw, dict):
        return UnknownNode()

    description = raw.get("description") or raw.get("title") or ""
    if not isinstance(description, str):
        description = str(description)
    nullable = bool(raw.get("nullable", False))

    if "$ref" in raw and isinstance(raw["$ref"], str):
        pointer = raw["$ref"]
        return RefNode(
            name=ref_name(pointer),
            pointer=pointer,
            description=description,
            nullable=nullable,
        )

    for mode in COMPOSITE_MODES:
        if isinstance(raw.get(mode), list):
            variants = [parse_schema(sub) for sub in raw[mode]]
            if "properties" in raw:
                # Sibling properties act as one more allOf part
                sibling = {k: v for k, v in raw.items() if k not in COMPOSITE_MODES}
                variants.append(parse_schema(sibling))
            return CompositeNode(
                mode=mode,
                variants=tuple(variants),
                description=description,
                nullable=nullable,
            )

    schema_type = raw.get("type")
    if isinstance(schema_type, list):
        types = [t for t in schema_type if isinstance(t, str)]
        if "null" in types and len(types) > 1:
            nullable = True
            types.remove("null")
        if len(types) == 1:
            schema_type = types[0]
        else:
            return CompositeNode(
                mode="anyOf",
                variants=tuple(parse_schema({**raw, "type": t}) for t in types),
                description=description,
                nullable=nullable,
            )

    if isinstance(raw.get("enum"), list):
        return PrimitiveNode(
            type=schema_type if isinstance(schema_type, str) else "",
            format=raw.get("format"),
            enum=tuple(raw["enum"]),
            description=description,
            nullable=nullable,
        )

    if schema_type == "array" or (schema_type is None and "items" in raw):
        items = raw.get("items")
        return ArrayNode(
            items=parse_schema(items) if isinstance(items, dict) else None,
            description=description,
            nullable=nullable,
        )

    if schema_type == "object" or (schema_type is None and "properties" in raw):
        properties = raw.get("properties") or {}
        additional = raw.get("additionalProperties")
        if isinstance(additional, dict):
            additional = parse_schema(additional) if additional else True
        elif additional is not None:
            additional = bool(additional)
        return ObjectNode(
            properties=tuple(
                (str(name), parse_schema(prop)) for name, prop in properties.items()
            ) if isinstance(properties, dict) else (),
            required=frozenset(
                r for r in raw.get("required") or [] if isinstance(r, str)
            ),
            additional=additional,
            description=description,
            nullable=nullable,
        )

    if schema_type in PRIMITIVE_TYPES:
        return PrimitiveNode(
            type=schema_type,
            format=raw.get("format"),
            description=description,
            nullable=nullable,
        )

    return UnknownNode(
        type=schema_type if isinstance(schema_type, str) else None,
        description=description,
        nullable=nullable,
    )


class SchemaRegistry:
    """Read-only table of named schemas from components.schemas."""

    def __init__(self, raw_schemas: Mapping[str, Any] | None = None) -> None:
        nodes = {
            str(name): parse_schema(raw) for name, raw in (raw_schemas or {}).items()
        }
        self._nodes: Mapping[str, SchemaNode] = MappingProxyType(nodes)

    @classmethod
    def from_spec(cls, spec: dict[str, Any]) -> SchemaRegistry:
        return cls((spec.get("components") or {}).get("schemas") or {})

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, name: str) -> SchemaNode | None:
        return self._nodes.get(name)

    def lookup(self, ref: RefNode) -> SchemaNode | None:
        """Return the target of a local components/schemas pointer."""
        if ref.pointer and not ref.pointer.startswith(REF_PREFIX):
            return None
        return self._nodes.get(ref.name)

    def names(self) -> list[str]:
        return list(self._nodes)


@dataclass(frozen=True)
class ResolutionContext:
    """Per-resolution state: ancestors on the current path and nesting depth.

    Contexts are values. enter() and deeper() return new contexts, so sibling
    branches never see each other's visits.
    """
    visited: frozenset[str] = field(default_factory=frozenset)
    depth: int = 0

    def enter(self, name: str) -> ResolutionContext:
        return ResolutionContext(visited=self.visited | {name}, depth=self.depth + 1)

    def deeper(self) -> ResolutionContext:
        return ResolutionContext(visited=self.visited, depth=self.depth + 1)

    def merge(self, other: ResolutionContext) -> ResolutionContext:
        return ResolutionContext(
            visited=self.visited | other.visited,
            depth=max(self.depth, other.depth),
        )

    @property
    def exceeded(self) -> bool:
        return self.depth > MAX_DEPTH


@dataclass(frozen=True)
class Resolved:
    """A concrete (non-$ref) node plus the context to render it in."""
    node: SchemaNode
    context: ResolutionContext
    # Last schema name followed to reach node, if any
    name: str | None = None
    # nullable set on a $ref site
    nullable: bool = False


@dataclass(frozen=True)
class CycleMarker:
    name: str


@dataclass(frozen=True)
class DepthExceededMarker:
    depth: int


@dataclass(frozen=True)
class UnresolvedRef:
    name: str


Resolution = Resolved | CycleMarker | DepthExceededMarker | UnresolvedRef


def resolve(
    node: SchemaNode,
    registry: SchemaRegistry,
    context: ResolutionContext,
) -> Resolution:
    """Follow $ref chains from node until a concrete schema is reached."""
    if context.exceeded:
        return DepthExceededMarker(context.depth)

    name: str | None = None
    nullable = False
    while isinstance(node, RefNode):
        target = registry.lookup(node)
        if target is None:
            return UnresolvedRef(node.name)
        if node.name in context.visited:
            return CycleMarker(node.name)
        nullable = nullable or node.nullable
        context = context.enter(node.name)
        if context.exceeded:
            return DepthExceededMarker(context.depth)
        name = node.name
        node = target

    return Resolved(node=node, context=context, name=name, nullable=nullable)
