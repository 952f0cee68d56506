"""Convert HTTP method + path to TypeScript type and function names.

Pattern:
  - type name      -> {Prefix}{Method}{PathWords}
  - function name  -> {method}{PathWords}
  - module name    -> lowerCamelCase of the tag label

Path placeholders keep their parameter name as a word, so the same
(method, path) pair always yields the same identifier.

Examples:
  type_name("Api", "get", "/user/{id}/orders")   -> ApiGetUserIdOrders
  type_name("Api", "post", "/pet-store/items")    -> ApiPostPetStoreItems
  operation_function_name("get", "/pets/{petId}") -> getPetsPetId
  operation_function_name("delete", "/")          -> deleteRoot
  module_name("User Profile")                     -> userProfile
  module_name("2024")                             -> module2024
  module_name("!!!")                              -> defaultModule
"""

from __future__ import annotations

import re
from functools import lru_cache

# Word used when a path has no segments at all
ROOT_WORD = "Root"

# Prefix for module labels that cannot start an identifier (e.g. "2024")
MODULE_FALLBACK_WORD = "module"

# Module name for labels without a single usable character
DEFAULT_MODULE_NAME = "defaultModule"

# Unicode letters and digits, no underscore
_WORD_RE = re.compile(r"[^\W_]+")

# Valid unquoted TypeScript property key
_TS_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def _split_words(text: str) -> list[str]:
    """Split text into words on separators and camel humps."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", text)
    s2 = re.sub(r"([a-z\d])([A-Z])", r"\1 \2", s1)
    return _WORD_RE.findall(s2)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def _extract_path_words(path: str) -> list[str]:
    """Extract words from every path segment, keeping {param} names."""
    words: list[str] = []
    for segment in path.split("/"):
        if not segment:
            continue
        segment = segment.replace("{", " ").replace("}", " ")
        words.extend(_split_words(segment))
    return words


def _sanitize_prefix(prefix: str) -> str:
    """Keep only identifier characters of a user-supplied prefix."""
    cleaned = "".join(_WORD_RE.findall(prefix or ""))
    while cleaned and not cleaned[0].isalpha():
        cleaned = cleaned[1:]
    return cleaned


def pascal_case(text: str) -> str:
    """Convert arbitrary text to PascalCase."""
    return "".join(_capitalize(w) for w in _split_words(text))


def camel_case(text: str) -> str:
    """Convert arbitrary text to lowerCamelCase."""
    words = _split_words(text)
    if not words:
        return ""
    return words[0].lower() + "".join(_capitalize(w) for w in words[1:])


def _path_part(path: str) -> str:
    words = _extract_path_words(path)
    if not words:
        return ROOT_WORD
    return "".join(_capitalize(w) for w in words)


@lru_cache(maxsize=1024)
def type_name(prefix: str, method: str, path: str) -> str:
    """Build the base name shared by an operation's Request/Response types.

    Returns a name like 'ApiGetPetsPetId'. The caller appends 'Request' or
    'Response'.
    """
    name = f"{_sanitize_prefix(prefix)}{pascal_case(method)}{_path_part(path)}"
    if not name[:1].isalpha():
        name = f"{ROOT_WORD}{name}"
    return name


@lru_cache(maxsize=1024)
def operation_function_name(method: str, path: str) -> str:
    """Build the client function name for an operation.

    Returns a name like 'getPetsPetId'.
    """
    verb = camel_case(method) or "request"
    name = f"{verb}{_path_part(path)}"
    if not name[:1].isalpha():
        name = f"request{name}"
    return name


@lru_cache(maxsize=512)
def module_name(label: str) -> str:
    """Derive a code-safe module identifier from a human-readable tag label."""
    candidate = camel_case(label)
    if not candidate:
        return DEFAULT_MODULE_NAME

    stripped = candidate
    while stripped and not stripped[0].isalpha():
        stripped = stripped[1:]
    if not stripped:
        return f"{MODULE_FALLBACK_WORD}{candidate}"
    return stripped[0].lower() + stripped[1:]


def ts_property_key(name: str) -> str:
    """Quote a property name unless it is a plain TypeScript identifier."""
    if _TS_IDENTIFIER_RE.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def dedupe_names(names: list[str]) -> list[str]:
    """Suffix repeated names with 2, 3, ... so every entry is unique.

    The first occurrence keeps its name. A suffixed name skips every name
    already in the list, so `["getA", "getA", "getA2"]` becomes
    `["getA", "getA3", "getA2"]`.
    """
    natural = set(names)
    taken: set[str] = set()
    result: list[str] = []
    for name in names:
        unique = name
        if unique in taken:
            index = 2
            while f"{name}{index}" in natural or f"{name}{index}" in taken:
                index += 1
            unique = f"{name}{index}"
        taken.add(unique)
        result.append(unique)
    return result
