"""Helpers for walking canonical record trees decoded from XML, CSV or JSON."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Tuple

from . import rules


def is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def is_blank(value: Any) -> bool:
    return value is None or value == ""


def singleton_wrapper_key(node: Any) -> Optional[str]:
    """Key of a one-entry mapping whose value is itself a mapping, else None."""
    if is_mapping(node) and len(node) == 1:
        key = next(iter(node))
        if is_mapping(node[key]):
            return key
    return None


def unwrap_singleton_wrapper(node: Any) -> Any:
    """``{"Invoice": {...}}`` -> ``{...}``; anything else is returned as is."""
    key = singleton_wrapper_key(node)
    return node[key] if key is not None else node


def collapse_repeated_child(node: Any) -> Any:
    """
    ``{"LineItem": [...]}`` or ``{"LineItem": {...}}`` -> list of children.

    XML has no native arrays, so a container of repeated elements decodes as a
    one-key mapping. Values that are already lists, or mappings with more than
    one key, are returned unchanged.
    """
    if is_mapping(node):
        keys = [key for key in node if key != rules.XML_ATTRIBUTES_KEY]
        if len(keys) == 1:
            child = node[keys[0]]
            if isinstance(child, list):
                return child
            if is_mapping(child):
                return [child]
    return node


def extract_primitive(value: Any) -> Any:
    """Scalar carried by an XML node mapping (``#text`` or a lone scalar child)."""
    if is_mapping(value):
        if rules.XML_TEXT_KEY in value:
            return value[rules.XML_TEXT_KEY]
        if len(value) == 1:
            only = next(iter(value.values()))
            if not is_mapping(only):
                return only
    return value


def spelling_variants(name: str) -> Tuple[str, ...]:
    """Original, lower-camel and all-lowercase spellings of a field name."""
    variants: List[str] = []
    for candidate in (name, name[:1].lower() + name[1:], name.lower()):
        if candidate not in variants:
            variants.append(candidate)
    return tuple(variants)


def mandatory_candidates(name: str) -> Tuple[str, ...]:
    candidates = list(spelling_variants(name))
    group = rules.MANDATORY_ALIAS_GROUPS.get(name)
    if group:
        for alias in rules.FIELD_ALIASES[group]:
            if alias not in candidates:
                candidates.append(alias)
    return tuple(candidates)


def present_key(record: dict, aliases: Iterable[str]) -> Optional[str]:
    """First alias that exists as a key in the record."""
    for alias in aliases:
        if alias in record:
            return alias
    return None


def first_value(record: dict, aliases: Iterable[str]) -> Tuple[Optional[str], Any]:
    """First alias whose primitive value is not blank, with that value."""
    for alias in aliases:
        value = extract_primitive(record.get(alias))
        if not is_blank(value):
            return alias, value
    return None, None
