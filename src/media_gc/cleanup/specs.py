"""Extraction of raw media references from documents per ReferenceSpec."""

from typing import Any, Callable, Dict, Iterator, Mapping, Tuple

from media_gc.cleanup.richtext import block_image_refs, iter_blocks, parse_rich_text
from media_gc.config.references import (
    BlocksRule,
    FieldRule,
    MediaKind,
    ReferenceSpec,
    RichTextRule,
)

RawReference = Tuple[MediaKind, Any]


def _values(value: Any) -> Iterator[Any]:
    # has-many relationship fields hold a list of references
    if value is None:
        return
    if isinstance(value, list):
        for item in value:
            if item is not None:
                yield item
    else:
        yield value


def _extract_field(rule: FieldRule, doc: Mapping[str, Any]) -> Iterator[RawReference]:
    for value in _values(doc.get(rule.field)):
        yield rule.target, value


def _extract_blocks(rule: BlocksRule, doc: Mapping[str, Any]) -> Iterator[RawReference]:
    blocks = doc.get(rule.field)
    if not isinstance(blocks, list):
        return
    for block in blocks:
        if not isinstance(block, Mapping) or block.get("blockType") != rule.block_type:
            continue
        for value in _values(block.get(rule.block_field)):
            yield rule.target, value


def _extract_rich_text(rule: RichTextRule, doc: Mapping[str, Any]) -> Iterator[RawReference]:
    root = parse_rich_text(doc.get(rule.field))
    if root is None:
        return
    for block in iter_blocks(root):
        for value in block_image_refs(block.payload):
            yield rule.target, value


_EXTRACTORS: Dict[str, Callable[[Any, Mapping[str, Any]], Iterator[RawReference]]] = {
    "field": _extract_field,
    "blocks": _extract_blocks,
    "rich_text": _extract_rich_text,
}


def extract_references(spec: ReferenceSpec, doc: Mapping[str, Any]) -> Iterator[RawReference]:
    """Yield (target kind, raw reference value) pairs found in one document.

    Args:
        spec: Reference declaration for the document's collection
        doc: Document as returned by the store

    Yields:
        Pairs of media kind and un-normalized reference value
    """
    for rule in spec.rules:
        yield from _EXTRACTORS[rule.kind](rule, doc)
