"""Rich-text (Lexical) trees and the image references embedded in them.

Page bodies are stored as Lexical JSON. Only ``block`` nodes can embed
media, and each block type keeps its image references in a different shape:

- textbox: ``fields.image`` holds one reference
- layout:  ``fields.items`` is a list of objects, each with an ``image``
- gallery: ``fields.items`` is a flat list of references

The JSON is parsed into the small tree below so extraction is a dispatch on
BlockType instead of probing arbitrary dicts. Unknown block types are kept
as UnknownBlock and contribute nothing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Mapping, Set, Union

from media_gc.cleanup.references import normalize_reference


class BlockType(str, Enum):
    """Block types known to embed image references."""
    TEXTBOX = "textbox"
    LAYOUT = "layout"
    GALLERY = "gallery"


@dataclass
class TextBoxBlock:
    image: Any = None


@dataclass
class LayoutItem:
    image: Any = None


@dataclass
class LayoutBlock:
    items: List[LayoutItem] = field(default_factory=list)


@dataclass
class GalleryBlock:
    items: List[Any] = field(default_factory=list)


@dataclass
class UnknownBlock:
    block_type: str | None = None


BlockPayload = Union[TextBoxBlock, LayoutBlock, GalleryBlock, UnknownBlock]


@dataclass
class TextNode:
    text: str = ""


@dataclass
class ElementNode:
    """Any container node: paragraph, heading, list, link, ..."""
    type: str
    children: List["Node"] = field(default_factory=list)


@dataclass
class BlockNode:
    payload: BlockPayload
    children: List["Node"] = field(default_factory=list)


@dataclass
class RootNode:
    children: List["Node"] = field(default_factory=list)


Node = Union[RootNode, ElementNode, BlockNode, TextNode]


def parse_rich_text(content: Any) -> RootNode | None:
    """Parse a Lexical document into a RootNode.

    Args:
        content: Lexical JSON, either ``{"root": {...}}`` or the root itself

    Returns:
        RootNode, or None when the document has no readable root
    """
    if not isinstance(content, Mapping):
        return None

    root = content.get("root")
    if isinstance(root, Mapping):
        return RootNode(children=_parse_children(root))
    if content.get("type") == "root":
        return RootNode(children=_parse_children(content))
    return None


def _parse_children(data: Mapping) -> List[Node]:
    children = data.get("children")
    if not isinstance(children, list):
        return []
    nodes = []
    for child in children:
        node = _parse_node(child)
        if node is not None:
            nodes.append(node)
    return nodes


def _parse_node(data: Any) -> Node | None:
    if not isinstance(data, Mapping):
        return None

    node_type = data.get("type")
    if node_type == "block":
        return BlockNode(payload=_parse_block(data), children=_parse_children(data))
    if node_type == "text":
        return TextNode(text=str(data.get("text") or ""))
    if node_type == "root" or isinstance(data.get("root"), Mapping):
        return parse_rich_text(data)
    return ElementNode(type=str(node_type or ""), children=_parse_children(data))


def _parse_block(data: Mapping) -> BlockPayload:
    fields = data.get("fields")
    if not isinstance(fields, Mapping):
        fields = {}

    # The editor stores blockType inside fields; older nodes carry it on the node
    raw_type = data.get("blockType") or fields.get("blockType")
    if not isinstance(raw_type, str):
        return UnknownBlock()
    try:
        block_type = BlockType(raw_type)
    except ValueError:
        return UnknownBlock(block_type=raw_type)

    items = fields.get("items")
    if not isinstance(items, list):
        items = []

    if block_type is BlockType.TEXTBOX:
        return TextBoxBlock(image=fields.get("image"))
    if block_type is BlockType.LAYOUT:
        return LayoutBlock(
            items=[LayoutItem(image=item.get("image")) for item in items if isinstance(item, Mapping)]
        )
    return GalleryBlock(items=list(items))


def iter_blocks(node: Node) -> Iterator[BlockNode]:
    """Yield every block node in the tree, depth first."""
    if isinstance(node, BlockNode):
        yield node
    if isinstance(node, TextNode):
        return
    for child in node.children:
        yield from iter_blocks(child)


def block_image_refs(payload: BlockPayload) -> List[Any]:
    """Raw image references carried by one block payload."""
    if isinstance(payload, TextBoxBlock):
        return [payload.image] if payload.image is not None else []
    if isinstance(payload, LayoutBlock):
        return [item.image for item in payload.items if item.image is not None]
    if isinstance(payload, GalleryBlock):
        return list(payload.items)
    return []


def extract_image_ids(content: Any, referenced_ids: Set[int]) -> None:
    """Add every image id embedded in a rich-text document to referenced_ids.

    Malformed documents contribute nothing.
    """
    root = content if isinstance(content, RootNode) else parse_rich_text(content)
    if root is None:
        return

    for block in iter_blocks(root):
        for raw in block_image_refs(block.payload):
            image_id = normalize_reference(raw)
            if image_id is not None:
                referenced_ids.add(image_id)
