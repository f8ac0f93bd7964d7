"""Declarations of where media references can appear in content documents.

The collector never discovers the schema dynamically. Each ReferenceSpec
names a source collection and the rules used to pull raw reference values
out of its documents. The shipped table mirrors the content model:

- lessons.intro_audio, lessons.panels[video].video  -> files
- lessons.icon, lessons.panels[text].image           -> images
- authors.image, lectures.thumbnail, meditations.thumbnail -> images
- pages.content (rich text blocks)                   -> images
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field, field_validator


class MediaKind(str, Enum):
    """Kinds of media asset; the value is the asset collection slug."""
    FILE = "files"
    IMAGE = "images"

    @property
    def label(self) -> str:
        return "file" if self is MediaKind.FILE else "image"


class FieldRule(BaseModel):
    """Direct relationship field, single value or has-many list.

    Attributes:
        target: Media kind the field points at
        field: Document key holding the reference
    """

    kind: Literal["field"] = "field"
    target: MediaKind
    field: str


class BlocksRule(BaseModel):
    """Array-of-blocks field where some block types embed a reference.

    Attributes:
        target: Media kind the block field points at
        field: Document key holding the block array
        block_type: Only blocks with this blockType are inspected
        block_field: Key inside the matching block holding the reference
    """

    kind: Literal["blocks"] = "blocks"
    target: MediaKind
    field: str
    block_type: str
    block_field: str


class RichTextRule(BaseModel):
    """Rich-text tree field whose block nodes embed image references."""

    kind: Literal["rich_text"] = "rich_text"
    target: MediaKind = MediaKind.IMAGE
    field: str

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: MediaKind) -> MediaKind:
        if v is not MediaKind.IMAGE:
            raise ValueError("Rich text blocks only embed images")
        return v


ReferenceRule = Annotated[
    Union[FieldRule, BlocksRule, RichTextRule],
    Field(discriminator="kind"),
]


class ReferenceSpec(BaseModel):
    """Where, within one collection, media ids may be embedded.

    Attributes:
        collection: Source collection slug
        where: Optional filter narrowing which documents are scanned
        depth: Relationship population depth used when scanning
        rules: Extraction rules applied to every scanned document
    """

    collection: str
    where: Dict[str, Any] = Field(default_factory=dict)
    depth: int = 0
    rules: List[ReferenceRule] = Field(min_length=1)

    @field_validator("depth")
    @classmethod
    def validate_depth(cls, v: int) -> int:
        if v < 0:
            raise ValueError("depth must not be negative")
        return v


DEFAULT_REFERENCE_SPECS: List[ReferenceSpec] = [
    ReferenceSpec(
        collection="lessons",
        rules=[
            FieldRule(target=MediaKind.FILE, field="intro_audio"),
            BlocksRule(
                target=MediaKind.FILE,
                field="panels",
                block_type="video",
                block_field="video",
            ),
            FieldRule(target=MediaKind.IMAGE, field="icon"),
            BlocksRule(
                target=MediaKind.IMAGE,
                field="panels",
                block_type="text",
                block_field="image",
            ),
        ],
    ),
    ReferenceSpec(
        collection="authors",
        where={"image": {"exists": True}},
        rules=[FieldRule(target=MediaKind.IMAGE, field="image")],
    ),
    ReferenceSpec(
        collection="lectures",
        where={"thumbnail": {"exists": True}},
        rules=[FieldRule(target=MediaKind.IMAGE, field="thumbnail")],
    ),
    ReferenceSpec(
        collection="meditations",
        where={"thumbnail": {"exists": True}},
        rules=[FieldRule(target=MediaKind.IMAGE, field="thumbnail")],
    ),
    ReferenceSpec(
        collection="pages",
        rules=[RichTextRule(field="content")],
    ),
]
