"""
Content Blocks — Typed units of parsed lesson and document text.

One frozen Pydantic model per block kind, each carrying only the fields
relevant to it. ContentBlock is the discriminated union over all of them,
keyed on `kind`, so serialized sequences load back into the right types.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Block(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class HeadingBlock(_Block):
    kind: Literal["heading"] = "heading"
    level: int = Field(ge=1, le=6)


class ImageBlock(_Block):
    kind: Literal["image"] = "image"
    src: str
    alt: str = ""


class LinkBlock(_Block):
    kind: Literal["link"] = "link"
    href: str


class ListItemBlock(_Block):
    kind: Literal["list_item"] = "list_item"


class CodeBlock(_Block):
    kind: Literal["code"] = "code"
    language: str = ""


class QuoteBlock(_Block):
    kind: Literal["quote"] = "quote"


class ParagraphBlock(_Block):
    kind: Literal["paragraph"] = "paragraph"


ContentBlock = Annotated[
    Union[
        HeadingBlock,
        ImageBlock,
        LinkBlock,
        ListItemBlock,
        CodeBlock,
        QuoteBlock,
        ParagraphBlock,
    ],
    Field(discriminator="kind"),
]

BLOCK_SEQUENCE = TypeAdapter(list[ContentBlock])
