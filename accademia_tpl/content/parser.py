"""
Lesson Content Parser — Turn loosely structured lesson text into blocks.

Lesson and normative bodies are stored as plain text with a small,
markdown-like vocabulary. This module classifies that text line by line
into ContentBlock values for sequential rendering:

    # Heading            → HeadingBlock (level = number of '#')
    ![alt](src)          → ImageBlock
    [text](href)         → LinkBlock
    - item / * item / 1. → ListItemBlock
    ```lang ... ```      → CodeBlock (spans lines)
    > quoted             → QuoteBlock
    anything else        → ParagraphBlock

Parsing never fails. Blank lines are skipped, a line starting with '!['
that is not a well-formed image is dropped, a line that looks like a link
but is not well formed stays a paragraph, and an unterminated code fence
runs to the end of the input.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

from accademia_tpl.content.blocks import (
    BLOCK_SEQUENCE,
    CodeBlock,
    ContentBlock,
    HeadingBlock,
    ImageBlock,
    LinkBlock,
    ListItemBlock,
    ParagraphBlock,
    QuoteBlock,
)


# ════════════════════════════════════════════════════════════════
# Parsing Logic
# ════════════════════════════════════════════════════════════════

HEADING_PATTERN = re.compile(r"^(#+)\s*(.*)$")
IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
BULLET_PATTERN = re.compile(r"^[-*]\s+")
NUMBERED_PATTERN = re.compile(r"^\d+\.\s+")
QUOTE_PATTERN = re.compile(r"^>\s*")

CODE_FENCE = "```"
MAX_HEADING_LEVEL = 6
DEFAULT_IMAGE_ALT = "Immagine"


def _list_item_text(line: str) -> str | None:
    """Strip a single list marker, or return None if the line is not a list item."""
    if line.startswith(("- ", "* ")):
        return BULLET_PATTERN.sub("", line, count=1)
    numbered = NUMBERED_PATTERN.match(line)
    if numbered:
        return line[numbered.end():]
    return None


def parse_content(
    raw: str,
    *,
    max_heading_level: int = MAX_HEADING_LEVEL,
    image_fallback_alt: str = DEFAULT_IMAGE_ALT,
) -> list[ContentBlock]:
    """
    Parse lesson text into an ordered list of content blocks.

    Each non-blank line yields at most one block, except fenced code which
    consumes every line up to the closing fence. The fence language is
    trimmed, so "``` js" and "```js" both give "js".

    Args:
        raw: The lesson or document body.
        max_heading_level: Heading levels deeper than this are clamped to it
            (never beyond 6).
        image_fallback_alt: Block text for images with an empty alt text.

    Returns:
        Blocks in source order.
    """
    lines = raw.split("\n")
    blocks: list[ContentBlock] = []

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1

        if not line:
            continue

        # Headings
        if line.startswith("#"):
            heading = HEADING_PATTERN.match(line)
            level = max(1, min(len(heading.group(1)), max_heading_level, MAX_HEADING_LEVEL))
            blocks.append(HeadingBlock(text=heading.group(2), level=level))
            continue

        # Images (malformed ones produce nothing)
        if line.startswith("!["):
            image = IMAGE_PATTERN.search(line)
            if image:
                alt, src = image.group(1), image.group(2)
                blocks.append(ImageBlock(text=alt or image_fallback_alt, src=src, alt=alt))
            continue

        # Links
        if "[" in line and "](" in line:
            link = LINK_PATTERN.search(line)
            if link:
                blocks.append(LinkBlock(text=link.group(1), href=link.group(2)))
            else:
                blocks.append(ParagraphBlock(text=line))
            continue

        # List items
        item = _list_item_text(line)
        if item is not None:
            blocks.append(ListItemBlock(text=item))
            continue

        # Fenced code
        if line.startswith(CODE_FENCE):
            language = line[len(CODE_FENCE):].strip()
            code_lines: list[str] = []
            while i < len(lines) and not lines[i].strip().startswith(CODE_FENCE):
                code_lines.append(lines[i])
                i += 1
            i += 1  # closing fence
            blocks.append(CodeBlock(text="\n".join(code_lines).strip(), language=language))
            continue

        # Quotes
        if line.startswith(">"):
            blocks.append(QuoteBlock(text=QUOTE_PATTERN.sub("", line, count=1)))
            continue

        blocks.append(ParagraphBlock(text=line))

    return blocks


def outline(blocks: list[ContentBlock]) -> list[HeadingBlock]:
    """Return only the headings, in order, for a table of contents."""
    return [block for block in blocks if isinstance(block, HeadingBlock)]


def read_progress(scroll_top: float, scroll_height: float, client_height: float) -> float:
    """
    Percentage of a rendered lesson the reader has scrolled through.

    Clamped to [0, 100]. Content that fits the viewport has nothing to
    scroll and reports 0.
    """
    scrollable = scroll_height - client_height
    if scrollable <= 0:
        return 0.0
    return min(max(scroll_top / scrollable * 100, 0.0), 100.0)


# ════════════════════════════════════════════════════════════════
# Persistence
# ════════════════════════════════════════════════════════════════


def blocks_to_json(blocks: list[ContentBlock]) -> str:
    """Serialize blocks to JSON, tagging each with its kind."""
    return json.dumps(
        [block.model_dump() for block in blocks],
        indent=2,
        ensure_ascii=False,
    )


def save_blocks(blocks: list[ContentBlock], output_path: str | Path) -> Path:
    """Save parsed blocks to a JSON file."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(blocks_to_json(blocks), encoding="utf-8")
    return path


def load_blocks(json_path: str | Path) -> list[ContentBlock]:
    """Load blocks from a JSON file written by save_blocks."""
    raw = json.loads(Path(json_path).read_text(encoding="utf-8"))
    return BLOCK_SEQUENCE.validate_python(raw)
