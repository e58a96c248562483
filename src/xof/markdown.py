"""Fenced code block extraction from model responses.

The response is parsed into a CommonMark syntax tree and walked with an
explicit stack, so blocks come back in document order no matter how deeply
they are nested (block quotes, list items).
"""

from typing import List, Optional

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from xof.code_block import CodeBlock


# Node type tag for fenced code blocks (``` or ~~~). Indented code blocks
# ("code_block") carry no language and are ignored.
FENCE = "fence"

_parser = MarkdownIt("commonmark")


def _fence_language(info: str) -> str:
    # Only the first word of the info string is the language
    parts = info.strip().split(maxsplit=1)
    return parts[0] if parts else ""


def extract_code_blocks(document: str) -> List[CodeBlock]:
    """
    Return every fenced code block in `document`, in source order.

    A document without fences yields an empty list.
    """
    root = SyntaxTreeNode(_parser.parse(document))
    blocks: List[CodeBlock] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == FENCE:
            blocks.append(
                CodeBlock(language=_fence_language(node.info), content=node.content)
            )
            continue
        # Reversed so the leftmost child is popped first
        stack.extend(reversed(node.children))
    return blocks


def select_code_block(blocks: List[CodeBlock], language: str) -> Optional[CodeBlock]:
    """Pick the last block tagged exactly `language`; later answers win."""
    selected = None
    for block in blocks:
        if block.language == language:
            selected = block
    return selected
