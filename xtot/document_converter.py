"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Structured document to markdown converter.

Walks an Atlassian Document Format tree and renders Testomat.io flavoured
markdown. Dispatch is keyed on the node kind; list items receive their parent
list context (bullet or ordered, item number, nesting depth) as an explicit
argument. Unknown node kinds and unsupported marks degrade to empty or
unwrapped output and are reported, never raised.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from xtot.core.errors import StructuralAmbiguity
from xtot.core.logging import ErrorTracker
from xtot.models import DocumentNode, Mark, MarkKind, NodeKind

logger = logging.getLogger("xtot.document_converter")

PANEL_EMOJI = {
    "warning": "⚠️",
    "success": "✅",
    "info": "ℹ️",
    "note": "🗒",
    "error": "❌",
}

# Separator cell emitted per header cell; normalized on the whole table
SHORT_SEPARATOR = "|:-:"
LONG_SEPARATOR = "|:---"

LIST_KINDS = (NodeKind.BULLET_LIST, NodeKind.ORDERED_LIST)


@dataclass(frozen=True)
class ListContext:
    """Parent list information handed to a list item."""

    ordered: bool
    number: int = 1
    depth: int = 0

    @property
    def symbol(self) -> str:
        return f"{self.number}." if self.ordered else "*"


def _as_mark(mark: Mark | dict[str, Any]) -> Mark:
    return mark if isinstance(mark, Mark) else Mark.model_validate(mark)


def apply_marks(
    text: str,
    marks: Iterable[Mark | dict[str, Any]],
    warnings: set[str] | None = None,
) -> str:
    """Wrap text in markdown delimiters for each mark, in source order.

    The fold runs left to right, so the first mark ends up innermost:
    ``[em, strong]`` renders ``**_x_**`` while ``[strong, em]`` renders
    ``_**x**_``.

    Args:
        text: Literal text of the node
        marks: Marks in the order they appear in the source document
        warnings: Collects the names of unsupported mark kinds

    Returns:
        The marked-up text
    """
    converted = text
    for mark in marks:
        mark = _as_mark(mark)
        if mark.type == MarkKind.CODE:
            converted = f"`{converted}`"
        elif mark.type == MarkKind.EM:
            converted = f"_{converted}_"
        elif mark.type == MarkKind.STRIKE:
            converted = f"~{converted}~"
        elif mark.type == MarkKind.STRONG:
            converted = f"**{converted}**"
        elif mark.type == MarkKind.LINK:
            converted = f"[{converted}]({mark.attrs.get('href', '')})"
        else:
            if warnings is not None:
                warnings.add(mark.type)
            logger.debug(f"Unsupported mark '{mark.type}' left unwrapped")
    return converted


class DocumentConverter:
    """
    Converts structured document trees to markdown.

    A converter instance accumulates ``warnings`` (unsupported mark kinds) and
    ``unknown_kinds`` (node kinds it could not render) across calls, so one
    instance can be reused for a whole migration and reported at the end.
    """

    def __init__(self, error_tracker: ErrorTracker | None = None):
        self.error_tracker = error_tracker
        self.warnings: set[str] = set()
        self.unknown_kinds: set[str] = set()
        self._handlers: dict[NodeKind, Callable[[DocumentNode, ListContext | None], str]] = {
            NodeKind.DOC: self._convert_doc,
            NodeKind.PARAGRAPH: self._convert_inline_container,
            NodeKind.NESTED_EXPAND: self._convert_inline_container,
            NodeKind.EXPAND: self._convert_expand,
            NodeKind.HEADING: self._convert_heading,
            NodeKind.TEXT: self._convert_text,
            NodeKind.PANEL: self._convert_panel,
            NodeKind.HARD_BREAK: lambda node, ctx: "\n",
            NodeKind.INLINE_CARD: self._convert_card,
            NodeKind.BLOCK_CARD: self._convert_card,
            NodeKind.EMBED_CARD: self._convert_card,
            NodeKind.BLOCKQUOTE: self._convert_blockquote,
            NodeKind.BULLET_LIST: self._convert_list,
            NodeKind.ORDERED_LIST: self._convert_list,
            NodeKind.LIST_ITEM: self._convert_list_item,
            NodeKind.CODE_BLOCK: self._convert_code_block,
            NodeKind.RULE: lambda node, ctx: "\n\n---\n",
            NodeKind.EMOJI: self._convert_emoji,
            NodeKind.TABLE: self._convert_table,
            NodeKind.TABLE_ROW: self._convert_table_row,
            NodeKind.TABLE_HEADER: self._convert_table_cell,
            NodeKind.TABLE_CELL: self._convert_table_cell,
            NodeKind.MEDIA_SINGLE: self._convert_inline_container,
            NodeKind.MEDIA_GROUP: self._convert_inline_container,
            NodeKind.MEDIA: self._convert_media,
        }

    def convert(self, document: DocumentNode | dict[str, Any]) -> str | None:
        """
        Convert a document to markdown.

        Args:
            document: Root node, either parsed or as the raw JSON dict

        Returns:
            Markdown text, or None when the document is malformed
        """
        try:
            node = (
                document
                if isinstance(document, DocumentNode)
                else DocumentNode.model_validate(document)
            )
            return self._convert(node)
        except (ValidationError, TypeError, ValueError) as e:
            message = f"Error converting document to markdown: {e}"
            logger.error(message)
            if self.error_tracker:
                self.error_tracker.add_error(StructuralAmbiguity(message))
            return None

    def _convert(self, node: DocumentNode, ctx: ListContext | None = None) -> str:
        handler = self._handlers.get(node.kind) if node.kind else None
        if handler is None:
            self._report_unknown(node)
            return ""
        return handler(node, ctx)

    def _report_unknown(self, node: DocumentNode) -> None:
        logger.warning(f"Error parsing node of type '{node.type}', skipping it")
        self.unknown_kinds.add(node.type)
        if self.error_tracker:
            self.error_tracker.add_error(
                StructuralAmbiguity(f"Unknown document node '{node.type}'"),
                {"node_type": node.type},
            )

    def _children(self, node: DocumentNode, ctx: ListContext | None = None) -> list[str]:
        return [self._convert(child, ctx) for child in node.content]

    def _convert_doc(self, node, ctx):
        return "\n\n".join(self._children(node))

    def _convert_inline_container(self, node, ctx):
        return "".join(self._children(node))

    def _convert_expand(self, node, ctx):
        body = "\n\n".join(self._children(node))
        title = node.attrs.get("title")
        return f"#### {title}\n\n{body}" if title else body

    def _convert_heading(self, node, ctx):
        level = min(max(int(node.attrs.get("level") or 1), 1), 6)
        return f"{'#' * level} {''.join(self._children(node))}"

    def _convert_text(self, node, ctx):
        return apply_marks(node.text, node.marks, self.warnings)

    def _convert_panel(self, node, ctx):
        parts = self._children(node)
        emoji = PANEL_EMOJI.get(node.attrs.get("panelType", ""), "")
        if emoji and parts:
            parts[0] = f"{emoji} {parts[0]}"
        return "\n\n".join(parts)

    def _convert_card(self, node, ctx):
        url = node.attrs.get("url", "")
        return f"[{url}]({url})"

    def _convert_blockquote(self, node, ctx):
        quoted = "\n\n".join(self._children(node))
        return "\n".join(f"> {line}" if line else ">" for line in quoted.split("\n"))

    def _convert_list(self, node, ctx):
        ordered = node.kind == NodeKind.ORDERED_LIST
        depth = ctx.depth + 1 if ctx else 0
        start = int(node.attrs.get("order") or 1) if ordered else 1

        items = []
        for number, child in enumerate(node.content, start=start):
            items.append(self._convert(child, ListContext(ordered, number, depth)))
        return "\n".join(items)

    def _convert_list_item(self, node, ctx):
        ctx = ctx or ListContext(ordered=False)
        inline = []
        nested = []
        for child in node.content:
            if child.kind in LIST_KINDS:
                nested.append(self._convert(child, ctx))
            else:
                inline.append(self._convert(child).rstrip())

        rendered = f"{'  ' * (ctx.depth + 1)}{ctx.symbol} {' '.join(inline)}"
        if nested:
            rendered += "\n" + "\n".join(nested)
        return rendered

    def _convert_code_block(self, node, ctx):
        language = node.attrs.get("language") or ""
        body = "\n".join(child.text for child in node.content)
        return f"\n```{language}\n{body}\n```"

    def _convert_emoji(self, node, ctx):
        return node.attrs.get("shortName") or node.attrs.get("text", "")

    def _convert_table(self, node, ctx):
        return "".join(self._children(node)).replace(SHORT_SEPARATOR, LONG_SEPARATOR)

    def _convert_table_row(self, node, ctx):
        header_count = sum(1 for cell in node.content if cell.kind == NodeKind.TABLE_HEADER)
        row = "|" + "".join(self._children(node))
        if header_count:
            return f"{row}\n{SHORT_SEPARATOR * header_count}|\n"
        return f"{row}\n"

    def _convert_table_cell(self, node, ctx):
        return " ".join(self._children(node)).replace("\n", " ") + "|"

    def _convert_media(self, node, ctx):
        # alt carries the attachment file name, rewritten after upload
        return f"![]({node.attrs.get('alt', '')})"


def adf_to_markdown(
    document: DocumentNode | dict[str, Any],
    warnings: set[str] | None = None,
    error_tracker: ErrorTracker | None = None,
) -> str | None:
    """
    Convert a structured document to markdown in one call.

    Args:
        document: Root node or raw JSON dict
        warnings: Optional set that receives unsupported mark kinds
        error_tracker: Optional tracker for diagnostics

    Returns:
        Markdown text, or None when the document is malformed
    """
    converter = DocumentConverter(error_tracker)
    result = converter.convert(document)
    if warnings is not None:
        warnings.update(converter.warnings)
    return result
