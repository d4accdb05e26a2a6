"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Converter for legacy Jira wiki markup.

Older Jira records store descriptions as wiki markup strings instead of
structured documents. This is a line oriented, regex based pass; it covers the
constructs that show up in test case descriptions and leaves anything else as
plain text.
"""

import logging
import re

logger = logging.getLogger("xtot.wiki_markup")

_STASH = "\x00{}\x00"


class WikiMarkupConverter:
    """Converts Jira wiki markup to markdown."""

    def __init__(self) -> None:
        self.code_block_pattern = re.compile(r"\{code(?::([^}]*))?\}(.*?)\{code\}", re.DOTALL)
        self.noformat_pattern = re.compile(r"\{noformat(?::[^}]*)?\}(.*?)\{noformat\}", re.DOTALL)
        self.panel_pattern = re.compile(
            r"\{(panel|info|warning|note|tip)(?::([^}]*))?\}(.*?)\{\1\}", re.DOTALL
        )
        self.quote_pattern = re.compile(r"\{quote\}(.*?)\{quote\}", re.DOTALL)
        self.heading_pattern = re.compile(r"^h([1-6])\.\s*(.+)$", re.MULTILINE)
        self.unordered_list_pattern = re.compile(r"^([ \t]*)([*-]+)[ \t]+(.+)$", re.MULTILINE)
        self.ordered_list_pattern = re.compile(r"^([ \t]*)(#+)[ \t]+(.+)$", re.MULTILINE)
        self.blockquote_pattern = re.compile(r"^bq\.\s*(.+)$", re.MULTILINE)
        self.hr_pattern = re.compile(r"^----+\s*$", re.MULTILINE)
        self.image_pattern = re.compile(r"!([^!|\s]+)(?:\|[^!]*)?!")
        self.link_pattern = re.compile(r"(?<![!\w])\[([^|\]~]+)(?:\|([^\]]+))?\](?!\()")
        self.bold_pattern = re.compile(r"(?<![*\w])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![*\w])")
        self.strike_pattern = re.compile(r"(?<![\w-])-(?![\s-])([^-\n]+?)(?<!\s)-(?![\w-])")
        self.underline_pattern = re.compile(r"(?<!\w)\+(?!\s)([^+\n]+?)(?<!\s)\+(?!\w)")
        self.monospace_pattern = re.compile(r"\{\{(.+?)\}\}")
        self.color_pattern = re.compile(r"\{color(?::[^}]*)?\}(.*?)\{color\}", re.DOTALL)
        self.table_row_pattern = re.compile(r"^\s*\|")

    def convert(self, markup: str) -> str:
        """Convert a wiki markup string to markdown."""
        if not markup or not isinstance(markup, str):
            return ""

        stash: list[str] = []
        text = markup.replace("\r\n", "\n")
        text = self._convert_code_blocks(text, stash)
        text = self._convert_panels(text)
        text = self._convert_tables(text)
        text = self._convert_lists(text)
        text = self.heading_pattern.sub(lambda m: f"{'#' * int(m.group(1))} {m.group(2).strip()}", text)
        text = self.blockquote_pattern.sub(lambda m: f"> {m.group(1).strip()}", text)
        text = self.hr_pattern.sub("---", text)
        text = self.image_pattern.sub(lambda m: f"![]({m.group(1)})", text)
        text = self.link_pattern.sub(self._replace_link, text)
        text = self._convert_text_formatting(text)

        for index, block in enumerate(stash):
            text = text.replace(_STASH.format(index), block)
        return text.strip()

    def _convert_code_blocks(self, text: str, stash: list[str]) -> str:
        """Move code blocks out of the way so later passes leave them alone."""

        def keep(block: str) -> str:
            stash.append(block)
            return _STASH.format(len(stash) - 1)

        def replace_code(match: re.Match[str]) -> str:
            language = (match.group(1) or "").split("|")[0].strip()
            return keep(f"```{language}\n{match.group(2).strip(chr(10))}\n```")

        def replace_noformat(match: re.Match[str]) -> str:
            return keep(f"```\n{match.group(1).strip(chr(10))}\n```")

        text = self.code_block_pattern.sub(replace_code, text)
        return self.noformat_pattern.sub(replace_noformat, text)

    def _convert_panels(self, text: str) -> str:
        emoji = {"info": "ℹ️ ", "warning": "⚠️ ", "note": "🗒 ", "tip": "✅ ", "panel": ""}

        def replace_panel(match: re.Match[str]) -> str:
            return f"{emoji[match.group(1)]}{match.group(3).strip()}"

        text = self.panel_pattern.sub(replace_panel, text)
        text = self.quote_pattern.sub(
            lambda m: "\n".join(f"> {line}" for line in m.group(1).strip().split("\n")), text
        )
        return self.color_pattern.sub(r"\1", text)

    def _convert_tables(self, text: str) -> str:
        lines = []
        for line in text.split("\n"):
            if not self.table_row_pattern.match(line):
                lines.append(line)
                continue
            stripped = line.strip()
            if stripped.startswith("||"):
                cells = [c.strip() for c in stripped.strip("|").split("||")]
                lines.append("|" + "|".join(cells) + "|")
                lines.append("|:---" * len(cells) + "|")
            else:
                cells = [c.strip() for c in stripped.strip("|").split("|")]
                lines.append("|" + "|".join(cells) + "|")
        return "\n".join(lines)

    def _convert_lists(self, text: str) -> str:
        def replace_unordered(match: re.Match[str]) -> str:
            level = len(match.group(2)) - 1
            return f"{'  ' * level}* {match.group(3)}"

        def replace_ordered(match: re.Match[str]) -> str:
            level = len(match.group(2)) - 1
            return f"{'  ' * level}1. {match.group(3)}"

        text = self.unordered_list_pattern.sub(replace_unordered, text)
        return self.ordered_list_pattern.sub(replace_ordered, text)

    def _replace_link(self, match: re.Match[str]) -> str:
        title = match.group(1).strip()
        target = (match.group(2) or "").strip()
        if target:
            return f"[{title}]({target})"
        return f"[{title}]({title})"

    def _convert_text_formatting(self, text: str) -> str:
        text = self.monospace_pattern.sub(r"`\1`", text)
        text = self.bold_pattern.sub(r"**\1**", text)
        text = self.strike_pattern.sub(r"~\1~", text)
        return self.underline_pattern.sub(r"<u>\1</u>", text)


_default_converter = WikiMarkupConverter()


def wiki_to_markdown(markup: str) -> str:
    """Convert legacy Jira wiki markup to markdown."""
    return _default_converter.convert(markup)
