"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Pydantic models for the records that cross the source and destination boundaries.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Xray marks the repository root with this folder id
ROOT_FOLDER_ID = "-1"


def _as_str_id(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class NodeKind(str, Enum):
    """Node types of the Atlassian structured document format."""

    DOC = "doc"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    TEXT = "text"
    PANEL = "panel"
    EXPAND = "expand"
    NESTED_EXPAND = "nestedExpand"
    HARD_BREAK = "hardBreak"
    INLINE_CARD = "inlineCard"
    BLOCK_CARD = "blockCard"
    EMBED_CARD = "embedCard"
    BLOCKQUOTE = "blockquote"
    BULLET_LIST = "bulletList"
    ORDERED_LIST = "orderedList"
    LIST_ITEM = "listItem"
    CODE_BLOCK = "codeBlock"
    RULE = "rule"
    EMOJI = "emoji"
    TABLE = "table"
    TABLE_ROW = "tableRow"
    TABLE_HEADER = "tableHeader"
    TABLE_CELL = "tableCell"
    MEDIA_SINGLE = "mediaSingle"
    MEDIA_GROUP = "mediaGroup"
    MEDIA = "media"


class MarkKind(str, Enum):
    """Inline style marks supported by the markdown converter."""

    CODE = "code"
    EM = "em"
    STRIKE = "strike"
    STRONG = "strong"
    LINK = "link"


class Mark(BaseModel):
    """An inline style annotation attached to a text node."""

    type: str
    attrs: dict[str, Any] = Field(default_factory=dict)

    @field_validator("attrs", mode="before")
    @classmethod
    def _none_attrs(cls, value):
        return value or {}


class DocumentNode(BaseModel):
    """
    A node of a structured (ADF) document.

    ``type`` stays a plain string so that documents containing node kinds
    unknown to this version still parse; the converter decides what to do
    with them.
    """

    type: str
    attrs: dict[str, Any] = Field(default_factory=dict)
    content: list["DocumentNode"] = Field(default_factory=list)
    marks: list[Mark] = Field(default_factory=list)
    text: str = ""

    model_config = {"extra": "ignore"}

    @field_validator("attrs", mode="before")
    @classmethod
    def _none_attrs(cls, value):
        return value or {}

    @field_validator("content", "marks", mode="before")
    @classmethod
    def _none_list(cls, value):
        return value or []

    @property
    def kind(self) -> NodeKind | None:
        """The node kind, or None when the kind is not known."""
        try:
            return NodeKind(self.type)
        except ValueError:
            return None


DocumentNode.model_rebuild()


class FolderNode(BaseModel):
    """A source hierarchy entry (Xray folder or TestRail suite/section)."""

    id: str = Field(..., alias="folderId")
    name: str
    parent_id: str | None = Field(None, alias="parentFolderId")
    child_folder_ids: list[str] = Field(default_factory=list, alias="folders")
    direct_test_count: int = Field(0, alias="testsCount")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return _as_str_id(value)

    @field_validator("child_folder_ids", mode="before")
    @classmethod
    def _coerce_children(cls, value):
        if not value:
            return []
        # The repository API sometimes inlines child folder objects
        return [
            _as_str_id(child.get("folderId", child.get("id"))) if isinstance(child, dict)
            else _as_str_id(child)
            for child in value
        ]

    @field_validator("direct_test_count", mode="before")
    @classmethod
    def _coerce_count(cls, value):
        return value or 0

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_FOLDER_ID

    @property
    def is_container(self) -> bool:
        """Folders with sub-folders become destination folder suites."""
        return len(self.child_folder_ids) > 0

    @property
    def has_real_parent(self) -> bool:
        return self.parent_id is not None and self.parent_id != ROOT_FOLDER_ID


class StepAttachment(BaseModel):
    """An attachment referenced from an Xray test step."""

    id: str
    filename: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return _as_str_id(value)


class TestStep(BaseModel):
    """A manual test step."""

    __test__ = False

    action: str | None = None
    data: str | None = None
    result: str | None = None
    call_test_issue_id: str | None = Field(None, alias="callTestIssueId")
    attachments: list[StepAttachment] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @field_validator("call_test_issue_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return _as_str_id(value)

    @field_validator("attachments", mode="before")
    @classmethod
    def _none_list(cls, value):
        return value or []


class SourceTestCase(BaseModel):
    """A test case as read from the source system, description already converted."""

    id: str
    key: str | None = None
    summary: str = ""
    type: str | None = None
    priority: str | None = None
    description: str | None = None
    labels: list[str] = Field(default_factory=list)
    attachments: dict[str, Path] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return _as_str_id(value)


class Priority(BaseModel):
    """A TestRail priority definition; ``rank`` grows with importance."""

    id: int
    name: str
    short_name: str | None = None
    is_default: bool = False
    rank: int = Field(..., alias="priority")

    model_config = {"populate_by_name": True, "extra": "ignore"}
