"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Attachment reference rewriting.

Converted descriptions reference attachments through placeholder tokens: the
file name for Jira media, ``!xray-attachment://{id}|`` for Xray step
attachments and ``index.php?/attachments/get/{id}`` for TestRail. After an
attachment is uploaded its placeholder is replaced, by literal substring
replacement, with a markdown image or link pointing at the uploaded URL.

All placeholder patterns are built in this module.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from xtot.core.errors import NotFoundOrSkippable
from xtot.core.logging import ErrorTracker

logger = logging.getLogger("xtot.attachment_rewriter")

IMAGE_EXTENSIONS = (".png", ".jpg")
DEFAULT_LABEL = "Attachment"

XRAY_SCHEME = "xray"
TESTRAIL_SCHEME = "testrail"

_XRAY_REFERENCE = re.compile(r"!xray-attachment://([\w-]+)\|")
_TESTRAIL_REFERENCE = re.compile(r"!\[([^\]]*)\]\(index\.php\?/attachments/get/([\w-]+)\)")


def filename_placeholder(filename: str) -> str:
    """Token left by the document converter for a media node."""
    return f"![]({filename})"


def xray_attachment_placeholder(attachment_id: str) -> str:
    """Token used by Xray step text for an attachment."""
    return f"!xray-attachment://{attachment_id}|"


def testrail_attachment_placeholder(attachment_id: str, alt: str = "") -> str:
    """Image reference TestRail embeds for an uploaded attachment."""
    return f"![{alt}](index.php?/attachments/get/{attachment_id})"


def is_image_name(filename: str) -> bool:
    return filename.lower().endswith(IMAGE_EXTENSIONS)


def render_reference(url: str, filename: str, is_image: bool = False, label: str = DEFAULT_LABEL) -> str:
    """
    Render the markdown that replaces a placeholder.

    Files with an image extension are embedded whatever their declared type;
    everything else becomes a link.
    """
    if is_image or is_image_name(filename):
        return f"![]({url})"
    return f"[{label}]({url})"


@dataclass
class AttachmentPlaceholder:
    """A placeholder token and the local file that will replace it."""

    token: str
    local_path: Path
    is_image: bool = False
    name: str = ""
    scheme: str = ""
    attachment_id: str = ""

    def __post_init__(self):
        self.local_path = Path(self.local_path)
        if not self.name:
            self.name = self.local_path.name

    @property
    def key(self) -> tuple[str, str] | None:
        """Source attachment this placeholder stands for, when it has an id."""
        if self.scheme and self.attachment_id:
            return self.scheme, self.attachment_id
        return None


@dataclass(frozen=True)
class AttachmentReference:
    """A raw attachment reference found in text, not declared up front."""

    scheme: str
    attachment_id: str
    token: str
    is_image: bool = False
    name: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return self.scheme, self.attachment_id


def rewrite(text: str, replacements: Iterable[tuple[str, str | None, str, bool]]) -> str:
    """
    Replace placeholders with final references.

    Args:
        text: Description text
        replacements: ``(token, url, filename, is_image)`` tuples; entries with
            no url are left untouched

    Returns:
        The rewritten text; running it again is a no-op
    """
    for token, url, filename, is_image in replacements:
        if not url or not token:
            continue
        text = text.replace(token, render_reference(url, filename, is_image))
    return text


def find_unresolved_references(text: str) -> list[AttachmentReference]:
    """Find raw attachment references still present in text, in order of appearance."""
    if not text:
        return []

    found: dict[str, AttachmentReference] = {}
    for match in _XRAY_REFERENCE.finditer(text):
        found.setdefault(match.group(0), AttachmentReference(XRAY_SCHEME, match.group(1), match.group(0)))
    # TestRail references are image embeds whose alt text is the file name
    for match in _TESTRAIL_REFERENCE.finditer(text):
        found.setdefault(
            match.group(0),
            AttachmentReference(TESTRAIL_SCHEME, match.group(2), match.group(0), True, match.group(1)),
        )
    return sorted(found.values(), key=lambda ref: text.index(ref.token))


class AttachmentRewriter:
    """
    Uploads attachments and substitutes their references in a description.

    ``upload`` takes a local path and a display name and returns the uploaded
    URL (or None). ``download`` fetches a reference discovered by the final
    sweep and returns a local path (or None).
    """

    def __init__(
        self,
        upload: Callable[[Path, str], str | None],
        download: Callable[[AttachmentReference], Path | None] | None = None,
        error_tracker: ErrorTracker | None = None,
    ):
        self.upload = upload
        self.download = download
        self.error_tracker = error_tracker
        self.uploaded = 0

    def resolve(self, text: str | None, placeholders: Iterable[AttachmentPlaceholder]) -> str | None:
        """
        Upload every placeholder's file, rewrite the text, then sweep for leftovers.

        A placeholder carrying a source attachment id also resolves every other
        reference to that attachment, whatever its alt text. Each file is
        uploaded once.
        """
        declared: set[tuple[str, str]] = set()
        for placeholder in placeholders:
            if placeholder.key is not None:
                declared.add(placeholder.key)
            url = self._upload(placeholder.local_path, placeholder.name)
            if not text or not url:
                continue

            replacements = [(placeholder.token, url, placeholder.name, placeholder.is_image)]
            for reference in find_unresolved_references(text):
                if reference.key == placeholder.key:
                    replacements.append(
                        (reference.token, url, placeholder.name, placeholder.is_image or reference.is_image)
                    )
            text = rewrite(text, replacements)

        if text and self.download is not None:
            text = self._sweep(text, declared)
        return text

    def _sweep(self, text: str, declared: set[tuple[str, str]]) -> str:
        for reference in find_unresolved_references(text):
            if reference.key in declared:
                # uploaded above, or its failed upload is already recorded
                continue
            local_path = self.download(reference)
            if local_path is None:
                self._record(f"Attachment {reference.attachment_id} could not be downloaded")
                continue
            local_path = Path(local_path)
            name = reference.name or local_path.name
            url = self._upload(local_path, name)
            text = rewrite(text, [(reference.token, url, name, reference.is_image)])
        return text

    def _upload(self, local_path: Path, name: str) -> str | None:
        url = self.upload(local_path, name)
        if url:
            self.uploaded += 1
            logger.debug(f"Attachment {name} uploaded as {url}")
        else:
            self._record(f"Attachment {name} was not uploaded", {"path": str(local_path)})
        return url

    def _record(self, message: str, context: dict | None = None) -> None:
        if self.error_tracker:
            self.error_tracker.add_error(NotFoundOrSkippable(message), context)
        else:
            logger.warning(message)
