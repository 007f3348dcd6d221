"""Content model shared by every target strategy."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Optional

from bs4 import Tag

from ..dom.text import normalize_text

if TYPE_CHECKING:
    from ..dom.document import Document

# Characters kept in the sidebar preview
PREVIEW_LENGTH = 200

_WHITESPACE_RE = re.compile(r"\s")


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[Role]:
        """Map an attribute value to a role, None for anything else."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class NodeAnchor:
    """
    Non-owning reference to an element of a snapshot.

    Stores the element-child index path from the document root plus the tag
    name and id seen at capture time. The element may be gone or replaced
    in a later snapshot, so always resolve() against the current document
    before using it.
    """

    path: tuple[int, ...]
    tag_name: str
    element_id: Optional[str] = None

    @classmethod
    def from_tag(cls, tag: Tag) -> NodeAnchor:
        path: list[int] = []
        node = tag
        while node.parent is not None:
            siblings = [child for child in node.parent.children if isinstance(child, Tag)]
            path.append(next(i for i, child in enumerate(siblings) if child is node))
            node = node.parent
        path.reverse()
        element_id = tag.get("id")
        return cls(
            path=tuple(path),
            tag_name=tag.name,
            element_id=element_id if isinstance(element_id, str) else None,
        )

    def resolve(self, document: Document) -> Optional[Tag]:
        """Find the anchored element in a document, or None if it no longer matches."""
        node: Tag = document.soup
        for index in self.path:
            children = [child for child in node.children if isinstance(child, Tag)]
            if index >= len(children):
                return None
            node = children[index]
        if node.name != self.tag_name:
            return None
        if self.element_id is not None and node.get("id") != self.element_id:
            return None
        return node

    def to_selector(self) -> str:
        """CSS selector a browser can use to locate the element again."""
        if not self.path:
            return ":root"
        steps = [":root"] + [f":nth-child({index + 1})" for index in self.path[1:]]
        return " > ".join(steps)

    def to_dict(self) -> dict[str, Any]:
        return {"path": list(self.path), "tag": self.tag_name, "id": self.element_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeAnchor:
        return cls(path=tuple(data["path"]), tag_name=data["tag"], element_id=data.get("id"))


def make_message_id(target_key: str, role: Role, index: int, text: str) -> str:
    """
    Deterministic message identifier.

    Re-scanning unchanged content yields the same id, because it only depends
    on the role, the positional index and the first characters of the text.
    """
    fingerprint = _WHITESPACE_RE.sub("", text[:50])[:20]
    return f"msg-{target_key}-{role.value}-{index}-{fingerprint}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MessageRecord:
    """
    One conversation turn extracted from a snapshot.

    Records are rebuilt on every scan; a batch is a disposable value
    sequence ordered by document position.
    """

    id: str
    role: Role
    content: str
    full_content: str
    anchor: Optional[NodeAnchor]
    order: int
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def build(
        cls,
        target_key: str,
        role: Role,
        index: int,
        text: str,
        element: Optional[Tag],
        order: int,
        timestamp: Optional[datetime] = None,
    ) -> Optional[MessageRecord]:
        """
        Create a record from raw text, or None if the text is blank.

        Args:
            target_key: Short key of the target (used in the id)
            role: Turn author
            index: Positional index used in the id
            text: Raw text; whitespace is normalized here
            element: Element the record should be anchored to
            order: Zero-based position in the batch
            timestamp: Capture time (defaults to now)
        """
        full_content = normalize_text(text)
        if not full_content:
            return None
        return cls(
            id=make_message_id(target_key, role, index, full_content),
            role=role,
            content=full_content[:PREVIEW_LENGTH],
            full_content=full_content,
            anchor=NodeAnchor.from_tag(element) if element is not None else None,
            order=order,
            timestamp=timestamp or _utcnow(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the shape stored by the persistence relay."""
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "fullContent": self.full_content,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "order": self.order,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessageRecord:
        anchor = data.get("anchor")
        return cls(
            id=data["id"],
            role=Role(data["role"]),
            content=data["content"],
            full_content=data["fullContent"],
            anchor=NodeAnchor.from_dict(anchor) if anchor else None,
            order=int(data["order"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class TargetDescriptor:
    """Static identity and timing constants of one supported chat application."""

    key: str
    name: str
    hostnames: tuple[str, ...]
    debounce_ms: int
    post_detection_settle_ms: int
    match: Literal["exact", "substring"] = "exact"

    def matches(self, hostname: str) -> bool:
        """Check a hostname against the known set."""
        hostname = hostname.lower()
        if not hostname:
            return False
        if self.match == "substring":
            return any(host in hostname for host in self.hostnames)
        return hostname in self.hostnames
