# ABOUTME: Discord message models and paged history access
# ABOUTME: Converts Discord messages to immutable records and pages history around an anchor

from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol
import discord
from pydantic import BaseModel, ConfigDict, Field
from logging_setup import get_logger


log = get_logger(__name__)


class AttachmentData(BaseModel):
    """Descriptor of a file attached to a message."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: Optional[str] = None
    size: int = 0
    url: str = ""

    def __str__(self) -> str:
        kind = self.content_type or "unknown type"
        return f"[attachment: {self.filename} ({kind}, {self.size} bytes)]"


class MessageData(BaseModel):
    """Structured, read-only representation of a Discord message."""
    model_config = ConfigDict(frozen=True)

    id: int
    author_id: int
    author: str
    timestamp: datetime
    content: str = ""
    attachments: List[AttachmentData] = Field(default_factory=list)

    def __str__(self) -> str:
        """Format message for display to AI."""
        time_str = self.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC")
        return f"[{time_str}] {self.author}: {self.content}"

    @classmethod
    def from_discord(cls, message: discord.Message) -> "MessageData":
        """Build a record from a live Discord message."""
        return cls(
            id=message.id,
            author_id=message.author.id,
            author=display_name(message.author),
            timestamp=message.created_at,
            content=message.content or "",
            attachments=[
                AttachmentData(
                    filename=a.filename,
                    content_type=a.content_type,
                    size=a.size,
                    url=a.url,
                )
                for a in message.attachments
            ],
        )


class Direction(str, Enum):
    """Which side of the anchor message to page."""
    BEFORE = "before"
    AFTER = "after"


class MessageSource(Protocol):
    """Paged message retrieval around an anchor message in one channel."""

    async def fetch(
        self,
        anchor_id: int,
        direction: Direction,
        count: int
    ) -> List[MessageData]:
        """
        Return up to count messages on one side of anchor_id, oldest first.

        An empty list means there is no more history in that direction.
        """
        ...


def display_name(user: discord.abc.User) -> str:
    """Best human-readable name for a user: nick, then global name, then username."""
    return (
        getattr(user, 'display_name', None)
        or getattr(user, 'global_name', None)
        or user.name
    )


class DiscordMessageSource:
    """MessageSource backed by a Discord text channel's history."""

    def __init__(self, channel: discord.TextChannel):
        self.channel = channel

    async def fetch(
        self,
        anchor_id: int,
        direction: Direction,
        count: int
    ) -> List[MessageData]:
        if count <= 0:
            return []

        anchor = discord.Object(id=anchor_id)
        messages = []

        if direction is Direction.BEFORE:
            async for message in self.channel.history(
                limit=count,
                before=anchor,
                oldest_first=False
            ):
                messages.append(MessageData.from_discord(message))
            # history returns newest first when paging backwards
            messages.reverse()
        else:
            async for message in self.channel.history(
                limit=count,
                after=anchor,
                oldest_first=True
            ):
                messages.append(MessageData.from_discord(message))

        return messages


def _author_names(message: discord.Message) -> List[str]:
    author = message.author
    names = [
        getattr(author, 'display_name', None),
        getattr(author, 'global_name', None),
        author.name,
    ]
    return [n.lower() for n in names if n and n.strip()]


async def find_target_message(
    channel: discord.TextChannel,
    who: str,
    limit: int = 5000
) -> Optional[discord.Message]:
    """
    Find the most recent message whose author name contains a fragment.

    Args:
        channel: Channel to search
        who: Case-insensitive fragment of the author's nick, global name or username
        limit: Maximum number of messages to walk back through

    Returns:
        The newest matching message, or None if nothing matched
    """
    needle = who.strip().lower()
    if not needle:
        return None

    scanned = 0
    async for message in channel.history(limit=limit, oldest_first=False):
        scanned += 1
        if any(needle in name for name in _author_names(message)):
            log.debug("target found", who=who, message_id=message.id, scanned=scanned)
            return message

    log.info("no target found", who=who, scanned=scanned)
    return None
