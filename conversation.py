# ABOUTME: Conversation window builder
# ABOUTME: Grows a bounded slice of channel history around an anchor message under gap, duration and budget limits

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from config import Settings
from logging_setup import get_logger
from tools import Direction, MessageData, MessageSource


log = get_logger(__name__)


class StopReason(str, Enum):
    """
    Why the forward scan ended.

    Per candidate message the checks run in declaration order, so a
    message past the duration cap reports DURATION even if it would
    also have broken the gap or interpost limits.
    """
    DURATION = "duration"
    GAP = "gap"
    INTERPOSTS_DISABLED = "interposts_disabled"
    INTERPOSTS = "interposts"
    CHARS = "chars"
    COUNT = "count"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class WindowConfig:
    """Limits applied while building a conversation window."""
    max_gap_seconds: float = 300
    max_duration_seconds: float = 1800
    max_interposts: int = 6
    include_interposts: bool = False
    prepend_before: int = 3
    max_messages: int = 60
    max_chars: int = 12000
    page_size: int = 100

    @classmethod
    def from_settings(cls, settings: Settings) -> "WindowConfig":
        return cls(
            max_gap_seconds=settings.group_max_gap_sec,
            max_duration_seconds=settings.group_max_duration_sec,
            max_interposts=settings.group_max_interposts,
            include_interposts=settings.ctx_include_interposts,
            prepend_before=settings.ctx_prepend_before,
            max_messages=settings.ctx_max_messages,
            max_chars=settings.ctx_max_chars,
            page_size=settings.ctx_page_size,
        )


@dataclass
class ConversationWindow:
    """Chronological messages around an anchor, plus why growth stopped."""
    anchor_id: int
    messages: List[MessageData] = field(default_factory=list)
    stop_reason: StopReason = StopReason.EXHAUSTED

    @property
    def total_chars(self) -> int:
        return sum(len(m.content) for m in self.messages)

    @property
    def anchor(self) -> MessageData:
        anchor = next((m for m in self.messages if m.id == self.anchor_id), None)
        if anchor is None:
            raise LookupError(f"anchor message {self.anchor_id} is not in the window")
        return anchor

    def __len__(self) -> int:
        return len(self.messages)


def _order_key(message: MessageData):
    return (message.timestamp, message.id)


class WindowBuilder:
    """Builds a ConversationWindow from a paged message source."""

    def __init__(self, source: MessageSource, config: Optional[WindowConfig] = None):
        self.source = source
        self.config = config or WindowConfig()

    async def _fetch(self, anchor_id: int, direction: Direction, count: int) -> List[MessageData]:
        """Fetch one page; a failing source is treated as end of history."""
        try:
            batch = await self.source.fetch(anchor_id, direction, count)
        except Exception as e:
            log.warning(
                "history fetch failed",
                anchor_id=anchor_id,
                direction=direction.value,
                error=f"{type(e).__name__}: {e}"
            )
            return []
        return sorted(batch, key=_order_key)

    async def _seed(self, anchor: MessageData) -> List[MessageData]:
        """Anchor plus up to prepend_before earlier messages, trimmed to the budgets."""
        cfg = self.config
        before = []
        if cfg.prepend_before > 0:
            before = await self._fetch(anchor.id, Direction.BEFORE, cfg.prepend_before)
            before = [m for m in before if m.id != anchor.id][-cfg.prepend_before:]

        # Drop the oldest prepended messages until the seed fits; the anchor always stays
        chars = len(anchor.content) + sum(len(m.content) for m in before)
        while before and (len(before) + 1 > cfg.max_messages or chars > cfg.max_chars):
            chars -= len(before.pop(0).content)

        return before + [anchor]

    async def build(self, anchor: MessageData, author_id: Optional[int] = None) -> ConversationWindow:
        """
        Build the window around an anchor message.

        Args:
            anchor: The message the window is centred on
            author_id: Author whose burst is being followed (defaults to the anchor's author)

        Returns:
            ConversationWindow in chronological order, always containing the anchor
        """
        cfg = self.config
        author_id = anchor.author_id if author_id is None else author_id

        messages = await self._seed(anchor)
        chars = sum(len(m.content) for m in messages)
        window = ConversationWindow(anchor_id=anchor.id, messages=messages)

        if len(messages) >= cfg.max_messages:
            window.stop_reason = StopReason.COUNT
            return window
        if chars >= cfg.max_chars:
            window.stop_reason = StopReason.CHARS
            return window

        last_same_author = anchor.timestamp
        interposts = 0
        cursor = anchor.id
        seen = {m.id for m in messages}

        while True:
            page = await self._fetch(cursor, Direction.AFTER, cfg.page_size)
            page = [m for m in page if m.id not in seen and _order_key(m) > _order_key(anchor)]
            if not page:
                window.stop_reason = StopReason.EXHAUSTED
                break

            stop = None
            for candidate in page:
                seen.add(candidate.id)

                if (candidate.timestamp - anchor.timestamp).total_seconds() > cfg.max_duration_seconds:
                    stop = StopReason.DURATION
                    break

                same_author = candidate.author_id == author_id
                if same_author:
                    if (candidate.timestamp - last_same_author).total_seconds() > cfg.max_gap_seconds:
                        stop = StopReason.GAP
                        break
                else:
                    if not cfg.include_interposts:
                        stop = StopReason.INTERPOSTS_DISABLED
                        break
                    if interposts + 1 > cfg.max_interposts:
                        stop = StopReason.INTERPOSTS
                        break

                size = len(candidate.content)
                if chars + size > cfg.max_chars:
                    stop = StopReason.CHARS
                    break

                messages.append(candidate)
                chars += size
                if same_author:
                    interposts = 0
                    last_same_author = candidate.timestamp
                else:
                    interposts += 1

                if chars >= cfg.max_chars:
                    stop = StopReason.CHARS
                    break
                if len(messages) >= cfg.max_messages:
                    stop = StopReason.COUNT
                    break

            if stop is not None:
                window.stop_reason = stop
                break
            cursor = page[-1].id

        log.debug(
            "window built",
            anchor_id=anchor.id,
            messages=len(window),
            chars=chars,
            stop_reason=window.stop_reason.value
        )
        return window
