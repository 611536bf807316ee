# ABOUTME: Utility functions for message processing
# ABOUTME: Splits long replies into Discord-sized chunks without breaking lines or code fences

from typing import List, Optional


CODE_FENCE = "```"

# Leaves headroom under Discord's 2000 character message limit
DEFAULT_CHUNK_SIZE = 1900


def find_cut(window: str) -> int:
    """
    Decide where a candidate window should be cut.

    Works in three stages:
    1. search for the last line break and cut right after it
    2. if the kept text opens a code fence it does not close, retreat to
       the line break preceding the last fence marker
    3. fall back to the full window when no stage produced a usable cut

    When stage 2 finds no line break before the marker the window is cut
    inside the fence. That is accepted; markdown across chunks is best-effort.

    Args:
        window: Candidate text, at most one chunk long

    Returns:
        Number of characters of the window to emit (always > 0 for a non-empty window)
    """
    cut = len(window)

    last_break = window.rfind('\n')
    if last_break != -1:
        cut = last_break + 1

    head = window[:cut]
    if head.count(CODE_FENCE) % 2 == 1:
        fence = head.rfind(CODE_FENCE)
        fence_line = head.rfind('\n', 0, fence)
        if fence_line != -1:
            cut = fence_line + 1

    if cut <= 0:
        return len(window)
    return cut


def chunk_message(text: Optional[str], max_length: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """
    Split text into chunks that fit Discord's message length limit.

    Chunks prefer to end at line boundaries and avoid leaving a code fence
    open. A single line longer than max_length is hard-cut. Joining the
    chunks in order gives back the original text exactly.

    Args:
        text: Text to chunk (None or empty yields no chunks)
        max_length: Maximum length per chunk

    Returns:
        List of non-empty text chunks
    """
    if not text:
        return []

    chunks = []
    offset = 0

    while offset < len(text):
        window = text[offset:offset + max_length]
        cut = find_cut(window)
        chunks.append(window[:cut])
        offset += cut

    return chunks


def clamp(text: str, max_length: int = DEFAULT_CHUNK_SIZE) -> str:
    """Trim text to at most max_length characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    marker = " …"
    if max_length <= len(marker):
        return text[:max_length]
    return text[:max_length - len(marker)] + marker
