# ABOUTME: Tests for utility functions
# ABOUTME: Validates line- and fence-aware message chunking and preview clamping

import pytest
from utils import chunk_message, find_cut, clamp


SAMPLES = [
    "single line without breaks",
    "AAAA\nBBBB\nCCCC",
    "line one\nline two\n\nparagraph two\n",
    "intro\n```python\nprint('hi')\nprint('there')\n```\noutro\n",
    "x" * 5000,
    ("word " * 300 + "\n") * 7,
    "```\n" + "code line\n" * 400 + "```\n",
]


def test_chunk_message_empty_text():
    """Empty or missing text should produce no chunks."""
    assert chunk_message("") == []
    assert chunk_message(None) == []


def test_chunk_message_short_text():
    """Short single-line text should return single chunk."""
    text = "This is a short message"
    chunks = chunk_message(text)

    assert chunks == [text]


def test_chunk_message_prefers_line_boundaries():
    """Chunks should end right after the last line break in each window."""
    assert chunk_message("AAAA\nBBBB\nCCCC", 6) == ["AAAA\n", "BBBB\n", "CCCC"]


def test_chunk_message_cuts_after_last_break_even_when_text_fits():
    """The line-break rule applies to every window, including the last one."""
    assert chunk_message("AB\nCD", 100) == ["AB\n", "CD"]


def test_chunk_message_force_split():
    """A single line longer than the limit should be hard-cut."""
    text = "A" * 3000

    chunks = chunk_message(text, max_length=1900)

    assert len(chunks) == 2
    assert len(chunks[0]) == 1900
    assert len(chunks[1]) == 1100


@pytest.mark.parametrize("text", SAMPLES)
@pytest.mark.parametrize("max_length", [1, 7, 64, 1900])
def test_chunk_message_round_trip_and_bound(text, max_length):
    """Joining the chunks gives back the text, and no chunk exceeds the limit."""
    chunks = chunk_message(text, max_length=max_length)

    assert "".join(chunks) == text
    assert all(0 < len(chunk) <= max_length for chunk in chunks)


def test_chunk_message_keeps_complete_fence_together():
    """A closed code block that fits stays in one chunk."""
    text = "intro\n```\nabc\n```\nafter line\n"

    assert chunk_message(text, max_length=100) == [text]


def test_chunk_message_pushes_open_fence_to_next_chunk():
    """A window that opens a fence without closing it retreats to before the fence."""
    text = "hello\n```\ncode line\ncode line\ncode line\n```\n"

    chunks = chunk_message(text, max_length=25)

    assert chunks[0] == "hello\n"
    assert chunks[1].startswith("```")


def test_chunk_message_mid_fence_cut_when_no_safe_retreat():
    """
    When the fence marker starts the window there is no earlier line break
    to retreat to, so the chunk is cut inside the code block. Accepted behavior.
    """
    text = "hello\n```\ncode line\ncode line\ncode line\n```\n"

    chunks = chunk_message(text, max_length=25)

    assert chunks == [
        "hello\n",
        "```\ncode line\ncode line\n",
        "code line\n",
        "```\n",
    ]
    assert "".join(chunks) == text


def test_chunk_message_fence_parity_at_safe_boundaries():
    """Where a safe retreat exists, cuts fall outside code blocks."""
    block = "```\nshort\n```\n"
    text = ("prose line\n" + block) * 20

    chunks = chunk_message(text, max_length=40)

    consumed = ""
    for chunk in chunks:
        consumed += chunk
        assert consumed.count("```") % 2 == 0


def test_find_cut_without_line_break():
    """No line break keeps the whole window."""
    assert find_cut("abc") == 3


def test_find_cut_after_last_line_break():
    """Cut lands just after the last line break."""
    assert find_cut("ab\ncd") == 3


def test_find_cut_retreats_before_open_fence():
    """An unclosed fence moves the cut to the line break before it."""
    assert find_cut("x\n```\ncode\n") == 2


def test_find_cut_never_returns_zero():
    """A fence at the very start cannot retreat, so the window is kept."""
    assert find_cut("```abc") == 6
    assert find_cut("\n") == 1


def test_clamp_short_text_unchanged():
    """Text within the limit is returned as-is."""
    assert clamp("hello", 10) == "hello"


def test_clamp_long_text_marked():
    """Text over the limit is cut and marked with an ellipsis."""
    assert clamp("abcdefghij", 4) == "ab …"


def test_clamp_fits_discord_limit():
    """A clamped preview never exceeds the limit it was clamped to."""
    clamped = clamp("x" * 5000, 2000)

    assert len(clamped) == 2000
    assert clamped.endswith(" …")


def test_clamp_limit_smaller_than_marker():
    """A limit too small for the ellipsis yields a plain cut."""
    assert clamp("abcdef", 1) == "a"
