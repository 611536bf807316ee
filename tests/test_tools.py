# ABOUTME: Tests for Discord message models and history paging
# ABOUTME: Uses mocked Discord channels to test conversion, paging and target discovery

import pytest
from datetime import datetime, timedelta, UTC
from unittest.mock import Mock
import discord
from tools import (
    AttachmentData,
    DiscordMessageSource,
    Direction,
    MessageData,
    display_name,
    find_target_message,
)


BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def mock_author(user_id: int, display: str, global_name=None, username=None):
    author = Mock()
    author.id = user_id
    author.display_name = display
    author.global_name = global_name
    author.name = username or display.lower()
    return author


def mock_message(msg_id: int, author, minutes: int = 0, content: str = "hello", attachments=None):
    msg = Mock(spec=discord.Message)
    msg.id = msg_id
    msg.author = author
    msg.content = content
    msg.created_at = BASE_TIME + timedelta(minutes=minutes)
    msg.attachments = attachments or []
    return msg


@pytest.fixture
def mock_text_channel():
    """Create a mocked Discord text channel."""
    channel = Mock(spec=discord.TextChannel)
    channel.id = 123456789
    return channel


def history_returning(messages, calls=None):
    """Fake channel.history that records its arguments."""
    def history(**kwargs):
        if calls is not None:
            calls.append(kwargs)

        async def async_generator():
            for msg in messages:
                yield msg
        return async_generator()
    return history


def test_message_data_from_discord():
    """Discord messages convert to immutable records with attachments."""
    attachment = Mock()
    attachment.filename = "log.txt"
    attachment.content_type = "text/plain"
    attachment.size = 321
    attachment.url = "https://cdn.example/log.txt"
    msg = mock_message(7, mock_author(1, "Pardeike"), content="see log", attachments=[attachment])

    data = MessageData.from_discord(msg)

    assert data.id == 7
    assert data.author_id == 1
    assert data.author == "Pardeike"
    assert data.timestamp == BASE_TIME
    assert data.attachments == [
        AttachmentData(filename="log.txt", content_type="text/plain", size=321, url="https://cdn.example/log.txt")
    ]


def test_message_data_handles_missing_content():
    """None content becomes an empty string."""
    msg = mock_message(7, mock_author(1, "A"), content=None)

    assert MessageData.from_discord(msg).content == ""


def test_message_data_str():
    """String form shows timestamp, author and content."""
    data = MessageData(id=1, author_id=2, author="Bob", timestamp=BASE_TIME, content="hi")

    assert str(data) == "[2025-03-01 12:00:00 UTC] Bob: hi"


def test_attachment_str():
    """Attachments render as a short descriptor."""
    attachment = AttachmentData(filename="a.png", content_type="image/png", size=10)

    assert str(attachment) == "[attachment: a.png (image/png, 10 bytes)]"


def test_display_name_falls_back_to_username():
    """Without nick or global name, the username is used."""
    author = mock_author(1, "", global_name=None, username="plainuser")

    assert display_name(author) == "plainuser"


@pytest.mark.asyncio
async def test_fetch_before_returns_chronological(mock_text_channel):
    """Paging backwards returns the page oldest first."""
    author = mock_author(1, "A")
    newest_first = [mock_message(i, author, minutes=i) for i in (5, 4, 3)]
    calls = []
    mock_text_channel.history = history_returning(newest_first, calls)

    source = DiscordMessageSource(mock_text_channel)
    result = await source.fetch(6, Direction.BEFORE, 3)

    assert [m.id for m in result] == [3, 4, 5]
    assert calls[0]["limit"] == 3
    assert calls[0]["before"].id == 6
    assert calls[0]["oldest_first"] is False


@pytest.mark.asyncio
async def test_fetch_after_returns_chronological(mock_text_channel):
    """Paging forwards asks Discord for oldest first."""
    author = mock_author(1, "A")
    oldest_first = [mock_message(i, author, minutes=i) for i in (7, 8)]
    calls = []
    mock_text_channel.history = history_returning(oldest_first, calls)

    source = DiscordMessageSource(mock_text_channel)
    result = await source.fetch(6, Direction.AFTER, 100)

    assert [m.id for m in result] == [7, 8]
    assert calls[0]["after"].id == 6
    assert calls[0]["oldest_first"] is True


@pytest.mark.asyncio
async def test_fetch_zero_count_skips_discord(mock_text_channel):
    """Asking for nothing does not touch the channel."""
    mock_text_channel.history = Mock()

    result = await DiscordMessageSource(mock_text_channel).fetch(6, Direction.BEFORE, 0)

    assert result == []
    mock_text_channel.history.assert_not_called()


@pytest.mark.asyncio
async def test_find_target_matches_name_fragment(mock_text_channel):
    """The newest message whose author name contains the fragment wins."""
    alice = mock_author(1, "Alice")
    bob = mock_author(2, "Bobby Tables")
    newest_first = [
        mock_message(30, alice, minutes=3),
        mock_message(20, bob, minutes=2),
        mock_message(10, bob, minutes=1),
    ]
    mock_text_channel.history = history_returning(newest_first)

    found = await find_target_message(mock_text_channel, "TABLES")

    assert found.id == 20


@pytest.mark.asyncio
async def test_find_target_matches_global_and_user_names(mock_text_channel):
    """Global names and usernames are searched as well."""
    author = mock_author(3, "Nick", global_name="Global Person", username="handle99")
    mock_text_channel.history = history_returning([mock_message(40, author)])

    assert (await find_target_message(mock_text_channel, "person")).id == 40

    mock_text_channel.history = history_returning([mock_message(40, author)])
    assert (await find_target_message(mock_text_channel, "handle")).id == 40


@pytest.mark.asyncio
async def test_find_target_no_match(mock_text_channel):
    """No matching author returns None."""
    mock_text_channel.history = history_returning([mock_message(1, mock_author(1, "Alice"))])

    assert await find_target_message(mock_text_channel, "zed") is None


@pytest.mark.asyncio
async def test_find_target_blank_fragment(mock_text_channel):
    """A blank fragment never matches."""
    mock_text_channel.history = Mock()

    assert await find_target_message(mock_text_channel, "   ") is None
    mock_text_channel.history.assert_not_called()
