# ABOUTME: PydanticAI agent configuration and prompt assembly
# ABOUTME: Formats the conversation window, attaches reference hints, and drafts a reply with Claude

from datetime import UTC
from pathlib import Path
from typing import List, Optional
import discord
from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.providers.anthropic import AnthropicProvider
from config import Settings, get_settings
from conversation import ConversationWindow
from hints import HintIndex
from logging_setup import get_logger
from tools import MessageData


log = get_logger(__name__)

TARGET_MARKER = "<<TARGET>>"
HINTS_HEADER = "Harmony reference hints (selected):"


class DraftContext(BaseModel):
    """Context provided to the agent for each draft."""
    channel_name: str
    server_name: str
    target_author: str
    target_message_id: int
    excerpts: str
    task: str


# System prompt for the agent
SYSTEM_PROMPT = """You are a helpful assistant for a Discord server about Harmony, the .NET runtime patching library.

A moderator has picked a message in a channel and wants you to draft a reply to it.
You receive channel excerpts in chronological order (oldest first). The message to answer
is marked with <<TARGET>>; the surrounding messages are context only.

Guidelines:
- Answer the TARGET author's question or problem directly
- Use the other excerpts to understand what has already been said or tried
- When reference hints are provided, prefer the APIs they describe and do not invent APIs
- Keep the reply concise; use short code blocks only when they help
- If the excerpts do not contain enough information, say what is missing"""


def format_message(message: MessageData, is_target: bool = False, preview_chars: int = 1200) -> str:
    """Render one message as a single excerpt line."""
    timestamp = message.timestamp
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(UTC)
    when = timestamp.strftime("%Y-%m-%d %H:%M:%SZ")

    content = message.content if message.content.strip() else "<no text>"
    if len(content) > preview_chars:
        content = content[:preview_chars] + " …"

    line = f"[{when}] {message.author}: {content}"
    if message.attachments:
        line += " " + " ".join(str(a) for a in message.attachments)
    if is_target:
        line += f"  {TARGET_MARKER}"
    return line


def build_context_block(window: ConversationWindow, preview_chars: int = 1200) -> str:
    """
    Format a conversation window as model-friendly excerpts.

    Args:
        window: Window to render, already chronological
        preview_chars: Longest message content kept before clipping

    Returns:
        One line per message, the anchor marked with <<TARGET>>
    """
    lines = [
        format_message(m, is_target=m.id == window.anchor_id, preview_chars=preview_chars)
        for m in window.messages
    ]
    return "\n".join(lines) + "\n" if lines else ""


def hint_query(context_block: str) -> str:
    """Search with the target line when there is one, else the whole block."""
    target_lines = [
        line for line in context_block.split("\n")
        if line and TARGET_MARKER in line
    ]
    if not target_lines:
        return context_block
    return target_lines[-1].replace(TARGET_MARKER, "")


def build_hint_block(index: HintIndex, context_block: str, k: int = 4) -> str:
    """
    Render the best matching reference cards as a hint block.

    Returns an empty string when the index is empty or nothing matches.
    """
    if not index.is_loaded:
        return ""

    hits = index.search(hint_query(context_block), k=k)
    if not hits:
        return ""

    lines = [HINTS_HEADER]
    for card in hits:
        lines.append(f"- {card.signature or card.id}")
        if card.summary and card.summary.strip():
            lines.append(f"  {card.summary}")
        if card.doc_url and card.doc_url.strip():
            lines.append(f"  [docs] {card.doc_url}")
    return "\n".join(lines) + "\n"


def load_system_prompt(settings: Settings) -> str:
    """Read the system prompt from the configured file, or use the built-in one."""
    if settings.system_prompt_file:
        return Path(settings.system_prompt_file).read_text(encoding="utf-8")
    return SYSTEM_PROMPT


def create_answer_agent(hint_block: str = "") -> Agent:
    """Create the drafting agent, adding reference hints as a second system prompt."""
    settings = get_settings()

    system_prompts: List[str] = [load_system_prompt(settings)]
    if hint_block:
        system_prompts.append(hint_block)

    provider = AnthropicProvider(api_key=settings.anthropic_api_key)
    return Agent(
        model=AnthropicModel(
            model_name=settings.chat_model,
            provider=provider
        ),
        system_prompt=system_prompts,
    )


async def run_agent(
    window: ConversationWindow,
    channel: discord.TextChannel,
    hint_index: HintIndex,
    target_author: Optional[str] = None
) -> str:
    """
    Draft a reply to the anchor message of a conversation window.

    Args:
        window: Conversation window around the message to answer
        channel: Channel the window was taken from
        hint_index: Reference cards used for retrieval hints
        target_author: Display name of the author being answered

    Returns:
        Draft reply text
    """
    settings = get_settings()

    context_block = build_context_block(window, preview_chars=settings.ctx_message_preview_chars)
    hint_block = build_hint_block(hint_index, context_block, k=settings.rag_top_k)

    anchor = window.anchor
    target_author = target_author or anchor.author

    context = DraftContext(
        channel_name=channel.name,
        server_name=channel.guild.name,
        target_author=target_author,
        target_message_id=anchor.id,
        excerpts=context_block,
        task=f"Write a concise, helpful reply addressing {target_author}'s post directly.",
    )

    agent = create_answer_agent(hint_block)

    log.info(
        "drafting reply",
        target_message_id=anchor.id,
        window_messages=len(window),
        hints=bool(hint_block)
    )

    result = await agent.run(context.model_dump_json())

    return result.output
