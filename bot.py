# ABOUTME: Discord bot entry point
# ABOUTME: /answer slash command drafts a reply for approval; Approve posts it in chunks, Cancel drops it

import asyncio
from typing import Optional
import discord
from discord import app_commands
from agent import run_agent
from config import Settings, get_settings
from conversation import WindowBuilder, WindowConfig
from drafts import DraftStore, PendingDraft
from hints import HintIndex, download_cards
from instrumentation import initialize_instrumentation
from logging_setup import configure_logging, get_logger
from tools import DiscordMessageSource, MessageData, find_target_message
from utils import chunk_message, clamp


log = get_logger(__name__)

APPROVE = "approve"
CANCEL = "cancel"

intents = discord.Intents.default()
intents.message_content = True
intents.guilds = True
intents.guild_messages = True

client = discord.Client(intents=intents)
tree = app_commands.CommandTree(client)

# Replaced in main() once settings are loaded
drafts = DraftStore()
hint_index = HintIndex()


@client.event
async def on_ready():
    """Called when bot successfully connects to Discord."""
    # Guild commands show up immediately; global ones can take an hour
    for guild in client.guilds:
        tree.copy_global_to(guild=guild)
        try:
            await tree.sync(guild=guild)
        except discord.HTTPException as e:
            log.warning("failed to register commands", guild=guild.name, error=str(e))

    log.info("connected to discord", user=str(client.user), guilds=len(client.guilds))


def is_owner(user_id: int, settings: Settings) -> bool:
    """Everyone is allowed unless an owner is configured."""
    if settings.owner_user_id is None:
        return True
    return user_id == settings.owner_user_id


async def send_error_message(
    interaction: discord.Interaction,
    error_text: str,
    log_error: Optional[str] = None
):
    """
    Show a user-friendly error in the ephemeral response and optionally log to debug channel.

    Args:
        interaction: Slash command interaction that was deferred
        error_text: User-friendly error message
        log_error: Detailed error for debug channel
    """
    await interaction.edit_original_response(content=f"Sorry, {error_text}")

    settings = get_settings()
    if log_error and settings.debug_channel_name and interaction.guild:
        debug_channel = discord.utils.get(
            interaction.guild.text_channels,
            name=settings.debug_channel_name
        )
        if debug_channel:
            where = getattr(interaction.channel, 'mention', 'unknown channel')
            await debug_channel.send(clamp(f"Error in {where}:\n```\n{log_error}\n```"))


def build_draft_view(token: str) -> discord.ui.View:
    """Approve/Cancel row; the buttons are handled in on_interaction by custom_id."""
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(
        label="Approve",
        style=discord.ButtonStyle.success,
        custom_id=f"{APPROVE}:{token}"
    ))
    view.add_item(discord.ui.Button(
        label="Cancel",
        style=discord.ButtonStyle.danger,
        custom_id=f"{CANCEL}:{token}"
    ))
    return view


async def handle_answer(interaction: discord.Interaction, who: str):
    """
    Draft a reply to the latest message by a user and show it for approval.

    The invoker sees a single ephemeral message: first the "thinking" state,
    then either an error or the draft preview with Approve/Cancel buttons.
    """
    await interaction.response.defer(ephemeral=True, thinking=True)

    settings = get_settings()
    if not is_owner(interaction.user.id, settings):
        await interaction.edit_original_response(content="Owner-only.")
        return

    who = (who or "").strip()
    if not who:
        await interaction.edit_original_response(content="Provide a name fragment.")
        return

    channel = interaction.channel
    if not isinstance(channel, discord.TextChannel):
        await interaction.edit_original_response(content="Run /answer in a server text channel.")
        return

    try:
        target = await find_target_message(channel, who, limit=settings.target_search_limit)
        if target is None:
            raise ValueError(f"no recent message found for \"{who}\".")

        anchor = MessageData.from_discord(target)
        builder = WindowBuilder(
            DiscordMessageSource(channel),
            WindowConfig.from_settings(settings)
        )
        window = await builder.build(anchor)

        draft_text = await run_agent(window, channel, hint_index, target_author=anchor.author)
        if not draft_text or not draft_text.strip():
            raise ValueError("the model returned an empty draft.")

        draft = PendingDraft(
            channel_id=channel.id,
            target_message_id=anchor.id,
            text=draft_text,
            requested_by=interaction.user.id,
            preview=interaction,
        )

        await interaction.edit_original_response(
            content=clamp(draft_text, settings.chunk_max_size),
            view=build_draft_view(draft.token)
        )
        # Only a draft whose preview is on screen can be approved
        drafts.put(draft)
        log.info(
            "draft ready",
            target_message_id=anchor.id,
            window_messages=len(window),
            stop_reason=window.stop_reason.value
        )

    except ValueError as e:
        # User-facing errors (no target, empty draft)
        await send_error_message(
            interaction,
            error_text=str(e),
            log_error=f"ValueError: {e}\nWho: {who}\nUser: {interaction.user}"
        )

    except Exception as e:
        log.exception("answer command failed", who=who)
        await send_error_message(
            interaction,
            error_text="I encountered an error drafting a reply.",
            log_error=f"Unexpected error:\n{type(e).__name__}: {e}\nWho: {who}\nUser: {interaction.user}"
        )


@tree.command(name="answer", description="Searches recent posts, drafts an answer, and asks you to approve.")
@app_commands.describe(who="Part of the target user's name (nick/global/username)")
async def answer_command(interaction: discord.Interaction, who: str):
    await handle_answer(interaction, who)


async def post_draft(draft: PendingDraft) -> int:
    """
    Post an approved draft as replies to its target message.

    Returns:
        Number of chunks sent
    """
    settings = get_settings()

    channel = client.get_channel(draft.channel_id)
    if channel is None:
        channel = await client.fetch_channel(draft.channel_id)
    if not isinstance(channel, discord.abc.Messageable):
        log.warning("draft channel is not messageable", channel_id=draft.channel_id)
        return 0

    reference = discord.MessageReference(
        message_id=draft.target_message_id,
        channel_id=draft.channel_id,
        fail_if_not_exists=False
    )

    sent = 0
    for chunk in chunk_message(draft.text, max_length=settings.chunk_max_size):
        # Discord rejects whitespace-only messages
        if not chunk.strip():
            continue
        await channel.send(chunk, reference=reference)
        sent += 1
    return sent


async def handle_draft_action(interaction: discord.Interaction, action: str, token: str):
    """
    Approve or cancel a pending draft.

    Only the user who requested the draft can act on it; anyone else,
    or a token that is no longer pending, is ignored without a reply.
    """
    # Plain acknowledgement, no new ephemeral message
    await interaction.response.defer()

    draft = drafts.take_if_owner(token, interaction.user.id)
    if draft is None:
        log.debug("ignored draft action", action=action, token=token, user_id=interaction.user.id)
        return

    try:
        if action == APPROVE:
            sent = await post_draft(draft)
            log.info(
                "draft approved and posted",
                target_message_id=draft.target_message_id,
                chunks=sent
            )
        else:
            log.info(
                "draft cancelled",
                target_message_id=draft.target_message_id,
                user=str(interaction.user)
            )

        if draft.preview is not None:
            await draft.preview.delete_original_response()

    except Exception:
        # Log only; the invoker gets no further ephemeral messages.
        # The preview is still showing, so its buttons must keep working.
        drafts.restore(draft)
        log.exception("draft action failed", action=action, target_message_id=draft.target_message_id)


@client.event
async def on_interaction(interaction: discord.Interaction):
    """Route Approve/Cancel button presses; slash commands go through the tree."""
    if interaction.type != discord.InteractionType.component:
        return

    custom_id = (interaction.data or {}).get("custom_id", "")
    action, _, token = custom_id.partition(":")
    if action not in (APPROVE, CANCEL) or not token:
        return

    await handle_draft_action(interaction, action, token)


async def load_hint_index(settings: Settings) -> HintIndex:
    """Download the card pack if a URL is configured, then load whatever is on disk."""
    if settings.llm_pack_url:
        await download_cards(
            settings.llm_pack_url,
            settings.llm_pack_dir or "./llm-pack",
            file_name=settings.llm_pack_file
        )
    return HintIndex.load(settings.llm_pack_dir, settings.llm_pack_file)


def main():
    """Start the Discord bot."""
    global drafts, hint_index

    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_format == 'json')

    token = settings.discord_token
    if not token:
        raise ValueError('DISCORD_TOKEN not found in environment variables')

    log.info("starting discord bot", settings=settings.summary())

    initialize_instrumentation(settings)

    drafts = DraftStore(max_pending=settings.max_pending_drafts)
    hint_index = asyncio.run(load_hint_index(settings))

    client.run(token, log_handler=None)


if __name__ == '__main__':
    main()
