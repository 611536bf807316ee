# ABOUTME: Langfuse observability for the drafting agent
# ABOUTME: Enables PydanticAI instrumentation when Langfuse credentials are configured

from pydantic_ai import Agent
from config import Settings
from langfuse import Langfuse
from logging_setup import get_logger


log = get_logger(__name__)


def is_langfuse_configured(settings: Settings) -> bool:
    """
    Check if Langfuse credentials are configured.

    Args:
        settings: Application settings

    Returns:
        True if both public_key and secret_key are set, False otherwise
    """
    return bool(
        settings.langfuse_public_key and
        settings.langfuse_secret_key
    )


def initialize_instrumentation(settings: Settings) -> bool:
    """
    Initialize Langfuse tracing of PydanticAI agent runs.

    If Langfuse credentials are missing or rejected, this does nothing
    so the bot runs without observability.

    Args:
        settings: Application settings containing Langfuse credentials

    Returns:
        True if instrumentation was enabled
    """
    if not is_langfuse_configured(settings):
        log.info("langfuse not configured, skipping instrumentation")
        return False

    langfuse = Langfuse(
        public_key=settings.langfuse_public_key,
        secret_key=settings.langfuse_secret_key,
        host=settings.langfuse_host,
    )
    if not langfuse.auth_check():
        log.warning("langfuse credentials rejected, skipping instrumentation", host=settings.langfuse_host)
        return False

    Agent.instrument_all()

    log.info("langfuse instrumentation initialized", host=settings.langfuse_host)
    return True
