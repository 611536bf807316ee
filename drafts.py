# ABOUTME: In-memory store of reply drafts awaiting approval
# ABOUTME: Lock-guarded, bounded map from approval token to draft with owner-checked take

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional
import discord
from logging_setup import get_logger


log = get_logger(__name__)


def new_token() -> str:
    """Unique approval token, safe to embed in a component custom_id."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PendingDraft:
    """A drafted reply waiting for its requester to approve or cancel it."""
    channel_id: int
    target_message_id: int
    text: str
    requested_by: int
    # Slash command interaction that shows the ephemeral preview
    preview: Optional[discord.Interaction] = None
    token: str = field(default_factory=new_token)


class DraftStore:
    """
    Pending drafts keyed by approval token.

    All access goes through a single lock, so take_if_owner is atomic
    with respect to concurrent put calls for other drafts. Drafts never
    expire; when the store is full the oldest draft is evicted.
    """

    def __init__(self, max_pending: int = 100):
        self.max_pending = max_pending
        self._drafts: "OrderedDict[str, PendingDraft]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, draft: PendingDraft) -> str:
        """Store a draft and return its approval token."""
        with self._lock:
            self._drafts[draft.token] = draft
            while len(self._drafts) > self.max_pending:
                token, evicted = self._drafts.popitem(last=False)
                log.info(
                    "evicted oldest draft",
                    token=token,
                    target_message_id=evicted.target_message_id
                )
        return draft.token

    def take_if_owner(self, token: str, user_id: int) -> Optional[PendingDraft]:
        """
        Remove and return the draft if user_id is the one who requested it.

        Unknown tokens and other users get None and leave the store unchanged.
        """
        with self._lock:
            draft = self._drafts.get(token)
            if draft is None or draft.requested_by != user_id:
                return None
            del self._drafts[token]
            return draft

    def restore(self, draft: PendingDraft) -> str:
        """Put back a draft taken by take_if_owner whose action did not complete."""
        log.info("draft restored", token=draft.token, target_message_id=draft.target_message_id)
        return self.put(draft)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._drafts
