# ABOUTME: Lexical hint index over the Harmony reference card pack
# ABOUTME: Loads JSON-lines cards, ranks them by naive substring term counting, downloads the pack

import contextlib
import json
import os
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from logging_setup import get_logger


log = get_logger(__name__)

DEFAULT_PACK_FILE = "harmony.cards.jsonl"

# Card kinds that get a small ranking bias
PRIVILEGED_KINDS = frozenset({"method", "property"})

_TOKEN_SPLIT = re.compile(r"[ \t\r\n.,()\[\]:;#/\\]+")


class CardExample(BaseModel):
    """Short code example attached to a card."""
    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    code: Optional[str] = None


class Card(BaseModel):
    """One reference document from the card pack."""
    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    summary: Optional[str] = None
    signature: Optional[str] = None
    remarks: Optional[str] = None
    doc_url: Optional[str] = None
    examples: Optional[List[CardExample]] = Field(default=None)

    @property
    def canonical_text(self) -> str:
        """Signature, summary, remarks and the first example's code, one per line."""
        first_code = ""
        if self.examples:
            first_code = self.examples[0].code or ""
        return "\n".join([
            self.signature or "",
            self.summary or "",
            self.remarks or "",
            first_code,
        ])


def tokenize(query: str) -> List[str]:
    """Lower-case the query and split it on whitespace and punctuation."""
    return [t for t in _TOKEN_SPLIT.split(query.lower()) if t]


def score_card(card: Card, terms: Sequence[str]) -> int:
    """One point per term found anywhere in the card text, plus a kind bonus."""
    text = card.canonical_text.lower()
    hits = sum(1 for term in terms if term in text)
    if card.kind in PRIVILEGED_KINDS:
        hits += 1
    return hits


class HintIndex:
    """Immutable in-memory collection of cards with ranked lexical search."""

    def __init__(self, cards: Iterable[Card] = ()):
        self._cards = tuple(cards)

    @property
    def is_loaded(self) -> bool:
        return len(self._cards) > 0

    def __len__(self) -> int:
        return len(self._cards)

    def search(self, query: str, k: int = 5) -> List[Card]:
        """
        Rank cards against a free-text query.

        Args:
            query: Free text; tokens match as substrings, not whole words
            k: Maximum number of cards to return

        Returns:
            Up to k cards with positive score, best first; ties keep pack order
        """
        if not self.is_loaded or k <= 0:
            return []

        terms = tokenize(query)
        scored = [(score_card(card, terms), card) for card in self._cards]
        scored = [(s, card) for s, card in scored if s > 0]
        # sorted() is stable, so equal scores stay in pack order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
        return [card for _, card in scored[:k]]

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "HintIndex":
        """Parse one card per JSON line, skipping blank and malformed lines."""
        cards = []
        skipped = 0
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                cards.append(Card.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                skipped += 1
                log.debug("skipping malformed card", line=number, error=str(e))
        if skipped:
            log.warning("malformed cards skipped", skipped=skipped)
        return cls(cards)

    @classmethod
    def load(
        cls,
        pack_dir: Optional[str] = None,
        file_name: str = DEFAULT_PACK_FILE
    ) -> "HintIndex":
        """
        Load the first card file found among the candidate directories.

        Returns an empty index when no candidate holds a readable pack.
        """
        for directory in candidate_dirs(pack_dir):
            path = directory / file_name
            if not path.is_file():
                continue
            try:
                with path.open(encoding="utf-8") as fh:
                    index = cls.from_lines(fh)
            except (OSError, UnicodeDecodeError) as e:
                log.warning("cannot read card pack", path=str(path), error=str(e))
                continue
            log.info("card pack loaded", path=str(path), cards=len(index))
            return index

        log.info("no card pack found, hints disabled")
        return cls()


def candidate_dirs(pack_dir: Optional[str] = None) -> List[Path]:
    """Configured pack directory first, then the usual local checkouts."""
    dirs = []
    if pack_dir and pack_dir.strip():
        dirs.append(Path(os.path.expanduser(pack_dir)))
    dirs.append(Path("./llm-pack"))
    dirs.append(Path("../Harmony/llm-pack"))
    dirs.append(Path.home() / "Harmony" / "llm-pack")
    return dirs


async def download_cards(
    url: str,
    dest_dir: str,
    file_name: str = DEFAULT_PACK_FILE,
    timeout: float = 60.0
) -> bool:
    """
    Download the card pack into dest_dir.

    Args:
        url: Location of the JSON-lines pack
        dest_dir: Directory to save into (created if missing)
        file_name: Name of the saved file
        timeout: Request timeout in seconds

    Returns:
        True if the pack was saved, False on any HTTP or filesystem failure
    """
    dest = Path(os.path.expanduser(dest_dir))
    path = dest / file_name
    partial = path.with_name(path.name + ".part")

    try:
        dest.mkdir(parents=True, exist_ok=True)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                log.info("card pack download", url=url, status=response.status_code)
                response.raise_for_status()
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        # Only replace an existing pack once the download completed
        partial.replace(path)
    except (httpx.HTTPError, OSError) as e:
        log.warning("card pack download failed", url=url, error=str(e))
        with contextlib.suppress(OSError):
            partial.unlink(missing_ok=True)
        return False

    log.info("card pack saved", path=str(path))
    return True
