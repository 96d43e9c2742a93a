"""
Loads a flashcard set from the backend and deals a shuffled deck.
"""
import logging
import random
from typing import List, Optional, Sequence

from .api_client import ApiError, FlashLearnClient
from .models import Card, Deck, LoadedSet
from .storage import LocalStorage, get_auth_token


class DeckLoadError(Exception):
    """Raised when a set cannot be turned into a playable deck."""

    def __init__(self, message: str, user_message: str):
        super().__init__(message)
        self.user_message = user_message


def shuffle_cards(cards: Sequence[Card], rng: Optional[random.Random] = None) -> Deck:
    """
    Return a full random permutation of cards as a new deck.

    The input sequence is left untouched.
    """
    rng = rng or random
    return tuple(rng.sample(list(cards), len(cards)))


class DeckLoader:
    """Fetches set details and prepares a fresh deck for each session."""

    def __init__(
        self,
        client: FlashLearnClient,
        storage: LocalStorage,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize DeckLoader.

        Args:
            client: Backend client used for the set-detail request
            storage: Local storage holding the session token
            rng: Random source for shuffling, defaults to the module RNG
        """
        self.client = client
        self.storage = storage
        self.rng = rng
        self.logger = logging.getLogger(__name__)

    async def load_deck(self, set_id: str, set_name: Optional[str] = None) -> LoadedSet:
        """
        Fetch a set and return it with a newly shuffled deck.

        Args:
            set_id: Identifier of the set to quiz on
            set_name: Display name passed by the caller, used when the
                backend omits one

        Returns:
            LoadedSet with the shuffled deck

        Raises:
            DeckLoadError: If signed out, the request fails, or the set has
                no cards
        """
        token = get_auth_token(self.storage)
        if not token:
            raise DeckLoadError("No auth token in storage", "Please log in again")

        try:
            data = await self.client.get_set(set_id, token)
        except ApiError as e:
            if e.status_code == 401:
                user_message = "Your session has expired. Please log in again"
            elif e.status_code == 404:
                user_message = "This set could not be found"
            else:
                user_message = "Failed to load quiz cards"
            raise DeckLoadError(f"Failed to fetch set {set_id}: {e}", user_message) from e

        cards = self._parse_cards(data, set_id)
        if not cards:
            raise DeckLoadError(f"Set {set_id} has no cards", "This set has no cards yet")

        set_info = data.get("set") if isinstance(data.get("set"), dict) else {}
        loaded = LoadedSet(
            set_id=str(set_id),
            name=set_info.get("set_name") or set_name or "Untitled Set",
            subject=set_info.get("set_subject") or data.get("set_subject") or "General",
            deck=shuffle_cards(cards, self.rng),
        )
        self.logger.info(f"Loaded set '{loaded.name}' with {loaded.card_count} cards")
        return loaded

    def _parse_cards(self, data: dict, set_id: str) -> List[Card]:
        raw_cards = data.get("cards")
        if raw_cards is None and isinstance(data.get("set"), dict):
            raw_cards = data["set"].get("cards")
        if raw_cards is None:
            return []
        if not isinstance(raw_cards, list):
            raise DeckLoadError(
                f"Set {set_id} 'cards' field must be an array",
                "Failed to load quiz cards",
            )

        cards = []
        for i, raw in enumerate(raw_cards):
            if not isinstance(raw, dict):
                raise DeckLoadError(f"Card {i} of set {set_id} must be an object", "Failed to load quiz cards")
            if not isinstance(raw.get("card_question"), str) or not isinstance(raw.get("card_answer"), str):
                raise DeckLoadError(
                    f"Card {i} of set {set_id} is missing question or answer text",
                    "Failed to load quiz cards",
                )
            cards.append(Card.from_api(raw))
        return cards
