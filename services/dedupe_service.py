from __future__ import annotations

from typing import Dict, Iterable, List

from app.models.messages import Message


def merge_messages(*sequences: Iterable[Message]) -> List[Message]:
    """
    Merge message sequences into one newest-first list, unique by identifier.

    For duplicates the later `published_at` wins; on a tie the first one seen
    is kept. Messages with equal timestamps keep their first-seen order.
    """
    survivors: Dict[str, Message] = {}
    for sequence in sequences:
        for message in sequence:
            current = survivors.get(message.identifier)
            if current is None or message.published_at > current.published_at:
                # Replacing a dict value keeps the key's original insertion slot.
                survivors[message.identifier] = message
    return sorted(survivors.values(), key=lambda m: m.published_at, reverse=True)
