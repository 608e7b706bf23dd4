"""Wire model for the collection slot ping."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CollectionSlotPayload:
    """Body of the operational profiling POST.

    Key order is part of the wire format:
    ``collection_id``, ``platform``, ``collection_slot``.
    """

    collection_id: str
    platform: str
    collection_slot: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection_id": self.collection_id,
            "platform": self.platform,
            "collection_slot": self.collection_slot,
        }

    def to_json(self) -> str:
        """Serialise without whitespace, in wire key order."""
        return json.dumps(self.to_dict(), separators=(",", ":"))
