from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass(frozen=True)
class OwnedResource:
    """A table whose rows belong to a user.

    Each model module declares one of these once; the ownership gate uses
    `owner_field` as-is instead of guessing between author/creator columns.
    """

    label: str
    loader: Callable[[Any, int], Optional[Dict[str, Any]]]
    owner_field: str

    def owner_of(self, row: Dict[str, Any]) -> Optional[int]:
        v = row.get(self.owner_field)
        return int(v) if v is not None else None
