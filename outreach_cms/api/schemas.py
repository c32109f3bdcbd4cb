from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (and snake_case ones)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def supplied(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed by column name."""
        return self.model_dump(exclude_unset=True)


def deleted(label: str) -> Dict[str, Any]:
    return {"success": True, "message": f"{label} deleted successfully"}
