"""Catalog record shape shared by the remote client and the replica."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(slots=True)
class Listing:
    """A catalog record as rendered to callers."""

    id: str
    name: Optional[str] = None
    picture_url: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "picture_url": self.picture_url}


def listing_id(payload: Dict[str, Any]) -> Optional[str]:
    """Extract the record identifier from a remote payload.

    Accepts ``_id`` or ``id``; extended-JSON ObjectIds ({"$oid": ...}) are unwrapped.
    """
    value = payload.get("_id", payload.get("id"))
    if isinstance(value, dict):
        value = value.get("$oid")
    if value is None or value == "":
        return None
    return str(value)


def listing_from_payload(payload: Dict[str, Any]) -> Optional[Listing]:
    """Build a Listing from a remote payload, or None if it carries no identifier."""
    lid = listing_id(payload)
    if lid is None:
        return None
    images = payload.get("images") if isinstance(payload.get("images"), dict) else {}
    picture_url = images.get("picture_url") or payload.get("picture_url")
    name = payload.get("name")
    return Listing(
        id=lid,
        name=str(name) if name is not None else None,
        picture_url=str(picture_url) if picture_url else None,
        payload=dict(payload),
    )
