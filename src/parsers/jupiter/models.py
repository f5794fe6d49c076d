"""Pydantic models for Jupiter Price API v2 responses."""

from decimal import Decimal, InvalidOperation

from pydantic import BaseModel


class JupiterPrice(BaseModel):
    """USD price of one mint. ``confidence_level``: high / medium / low."""

    id: str  # mint address
    price: Decimal | None = None
    confidence_level: str = "medium"

    @classmethod
    def from_response(cls, data: dict, mint: str) -> "JupiterPrice | None":
        """Entry for `mint` in a ``{"data": {mint: {...}}}`` body; None when unpriced."""
        entry = (data.get("data") or {}).get(mint)
        if not isinstance(entry, dict) or entry.get("price") in (None, ""):
            return None
        try:
            price = Decimal(str(entry["price"]))
        except InvalidOperation:
            return None
        extra = entry.get("extraInfo") or {}
        return cls(
            id=mint,
            price=price,
            confidence_level=extra.get("confidenceLevel") or "medium",
        )
