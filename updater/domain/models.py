from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class UpdateLevel(str, Enum):
    CRITICAL = "CRITICAL"
    IMPORTANT = "IMPORTANT"
    MINOR = "MINOR"


class Transaction(BaseModel):
    """Update transaction as recorded in the ledger.

    Only the identity is referenced from update_status; the rest is the update
    attachment (target version and where to fetch it).
    """
    id: int
    height: int = Field(ge=0)
    timestamp: int = Field(ge=0)
    sender_id: int
    update_level: UpdateLevel
    version: str = Field(pattern=r"^\d+\.\d+\.\d+$")
    platform: Optional[str] = None
    architecture: Optional[str] = None
    url: Optional[str] = None
    hash: Optional[str] = None

    @field_validator("update_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("hash")
    @classmethod
    def _hex_hash(cls, v):
        if v is None:
            return v
        try:
            bytes.fromhex(v)
        except ValueError:
            raise ValueError("hash must be hex encoded")
        return v.lower()

    def to_row(self) -> dict:
        row = self.model_dump()
        row["update_level"] = self.update_level.value
        return row


@dataclass(frozen=True)
class UpdateStatus:
    """Most recently recorded update transaction and whether it finished updating."""
    transaction: Transaction
    updated: bool = False

    @property
    def transaction_id(self) -> int:
        return self.transaction.id

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "updated": self.updated,
            "transaction": self.transaction.to_row(),
        }
