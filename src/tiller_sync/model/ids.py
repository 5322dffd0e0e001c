"""Transaction identity: remote-assigned or locally generated.

A transaction id is exactly one of two variants. Code that needs to treat
them differently matches on the variant; the ``user-`` prefix is only
inspected by ``parse_transaction_id`` when text enters the system.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import PlainSerializer, PlainValidator

LOCAL_ID_PREFIX = "user-"


@dataclass(frozen=True, slots=True)
class RemoteId:
    """Opaque id assigned by Tiller."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class LocalId:
    """Id generated for a row created locally. Never overwritten."""

    value: str

    @classmethod
    def generate(cls) -> LocalId:
        return cls(f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}")

    def __str__(self) -> str:
        return self.value


TransactionId = RemoteId | LocalId


def parse_transaction_id(raw: Any) -> TransactionId:
    """Classify a raw id string.

    Args:
        raw: Id text from the sheet or datastore, or an already-parsed id.

    Returns:
        ``LocalId`` when the text carries the local prefix, else ``RemoteId``.

    Raises:
        ValueError: If the id is blank.
    """
    if isinstance(raw, (RemoteId, LocalId)):
        return raw
    text = str(raw).strip() if raw is not None else ""
    if not text:
        raise ValueError("Transaction ID cannot be empty")
    if text.startswith(LOCAL_ID_PREFIX):
        return LocalId(text)
    return RemoteId(text)


def is_local(tid: TransactionId) -> bool:
    match tid:
        case LocalId():
            return True
        case RemoteId():
            return False


# Pydantic field type: validates from text, serializes back to text.
TransactionIdField = Annotated[
    TransactionId,
    PlainValidator(parse_transaction_id),
    PlainSerializer(lambda tid: tid.value, return_type=str),
]
