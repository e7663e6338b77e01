"""
Export record types.

Plain data carried by the binary export/import path. These are deliberately
independent of the ORM so a remote verifier can use them without a database.
"""
from dataclasses import dataclass, field
from typing import List


@dataclass
class SignedRecord:
    """
    A user record plus its integrity provenance.

    Attributes:
        id: Database id
        email: User email (the signed field)
        role: "admin" or "user"
        status: "active" or "inactive"
        email_hash: Hex SHA-384 of email
        signature: Encoded signature bundle (base64 JSON), never parsed here
        created_at: ISO-8601 UTC timestamp, "" when unknown
        updated_at: ISO-8601 UTC timestamp, "" when unknown
    """
    id: int = 0
    email: str = ""
    role: str = ""
    status: str = ""
    email_hash: str = ""
    signature: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class RecordList:
    """A batch of signed records as exported at one point in time."""
    records: List[SignedRecord] = field(default_factory=list)
    total_count: int = 0
    exported_at: str = ""
