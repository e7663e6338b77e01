"""
Binary Record Codec

Serializes signed user records to and from the protobuf schema in
userstore.proto. The codec is agnostic to signature internals: the encoded
signature bundle string is carried verbatim.

Absent string fields always decode to "" and absent ids to 0, never None, so
decode(encode(records)) reproduces the input field for field.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union

from google.protobuf.message import DecodeError

from backend.core.clock import utc_now_iso
from backend.core.export import schema
from backend.core.export.records import RecordList, SignedRecord

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class RecordCodecError(ValueError):
    """Raised when records cannot be encoded or a payload cannot be decoded."""


class BinaryRecordCodec:
    """Protobuf codec for SignedRecord and RecordList."""

    def encode_one(self, record: SignedRecord) -> bytes:
        return self._to_message(record).SerializeToString(deterministic=True)

    def decode_one(self, data: BytesLike) -> SignedRecord:
        message = schema.User()
        self._parse(message, data)
        return self._from_message(message)

    def encode_list(self, records: Iterable[SignedRecord], exported_at: Optional[str] = None) -> bytes:
        """
        Serialize records into one UserList payload.

        Args:
            records: Records in the order they should appear on the wire
            exported_at: Export timestamp (default: now, ISO-8601 UTC)

        Returns:
            Serialized UserList bytes

        Raises:
            RecordCodecError: If a record field has the wrong type or an id is out of int64 range
        """
        records = list(records)
        message = schema.UserList(
            total_count=len(records),
            exported_at=exported_at if exported_at is not None else utc_now_iso(),
        )
        for record in records:
            message.users.append(self._to_message(record))
        payload = message.SerializeToString(deterministic=True)
        logger.debug(f"Encoded {len(records)} records into {len(payload)} bytes")
        return payload

    def decode_list(self, data: BytesLike) -> RecordList:
        """
        Parse a UserList payload.

        Raises:
            RecordCodecError: If the payload is not a valid UserList
        """
        message = schema.UserList()
        self._parse(message, data)
        return RecordList(
            records=[self._from_message(user) for user in message.users],
            total_count=message.total_count,
            exported_at=message.exported_at,
        )

    def encode_public_key_info(self, info: Dict[str, Any]) -> bytes:
        """Serialize KeyStore.key_info() output as a PublicKeyInfo message."""
        try:
            message = schema.PublicKeyInfo(
                public_key=info.get("publicKey", ""),
                algorithm=info.get("algorithm", ""),
                curve=info.get("curve") or "",
                key_size=info.get("keySize") or 0,
                timestamp=info.get("timestamp", ""),
            )
        except (TypeError, ValueError) as e:
            raise RecordCodecError(f"Invalid public key info: {e}") from e
        return message.SerializeToString(deterministic=True)

    def decode_public_key_info(self, data: BytesLike) -> Dict[str, Any]:
        message = schema.PublicKeyInfo()
        self._parse(message, data)
        info: Dict[str, Any] = {
            "publicKey": message.public_key,
            "algorithm": message.algorithm,
        }
        if message.curve:
            info["curve"] = message.curve
        if message.key_size:
            info["keySize"] = message.key_size
        info["timestamp"] = message.timestamp
        return info

    # ------------------------------------------------------------------

    @staticmethod
    def _to_message(record: SignedRecord):
        fields = {
            name: getattr(record, name)
            for name in schema.USER_FIELD_NAMES
        }
        # None is not representable on the wire
        fields = {
            name: (value if value is not None else (0 if name == "id" else ""))
            for name, value in fields.items()
        }
        if isinstance(fields["id"], bool) or not isinstance(fields["id"], int):
            raise RecordCodecError(f"Record id must be an integer, got {fields['id']!r}")
        try:
            return schema.User(**fields)
        except (TypeError, ValueError) as e:
            raise RecordCodecError(f"Cannot encode record {fields['id']}: {e}") from e

    @staticmethod
    def _from_message(message) -> SignedRecord:
        return SignedRecord(**{name: getattr(message, name) for name in schema.USER_FIELD_NAMES})

    @staticmethod
    def _parse(message, data: BytesLike) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise RecordCodecError(f"Expected bytes, got {type(data).__name__}")
        try:
            message.ParseFromString(bytes(data))
        except DecodeError as e:
            raise RecordCodecError(f"Invalid protobuf payload: {e}") from e
