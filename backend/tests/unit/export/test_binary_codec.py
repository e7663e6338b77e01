"""
Unit tests for the protobuf record codec.
"""
import pytest

from backend.core.export import schema
from backend.core.export.codec import BinaryRecordCodec, RecordCodecError
from backend.core.export.records import RecordList, SignedRecord


@pytest.fixture
def codec():
    return BinaryRecordCodec()


def _record(index: int) -> SignedRecord:
    return SignedRecord(
        id=index,
        email=f"user{index}@example.com",
        role="admin" if index % 5 == 0 else "user",
        status="inactive" if index % 3 == 0 else "active",
        email_hash=f"{index:096x}",
        signature=f"c2ln{index}==",
        created_at="2024-12-01T10:15:30.123Z",
        updated_at="2024-12-02T08:00:00.000Z",
    )


class TestListRoundTrip:
    """decode(encode(records)) reproduces the records"""

    def test_empty_list(self, codec):
        decoded = codec.decode_list(codec.encode_list([], exported_at="2024-12-01T00:00:00.000Z"))
        assert decoded == RecordList(records=[], total_count=0, exported_at="2024-12-01T00:00:00.000Z")

    def test_single_record(self, codec):
        record = _record(1)
        decoded = codec.decode_list(codec.encode_list([record]))
        assert decoded.records == [record]
        assert decoded.total_count == 1

    @pytest.mark.slow
    def test_thousand_records(self, codec):
        records = [_record(i) for i in range(1, 1001)]
        decoded = codec.decode_list(codec.encode_list(records, exported_at="2024-12-01T00:00:00.000Z"))
        assert decoded.records == records
        assert decoded.total_count == 1000

    def test_preserves_order(self, codec):
        records = [_record(i) for i in (5, 1, 3)]
        assert [r.id for r in codec.decode_list(codec.encode_list(records)).records] == [5, 1, 3]

    def test_default_fields_decode_to_empty(self, codec):
        decoded = codec.decode_list(codec.encode_list([SignedRecord(id=7)]))
        assert decoded.records == [SignedRecord(id=7, email="", role="", status="",
                                                email_hash="", signature="",
                                                created_at="", updated_at="")]

    def test_none_fields_encode_as_empty(self, codec):
        record = SignedRecord(id=3, email="a@example.com", signature=None, created_at=None)
        decoded = codec.decode_list(codec.encode_list([record])).records[0]
        assert decoded.signature == ""
        assert decoded.created_at == ""

    def test_unicode_email(self, codec):
        record = SignedRecord(id=1, email="jürgen@exämple.com")
        assert codec.decode_list(codec.encode_list([record])).records == [record]

    def test_signature_carried_verbatim(self, codec):
        record = SignedRecord(id=1, email="a@example.com", signature="not even base64 {}")
        assert codec.decode_list(codec.encode_list([record])).records[0].signature == "not even base64 {}"

    def test_exported_at_defaults_to_now(self, codec):
        decoded = codec.decode_list(codec.encode_list([_record(1)]))
        assert decoded.exported_at.endswith("Z")
        assert len(decoded.exported_at) == len("2024-12-01T10:15:30.123Z")

    def test_large_ids(self, codec):
        record = SignedRecord(id=2**62, email="big@example.com")
        assert codec.decode_list(codec.encode_list([record])).records[0].id == 2**62


class TestDeterminism:

    def test_reencode_is_byte_identical(self, codec):
        records = [_record(i) for i in range(1, 20)]
        payload = codec.encode_list(records, exported_at="2024-12-01T00:00:00.000Z")
        decoded = codec.decode_list(payload)
        assert codec.encode_list(decoded.records, exported_at=decoded.exported_at) == payload


class TestWireCompatibility:
    """Payloads match the schema in userstore.proto"""

    def test_parses_with_message_class(self, codec):
        payload = codec.encode_list([_record(1), _record(2)], exported_at="2024-12-01T00:00:00.000Z")
        message = schema.UserList()
        message.ParseFromString(payload)

        assert message.total_count == 2
        assert message.users[1].email == "user2@example.com"
        assert message.users[0].email_hash == _record(1).email_hash

    def test_field_numbers(self):
        fields = {f.name: f.number for f in schema.User.DESCRIPTOR.fields}
        assert fields == {
            "id": 1, "email": 2, "role": 3, "status": 4,
            "email_hash": 5, "signature": 6, "created_at": 7, "updated_at": 8,
        }
        list_fields = {f.name: f.number for f in schema.UserList.DESCRIPTOR.fields}
        assert list_fields == {"users": 1, "total_count": 2, "exported_at": 3}

    def test_empty_payload_is_empty_list(self, codec):
        assert codec.decode_list(b"") == RecordList()


class TestSingleRecord:

    def test_round_trip(self, codec):
        record = _record(42)
        assert codec.decode_one(codec.encode_one(record)) == record

    def test_accepts_bytearray_and_memoryview(self, codec):
        payload = codec.encode_one(_record(1))
        assert codec.decode_one(bytearray(payload)) == _record(1)
        assert codec.decode_one(memoryview(payload)) == _record(1)


class TestErrors:

    @pytest.mark.parametrize("payload", [b"\xff\xff\xff", b"\x0a\x05abc", b"\x08"])
    def test_undecodable_payload(self, codec, payload):
        with pytest.raises(RecordCodecError):
            codec.decode_list(payload)

    def test_non_bytes(self, codec):
        with pytest.raises(RecordCodecError):
            codec.decode_list("not bytes")

    @pytest.mark.parametrize("record_id", ["1", 1.5, True])
    def test_non_integer_id(self, codec, record_id):
        with pytest.raises(RecordCodecError):
            codec.encode_list([SignedRecord(id=record_id, email="a@example.com")])

    def test_id_out_of_range(self, codec):
        with pytest.raises(RecordCodecError):
            codec.encode_list([SignedRecord(id=2**64, email="a@example.com")])

    def test_non_string_field(self, codec):
        with pytest.raises(RecordCodecError):
            codec.encode_list([SignedRecord(id=1, email=12345)])

    def test_codec_error_is_value_error(self, codec):
        with pytest.raises(ValueError):
            codec.decode_list(b"\xff\xff\xff")


class TestPublicKeyInfo:

    def test_ecdsa_round_trip(self, codec, key_store):
        info = key_store.key_info()
        assert codec.decode_public_key_info(codec.encode_public_key_info(info)) == info

    def test_rsa_round_trip(self, codec, rsa_key_store):
        info = rsa_key_store.key_info()
        assert codec.decode_public_key_info(codec.encode_public_key_info(info)) == info
