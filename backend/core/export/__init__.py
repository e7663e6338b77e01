"""
Binary export of signed user records (protobuf, see userstore.proto).
"""
from backend.core.export.codec import BinaryRecordCodec, RecordCodecError
from backend.core.export.records import RecordList, SignedRecord

__all__ = ['BinaryRecordCodec', 'RecordCodecError', 'RecordList', 'SignedRecord']
