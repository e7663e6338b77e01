"""
Protocol Buffers schema for the export path.

Builds the descriptor described in userstore.proto at import time and exposes
the generated message classes. Building it in code avoids a protoc step; the
field numbers below are the wire contract and must match the .proto file.
"""
from typing import List, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_Field = descriptor_pb2.FieldDescriptorProto

PACKAGE = "userstore"

# (name, field number, wire type)
_USER_FIELDS: List[Tuple[str, int, int]] = [
    ("id", 1, _Field.TYPE_INT64),
    ("email", 2, _Field.TYPE_STRING),
    ("role", 3, _Field.TYPE_STRING),
    ("status", 4, _Field.TYPE_STRING),
    ("email_hash", 5, _Field.TYPE_STRING),
    ("signature", 6, _Field.TYPE_STRING),
    ("created_at", 7, _Field.TYPE_STRING),
    ("updated_at", 8, _Field.TYPE_STRING),
]

_PUBLIC_KEY_INFO_FIELDS: List[Tuple[str, int, int]] = [
    ("public_key", 1, _Field.TYPE_STRING),
    ("algorithm", 2, _Field.TYPE_STRING),
    ("curve", 3, _Field.TYPE_STRING),
    ("key_size", 4, _Field.TYPE_INT32),
    ("timestamp", 5, _Field.TYPE_STRING),
]


def _add_scalar_fields(message: descriptor_pb2.DescriptorProto, fields) -> None:
    for name, number, field_type in fields:
        field = message.field.add()
        field.name = name
        field.number = number
        field.type = field_type
        field.label = _Field.LABEL_OPTIONAL


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Return the FileDescriptorProto equivalent of userstore.proto."""
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "userstore.proto"
    file_proto.package = PACKAGE
    file_proto.syntax = "proto3"

    user = file_proto.message_type.add()
    user.name = "User"
    _add_scalar_fields(user, _USER_FIELDS)

    user_list = file_proto.message_type.add()
    user_list.name = "UserList"
    users = user_list.field.add()
    users.name = "users"
    users.number = 1
    users.type = _Field.TYPE_MESSAGE
    users.label = _Field.LABEL_REPEATED
    users.type_name = f".{PACKAGE}.User"
    _add_scalar_fields(user_list, [
        ("total_count", 2, _Field.TYPE_INT32),
        ("exported_at", 3, _Field.TYPE_STRING),
    ])

    key_info = file_proto.message_type.add()
    key_info.name = "PublicKeyInfo"
    _add_scalar_fields(key_info, _PUBLIC_KEY_INFO_FIELDS)

    return file_proto


# Private pool, separate from the process-wide default pool
_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(build_file_descriptor().SerializeToString())

User = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.User"))
UserList = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.UserList"))
PublicKeyInfo = message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.PublicKeyInfo"))

USER_FIELD_NAMES = tuple(name for name, _, _ in _USER_FIELDS)
