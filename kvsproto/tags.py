"""KVS 标签表.

指示符字节与值种类 (`Kind`) 之间的双向映射, 是语法的唯一来源.
编码器和解码器都只通过本模块解析指示符.
"""

import enum

from .const import (
    KVS_BINARY,
    KVS_CHARACTER,
    KVS_FALSE,
    KVS_FIELD_MARKER,
    KVS_FLOAT32,
    KVS_FLOAT64,
    KVS_IDENTIFIER,
    KVS_INT8,
    KVS_INT16,
    KVS_INT32,
    KVS_INT64,
    KVS_INT128,
    KVS_MAP,
    KVS_NAMED_TUPLE,
    KVS_NIL,
    KVS_SEQUENCE,
    KVS_SIMPLE_STRING,
    KVS_STRING,
    KVS_STRUCT,
    KVS_STRUCT_VARIANT,
    KVS_TRUE,
    KVS_TUPLE,
    KVS_TUPLE_VARIANT,
    KVS_UINT8,
    KVS_UINT16,
    KVS_UINT32,
    KVS_UINT64,
    KVS_UINT128,
    KVS_UNIT_VARIANT,
)
from .exceptions import KvsUnknownTagError


class Kind(enum.Enum):
    """值种类.

    封闭集合: 每个成员恰好对应一个指示符字节.
    布尔值的两个指示符 (`0`/`1`) 分别对应 `FALSE` 和 `TRUE`.
    `FIELD_MARKER` 不是值种类, 仅出现在结构体字段之前.
    """

    SIMPLE_STRING = "SimpleString"
    STRING = "String"
    CHARACTER = "Character"
    BINARY = "Binary"
    INT8 = "SignedInt8"
    INT16 = "SignedInt16"
    INT32 = "SignedInt32"
    INT64 = "SignedInt64"
    INT128 = "SignedInt128"
    UINT8 = "UnsignedInt8"
    UINT16 = "UnsignedInt16"
    UINT32 = "UnsignedInt32"
    UINT64 = "UnsignedInt64"
    UINT128 = "UnsignedInt128"
    FLOAT32 = "Float32"
    FLOAT64 = "Float64"
    FALSE = "False"
    TRUE = "True"
    UNIT_VARIANT = "UnitVariant"
    TUPLE_VARIANT = "TupleVariant"
    STRUCT_VARIANT = "StructVariant"
    SEQUENCE = "Sequence"
    TUPLE = "Tuple"
    NAMED_TUPLE = "NamedTuple"
    MAP = "Map"
    STRUCT = "Struct"
    NIL = "Nil"
    IDENTIFIER = "Identifier"
    FIELD_MARKER = "FieldMarker"


TAG_TABLE: dict[Kind, int] = {
    Kind.SIMPLE_STRING: KVS_SIMPLE_STRING,
    Kind.STRING: KVS_STRING,
    Kind.CHARACTER: KVS_CHARACTER,
    Kind.BINARY: KVS_BINARY,
    Kind.INT8: KVS_INT8,
    Kind.INT16: KVS_INT16,
    Kind.INT32: KVS_INT32,
    Kind.INT64: KVS_INT64,
    Kind.INT128: KVS_INT128,
    Kind.UINT8: KVS_UINT8,
    Kind.UINT16: KVS_UINT16,
    Kind.UINT32: KVS_UINT32,
    Kind.UINT64: KVS_UINT64,
    Kind.UINT128: KVS_UINT128,
    Kind.FLOAT32: KVS_FLOAT32,
    Kind.FLOAT64: KVS_FLOAT64,
    Kind.FALSE: KVS_FALSE,
    Kind.TRUE: KVS_TRUE,
    Kind.UNIT_VARIANT: KVS_UNIT_VARIANT,
    Kind.TUPLE_VARIANT: KVS_TUPLE_VARIANT,
    Kind.STRUCT_VARIANT: KVS_STRUCT_VARIANT,
    Kind.SEQUENCE: KVS_SEQUENCE,
    Kind.TUPLE: KVS_TUPLE,
    Kind.NAMED_TUPLE: KVS_NAMED_TUPLE,
    Kind.MAP: KVS_MAP,
    Kind.STRUCT: KVS_STRUCT,
    Kind.NIL: KVS_NIL,
    Kind.IDENTIFIER: KVS_IDENTIFIER,
    Kind.FIELD_MARKER: KVS_FIELD_MARKER,
}

_KIND_BY_TAG: dict[int, Kind] = {tag: kind for kind, tag in TAG_TABLE.items()}

# 整数种类 -> (位宽, 是否有符号)
INTEGER_KINDS: dict[Kind, tuple[int, bool]] = {
    Kind.INT8: (8, True),
    Kind.INT16: (16, True),
    Kind.INT32: (32, True),
    Kind.INT64: (64, True),
    Kind.INT128: (128, True),
    Kind.UINT8: (8, False),
    Kind.UINT16: (16, False),
    Kind.UINT32: (32, False),
    Kind.UINT64: (64, False),
    Kind.UINT128: (128, False),
}

# 占用一层嵌套深度的种类 (编码器与解码器共用同一计数规则)
CONTAINER_KINDS: frozenset[Kind] = frozenset(
    {
        Kind.TUPLE_VARIANT,
        Kind.STRUCT_VARIANT,
        Kind.SEQUENCE,
        Kind.TUPLE,
        Kind.NAMED_TUPLE,
        Kind.MAP,
        Kind.STRUCT,
    }
)


def tag_for(kind: Kind) -> int:
    """获取值种类对应的指示符字节."""
    return TAG_TABLE[kind]


def kind_for(indicator: int, offset: int | None = None) -> Kind:
    """根据指示符字节解析值种类.

    Args:
        indicator: 指示符字节.
        offset: 该字节在输入中的偏移量 (用于错误报告).

    Returns:
        Kind: 对应的值种类.

    Raises:
        KvsUnknownTagError: 字节不在标签表中.
    """
    try:
        return _KIND_BY_TAG[indicator]
    except KeyError:
        raise KvsUnknownTagError(indicator, offset) from None


def integer_range(kind: Kind) -> tuple[int, int]:
    """返回整数种类的闭区间取值范围."""
    bits, signed = INTEGER_KINDS[kind]
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1
