"""KVS协议序列化库.

提供了KVS值模型、编解码器、KvsStruct定义、序列化(dumps)和反序列化(loads)功能.
"""

from .adapter import KvsTypeAdapter
from .api import decode, dump, dumps, encode, from_value, iter_decode, load, loads
from .config import KvsConfig
from .convert import to_python, to_value
from .exceptions import (
    KvsDecodeError,
    KvsDepthExceededError,
    KvsEncodeError,
    KvsEndOfInputError,
    KvsError,
    KvsInvalidSimpleStringError,
    KvsInvalidUtf8Error,
    KvsLengthOverflowError,
    KvsMalformedScalarError,
    KvsMissingTerminatorError,
    KvsSimpleStringTooLongError,
    KvsTruncatedInputError,
    KvsTypeError,
    KvsUnknownTagError,
    KvsValueError,
)
from .options import KvsOption
from .stream import KvsStreamReader, KvsStreamWriter
from .struct import KvsField, KvsStruct
from .tags import Kind
from .types import (
    Binary,
    Bool,
    Character,
    Float32,
    Float64,
    Identifier,
    Map,
    NamedTuple,
    Nil,
    Sequence,
    SignedInt8,
    SignedInt16,
    SignedInt32,
    SignedInt64,
    SignedInt128,
    SimpleString,
    String,
    Struct,
    StructVariant,
    Tuple,
    TupleVariant,
    UnitVariant,
    UnsignedInt8,
    UnsignedInt16,
    UnsignedInt32,
    UnsignedInt64,
    UnsignedInt128,
    Value,
)

__version__ = "0.1.0"

__all__ = [
    "Binary",
    "Bool",
    "Character",
    "Float32",
    "Float64",
    "Identifier",
    "Kind",
    "KvsConfig",
    "KvsDecodeError",
    "KvsDepthExceededError",
    "KvsEncodeError",
    "KvsEndOfInputError",
    "KvsError",
    "KvsField",
    "KvsInvalidSimpleStringError",
    "KvsInvalidUtf8Error",
    "KvsLengthOverflowError",
    "KvsMalformedScalarError",
    "KvsMissingTerminatorError",
    "KvsOption",
    "KvsSimpleStringTooLongError",
    "KvsStreamReader",
    "KvsStreamWriter",
    "KvsStruct",
    "KvsTruncatedInputError",
    "KvsTypeAdapter",
    "KvsTypeError",
    "KvsUnknownTagError",
    "KvsValueError",
    "Map",
    "NamedTuple",
    "Nil",
    "Sequence",
    "SignedInt8",
    "SignedInt16",
    "SignedInt32",
    "SignedInt64",
    "SignedInt128",
    "SimpleString",
    "String",
    "Struct",
    "StructVariant",
    "Tuple",
    "TupleVariant",
    "UnitVariant",
    "UnsignedInt8",
    "UnsignedInt16",
    "UnsignedInt32",
    "UnsignedInt64",
    "UnsignedInt128",
    "Value",
    "__version__",
    "decode",
    "dump",
    "dumps",
    "encode",
    "from_value",
    "iter_decode",
    "load",
    "loads",
    "to_python",
    "to_value",
]
