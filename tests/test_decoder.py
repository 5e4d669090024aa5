"""测试 KVS 解码器."""

import io
import math

import pytest

from kvsproto import (
    Binary,
    Bool,
    Character,
    Float32,
    Float64,
    Identifier,
    Kind,
    KvsDepthExceededError,
    KvsEndOfInputError,
    KvsInvalidUtf8Error,
    KvsLengthOverflowError,
    KvsMalformedScalarError,
    KvsMissingTerminatorError,
    KvsSimpleStringTooLongError,
    KvsTruncatedInputError,
    KvsUnknownTagError,
    Map,
    NamedTuple,
    Nil,
    Sequence,
    SignedInt8,
    SignedInt32,
    SignedInt128,
    SimpleString,
    String,
    Struct,
    StructVariant,
    Tuple,
    TupleVariant,
    UnitVariant,
    UnsignedInt8,
    UnsignedInt64,
    UnsignedInt128,
    Value,
    decode,
    encode,
    iter_decode,
)
from kvsproto.decoder import GenericDecoder
from kvsproto.reader import DataReader

# --- 基础解码 ---


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"$Test\n", SimpleString("Test")),
        (b"&3\na\nb\n", String("a\nb")),
        (b"%3\na\nb\n", Binary(b"a\nb")),
        (b"c233\n", Character(0xE9)),
        (b"b-128\n", SignedInt8(-128)),
        (b"B255\n", UnsignedInt8(255)),
        (b"D18446744073709551615\n", UnsignedInt64(2**64 - 1)),
        (b"F1.5\n", Float64(1.5)),
        (b"F1e+100\n", Float64(1e100)),
        (b"F-inf\n", Float64(-math.inf)),
        (b"FNaN\n", Float64(math.nan)),
        (b"f0.1\n", Float32(0.1)),
        (b"1\n", Bool(True)),
        (b"0\n", Bool(False)),
        (b"!\n", Nil()),
        (b"=id\n", Identifier("id")),
        (b"@Color\nRed\n", UnitVariant("Color", "Red")),
        (b"^1\nShape\nCircle\nF1.0\n", TupleVariant("Shape", "Circle", [Float64(1.0)])),
        (
            b"#1\nShape\nRect\nw\nB2\n",
            StructVariant("Shape", "Rect", {"w": UnsignedInt8(2)}),
        ),
        (b"`0\n", Sequence()),
        (b"~2\nB1\n$x\n", Tuple([UnsignedInt8(1), SimpleString("x")])),
        (b":1\nWrap\n!\n", NamedTuple("Wrap", [Nil()])),
    ],
)
def test_decode_values(data: bytes, expected: Value) -> None:
    """decode() 应按指示符解析出对应的值."""
    assert decode(data) == expected


def test_decode_map_literal() -> None:
    """字面映射示例应解析为两个有序键值对."""
    value = decode(b"{2\nb1\n$Test\nb2\n$Test2\n")

    assert isinstance(value, Map)
    assert value.pairs == (
        (SignedInt8(1), SimpleString("Test")),
        (SignedInt8(2), SimpleString("Test2")),
    )


def test_decode_point_struct() -> None:
    """结构体应保留名称和字段顺序."""
    value = decode(encode(Struct("Point", {"x": SignedInt32(3), "y": SignedInt32(4)})))

    assert isinstance(value, Struct)
    assert value.name == "Point"
    assert value.fields == (("x", SignedInt32(3)), ("y", SignedInt32(4)))


def test_decode_ignores_trailing_values() -> None:
    """decode() 只读取第一个顶层值."""
    assert decode(b"B1\nB2\n") == UnsignedInt8(1)


def test_iter_decode_multiple_values() -> None:
    """iter_decode() 应依次产出所有顶层值."""
    values = list(iter_decode(b"B1\n$a\n!\n"))

    assert values == [UnsignedInt8(1), SimpleString("a"), Nil()]


def test_iter_decode_empty() -> None:
    """空输入不产出任何值."""
    assert list(iter_decode(b"")) == []


def test_decode_from_stream() -> None:
    """decode() 支持按块读取的二进制流."""
    data = encode(Sequence([String("x" * 50), UnsignedInt128(2**100)]))

    assert decode(io.BytesIO(data), chunk_size=3) == Sequence(
        [String("x" * 50), UnsignedInt128(2**100)]
    )


def test_decoder_reuses_reader() -> None:
    """同一读取器上可以连续解码多个值."""
    reader = DataReader(b"B1\nB2\n")
    decoder = GenericDecoder(reader)

    assert decoder.decode() == UnsignedInt8(1)
    assert decoder.decode() == UnsignedInt8(2)
    with pytest.raises(KvsEndOfInputError):
        decoder.decode()


# --- 往返 ---

ROUND_TRIP_VALUES = [
    SimpleString("héllo"),
    String(""),
    Binary(bytes(range(256))),
    Character(0x10FFFF),
    SignedInt128(-(2**127)),
    UnsignedInt128(2**128 - 1),
    Float32(3.4028234663852886e38),
    Float32(-0.0),
    Float64(5e-324),
    Float64(math.nan),
    Map(
        [
            (Sequence([UnsignedInt8(1)]), Nil()),
            (Struct("K"), Map()),
        ]
    ),
    StructVariant(
        "Outer",
        "V",
        {"inner": TupleVariant("E", "T", [UnitVariant("E", "U"), Bool(False)])},
    ),
]


@pytest.mark.parametrize("value", ROUND_TRIP_VALUES)
def test_round_trip(value: Value) -> None:
    """decode(encode(v)) == v."""
    assert decode(encode(value)) == value


# --- 错误 ---


def test_decode_empty_is_end_of_input() -> None:
    """空输入应抛出 KvsEndOfInputError 而不是截断错误."""
    with pytest.raises(KvsEndOfInputError):
        decode(b"")


def test_decode_unknown_tag() -> None:
    """以 0x05 开头的输入应抛出 KvsUnknownTagError."""
    with pytest.raises(KvsUnknownTagError) as exc_info:
        decode(b"\x05")

    assert exc_info.value.byte == 0x05
    assert exc_info.value.offset == 0


def test_decode_field_marker_in_value_position() -> None:
    """字段标记不能作为值出现."""
    with pytest.raises(KvsUnknownTagError):
        decode(b"]x\n")


def test_decode_truncated_string() -> None:
    """声明 5 字节只有 3 字节时应抛出 KvsTruncatedInputError."""
    with pytest.raises(KvsTruncatedInputError) as exc_info:
        decode(b"&5\nabc")

    assert exc_info.value.offset == 3


def test_decode_missing_terminator() -> None:
    """载荷后不是换行符时应抛出 KvsMissingTerminatorError."""
    with pytest.raises(KvsMissingTerminatorError) as exc_info:
        decode(b"&3\nabcX")

    assert exc_info.value.offset == 6


def test_decode_nested_end_is_truncation() -> None:
    """容器中途结束属于截断, 而不是输入结束."""
    with pytest.raises(KvsTruncatedInputError):
        decode(b"`2\nB1\n")


@pytest.mark.parametrize(
    ("data", "exc"),
    [
        (b"1", KvsTruncatedInputError),
        (b"1x", KvsMissingTerminatorError),
        (b"!", KvsTruncatedInputError),
        (b"!!\n", KvsMissingTerminatorError),
    ],
)
def test_decode_bare_terminator(data: bytes, exc: type[Exception]) -> None:
    """布尔和空值的指示符后必须紧跟换行符."""
    with pytest.raises(exc):
        decode(data)


def test_decode_simple_string_boundary() -> None:
    """8192 字节的 SimpleString 可解码, 8193 字节失败."""
    ok = b"a" * 8192
    assert decode(b"$" + ok + b"\n") == SimpleString(ok.decode())

    with pytest.raises(KvsSimpleStringTooLongError):
        decode(b"$" + b"a" * 8193 + b"\n")


def test_decode_long_name_token() -> None:
    """过长的名称标记同样失败."""
    with pytest.raises(KvsSimpleStringTooLongError):
        decode(b"@" + b"E" * 9000 + b"\nV\n")


@pytest.mark.parametrize(
    "data",
    [
        b"B256\n",
        b"B-1\n",
        b"b-129\n",
        b"b128\n",
        b"B01\n",
        b"b-0\n",
        b"B+1\n",
        b"B\n",
        b"Babc\n",
        b"B 1\n",
        b"c1114112\n",
        b"c55296\n",
        b"F\n",
        b"F1.5.5\n",
        b"F1_0\n",
        b"Fabc\n",
        b"f1e39\n",
    ],
)
def test_decode_malformed_scalar(data: bytes) -> None:
    """无法解析或超出宽度的标量文本应抛出 KvsMalformedScalarError."""
    with pytest.raises(KvsMalformedScalarError) as exc_info:
        decode(data)

    assert exc_info.value.offset == 1


def test_decode_malformed_scalar_details() -> None:
    """KvsMalformedScalarError 应携带种类和原始文本."""
    with pytest.raises(KvsMalformedScalarError) as exc_info:
        decode(b"B256\n")

    assert exc_info.value.kind is Kind.UINT8
    assert exc_info.value.text == "256"


def test_decode_scalar_line_too_long() -> None:
    """超长的标量文本应抛出 KvsMalformedScalarError."""
    with pytest.raises(KvsMalformedScalarError):
        decode(b"q" + b"1" * 2000 + b"\n")


@pytest.mark.parametrize(
    "data",
    [
        b"`01\n",
        b"`-1\n",
        b"`\n",
        b"`1x\n",
        b"&4294967296\n",
        b"&12345678901\n",
    ],
)
def test_decode_length_overflow(data: bytes) -> None:
    """格式错误或超过 2^32-1 的长度应抛出 KvsLengthOverflowError."""
    with pytest.raises(KvsLengthOverflowError):
        decode(data)


def test_decode_struct_requires_field_marker() -> None:
    """结构体字段必须以 ']' 开头."""
    with pytest.raises(KvsUnknownTagError) as exc_info:
        decode(b"}1\nP\nx\ni1\n")

    assert exc_info.value.byte == ord("x")
    assert exc_info.value.offset == 5


@pytest.mark.parametrize(
    ("data", "offset"),
    [
        (b"$\xff\n", 1),
        (b"&1\n\xff\n", 3),
        (b"}0\n\xc3\x28\n", 3),
    ],
)
def test_decode_invalid_utf8(data: bytes, offset: int) -> None:
    """非法 UTF-8 文本应抛出 KvsInvalidUtf8Error."""
    with pytest.raises(KvsInvalidUtf8Error) as exc_info:
        decode(data)

    assert exc_info.value.offset == offset


def test_decode_error_location_path() -> None:
    """嵌套错误应携带字段名和索引组成的路径."""
    data = b"}1\nP\n]items\n`2\nB1\nB256\n"

    with pytest.raises(KvsMalformedScalarError) as exc_info:
        decode(data)

    assert exc_info.value.loc == ["items", 1]
    assert "(at items.1)" in str(exc_info.value)


@pytest.mark.parametrize(
    ("data", "loc"),
    [
        (b"{1\nB256\n!\n", ["0.key"]),
        (b"{1\n!\nB256\n", [0]),
        (b"{2\n!\n!\nB1\nB256\n", [1]),
    ],
)
def test_decode_map_error_location(data: bytes, loc: list[object]) -> None:
    """映射键和值的错误路径可以区分."""
    with pytest.raises(KvsMalformedScalarError) as exc_info:
        decode(data)

    assert exc_info.value.loc == loc


# --- 深度限制 ---


def test_decode_depth_limit() -> None:
    """超过 max_depth 的嵌套应抛出 KvsDepthExceededError."""
    ok = b"`1\n" * 128 + b"!\n"
    too_deep = b"`1\n" * 129 + b"!\n"

    decode(ok)
    with pytest.raises(KvsDepthExceededError):
        decode(too_deep)


def test_decode_custom_depth_limit() -> None:
    """max_depth 可配置."""
    data = b"`1\n" * 3 + b"!\n"

    decode(data, max_depth=3)
    with pytest.raises(KvsDepthExceededError):
        decode(data, max_depth=2)


def test_decode_deep_adversarial_input() -> None:
    """极深的输入应以 KvsDepthExceededError 失败而不是耗尽调用栈."""
    with pytest.raises(KvsDepthExceededError):
        decode(b"`1\n" * 100_000)
