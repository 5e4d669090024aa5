"""测试 KVS 高级 API."""

import enum
import io
from typing import Any, NamedTuple

import pytest

from kvsproto import (
    Binary,
    Bool,
    Float64,
    KvsEncodeError,
    KvsOption,
    KvsTypeError,
    KvsValueError,
    Map,
    Nil,
    Sequence,
    SignedInt8,
    SignedInt16,
    SignedInt64,
    SignedInt128,
    SimpleString,
    String,
    Tuple,
    UnitVariant,
    UnsignedInt8,
    UnsignedInt128,
    Value,
    dump,
    dumps,
    load,
    loads,
    to_python,
    to_value,
)
from kvsproto import NamedTuple as NamedTupleValue
from kvsproto.config import KvsConfig


class Color(enum.Enum):
    """测试用枚举."""

    RED = 1
    GREEN = 2


class Pair(NamedTuple):
    """测试用具名元组."""

    left: int
    right: str


# --- to_value ---


@pytest.mark.parametrize(
    ("obj", "expected"),
    [
        (None, Nil()),
        (True, Bool(True)),
        (1, SignedInt64(1)),
        (2**63, SignedInt128(2**63)),
        (2**128 - 1, UnsignedInt128(2**128 - 1)),
        (1.5, Float64(1.5)),
        ("abc", SimpleString("abc")),
        ("a\nb", String("a\nb")),
        ("a" * 8193, String("a" * 8193)),
        (b"\x00", Binary(b"\x00")),
        (bytearray(b"\x01"), Binary(b"\x01")),
        ([1, "a"], Sequence([SignedInt64(1), SimpleString("a")])),
        ((1, None), Tuple([SignedInt64(1), Nil()])),
        (Pair(1, "x"), NamedTupleValue("Pair", [SignedInt64(1), SimpleString("x")])),
        ({"k": None}, Map([(SimpleString("k"), Nil())])),
        (Color.GREEN, UnitVariant("Color", "GREEN")),
        (UnsignedInt8(3), UnsignedInt8(3)),
    ],
)
def test_to_value(obj: Any, expected: Value) -> None:
    """to_value() 应按默认规则映射 Python 对象."""
    assert to_value(obj) == expected


@pytest.mark.parametrize(
    ("obj", "expected"),
    [
        (0, SignedInt8(0)),
        (-128, SignedInt8(-128)),
        (128, SignedInt16(128)),
        (2**100, SignedInt128(2**100)),
    ],
)
def test_to_value_compact_int(obj: int, expected: Value) -> None:
    """COMPACT_INT 时使用能容纳该值的最窄宽度."""
    config = KvsConfig.from_params(option=KvsOption.COMPACT_INT)

    assert to_value(obj, config) == expected


def test_to_value_always_length_string() -> None:
    """ALWAYS_LENGTH_STRING 时 str 总是编码为 String."""
    config = KvsConfig.from_params(option=KvsOption.ALWAYS_LENGTH_STRING)

    assert to_value("abc", config) == String("abc")


def test_to_value_int_out_of_range() -> None:
    """超出 128 位范围的整数应抛出 KvsValueError."""
    with pytest.raises(KvsValueError):
        to_value(2**128)


def test_to_value_circular_reference() -> None:
    """循环引用应抛出 KvsEncodeError."""
    data: list[Any] = [1]
    data.append(data)

    with pytest.raises(KvsEncodeError, match="Circular reference"):
        to_value(data)


def test_to_value_shared_reference_is_allowed() -> None:
    """同一对象出现多次 (非循环) 是允许的."""
    shared = [1]

    assert to_value([shared, shared]) == Sequence(
        [Sequence([SignedInt64(1)]), Sequence([SignedInt64(1)])]
    )


def test_to_value_deep_nesting_is_bounded() -> None:
    """极深的原生对象嵌套应抛出 KvsValueError 而不是耗尽调用栈."""
    data: list[Any] = []
    for _ in range(5000):
        data = [data]

    with pytest.raises(KvsValueError, match="max depth"):
        dumps(data)


def test_to_value_depth_matches_decoder() -> None:
    """原生对象的深度按容器层数计算, 与解码器一致."""
    data: list[Any] = []
    for _ in range(9):
        data = [data]

    assert loads(dumps(data, max_depth=10), max_depth=10) == data
    with pytest.raises(KvsValueError):
        dumps([data], max_depth=10)


def test_to_value_model_depth() -> None:
    """pydantic 模型的字段同样计入深度."""
    from pydantic import BaseModel

    class Box(BaseModel):
        items: list[int]

    dumps(Box(items=[1]), max_depth=2)
    with pytest.raises(KvsValueError):
        dumps(Box(items=[1]), max_depth=1)


def test_to_value_unsupported_type() -> None:
    """不支持的类型应抛出 KvsTypeError."""
    with pytest.raises(KvsTypeError):
        to_value(object())


def test_to_value_default_hook() -> None:
    """default 函数用于处理无法直接映射的对象."""
    config = KvsConfig.from_params(default=lambda obj: sorted(obj))

    assert to_value({3, 1}, config) == Sequence([SignedInt64(1), SignedInt64(3)])


# --- to_python ---


def test_to_python_scalars_and_containers() -> None:
    """to_python() 应还原为普通 Python 对象."""
    value = Map(
        [
            (SimpleString("list"), Sequence([UnsignedInt8(1), Nil()])),
            (Sequence([SignedInt8(1)]), Tuple([Bool(True), Binary(b"x")])),
        ]
    )

    assert to_python(value) == {"list": [1, None], (1,): (True, b"x")}


def test_to_python_variants_are_externally_tagged() -> None:
    """枚举变体采用外部标记表示."""
    from kvsproto import StructVariant, TupleVariant

    assert to_python(UnitVariant("E", "A")) == "A"
    assert to_python(TupleVariant("E", "B", [SignedInt8(1)])) == {"B": [1]}
    assert to_python(StructVariant("E", "C", {"x": Nil()})) == {"C": {"x": None}}


# --- dumps / loads ---


def test_dumps_map() -> None:
    """dumps() 将 dict 编码为 Map."""
    assert dumps({"a": 1}) == b"{1\n$a\nd1\n"


def test_dumps_options() -> None:
    """dumps() 应遵循编码选项."""
    assert dumps(5, option=KvsOption.COMPACT_INT) == b"b5\n"
    assert dumps("x", option=KvsOption.ALWAYS_LENGTH_STRING) == b"&1\nx\n"


def test_loads_default_target() -> None:
    """loads() 默认返回普通 Python 对象."""
    data = dumps({"name": "kvs", "values": [1, 2.5, None], "raw": b"\x00"})

    assert loads(data) == {"name": "kvs", "values": [1, 2.5, None], "raw": b"\x00"}


def test_loads_value_target() -> None:
    """target=Value 时返回原始值树."""
    assert loads(b"B1\n", target=Value) == UnsignedInt8(1)


def test_loads_type_adapter_target() -> None:
    """其它目标类型通过 pydantic 验证."""
    assert loads(dumps([1, 2]), target=list[int]) == [1, 2]
    assert loads(dumps((1, "a")), target=tuple[int, str]) == (1, "a")
    assert loads(dumps(Color.RED), target=Color) is Color.RED


def test_dump_and_load_file() -> None:
    """dump()/load() 应通过文件对象读写."""
    buf = io.BytesIO()
    dump({"x": [1, 2]}, buf)
    buf.seek(0)

    assert load(buf) == {"x": [1, 2]}


def test_load_reads_one_value_from_stream() -> None:
    """load() 从流中只读取一个值."""
    buf = io.BytesIO(dumps(1) + dumps(2))

    assert load(buf, max_depth=4) == 1


def test_loads_max_depth() -> None:
    """loads() 应传递 max_depth."""
    from kvsproto import KvsDepthExceededError

    with pytest.raises(KvsDepthExceededError):
        loads(dumps([[[1]]]), max_depth=2)
