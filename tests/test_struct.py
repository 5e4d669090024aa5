"""测试 KvsStruct 结构体."""

import enum
import pytest
from pydantic import BaseModel, ValidationError

from kvsproto import (
    Character,
    Float32,
    KvsDecodeError,
    KvsField,
    KvsStruct,
    SignedInt32,
    SimpleString,
    String,
    Struct,
    StructVariant,
    UnitVariant,
    UnsignedInt8,
    Value,
    dumps,
    encode,
    loads,
)


class Point(KvsStruct):
    """二维点."""

    x: int = KvsField(kvs_type=SignedInt32)
    y: int = KvsField(kvs_type=SignedInt32)


class Level(enum.Enum):
    """日志级别."""

    INFO = "info"
    WARN = "warn"


class Record(KvsStruct):
    """包含嵌套结构体、枚举和容器的记录."""

    __kvs_name__ = "LogRecord"

    origin: Point
    level: Level = Level.INFO
    tags: list[str] = KvsField(default_factory=list)
    scores: dict[str, float] = KvsField(default_factory=dict)
    note: str | None = None
    path: list[Point] = KvsField(default_factory=list)


class Move(KvsStruct):
    """Command 枚举的结构体变体."""

    __kvs_enum__ = "Command"

    dx: int
    dy: int


class Jump(KvsStruct):
    """Command 枚举的另一个结构体变体."""

    __kvs_enum__ = "Command"

    height: int


class Script(KvsStruct):
    """包含变体列表的结构体."""

    steps: list[Move | Jump] = KvsField(default_factory=list)


class Typed(KvsStruct):
    """强制线上类型的结构体."""

    small: int = KvsField(kvs_type=UnsignedInt8)
    ratio: float = KvsField(kvs_type=Float32)
    text: str = KvsField(kvs_type=String)
    initial: str = KvsField(kvs_type=Character)
    levels: list[int] = KvsField(default_factory=list, kvs_type=UnsignedInt8)


# --- 编码 ---


def test_struct_encodes_as_struct() -> None:
    """KvsStruct 应按声明顺序编码为 Struct."""
    assert Point(x=3, y=4).model_dump_kvs() == b"}2\nPoint\n]x\ni3\n]y\ni4\n"


def test_struct_to_kvs_value() -> None:
    """to_kvs_value() 返回值树."""
    value = Point(x=3, y=4).to_kvs_value()

    assert value == Struct("Point", {"x": SignedInt32(3), "y": SignedInt32(4)})


def test_struct_custom_name() -> None:
    """__kvs_name__ 覆盖线上结构体名."""
    value = Record(origin=Point(x=0, y=0)).to_kvs_value()

    assert isinstance(value, Struct)
    assert value.name == "LogRecord"
    assert value.get("level") == UnitVariant("Level", "INFO")


def test_struct_variant_encoding() -> None:
    """声明了 __kvs_enum__ 的模型编码为 StructVariant."""
    value = Move(dx=1, dy=-1).to_kvs_value()

    assert isinstance(value, StructVariant)
    assert (value.enum, value.variant) == ("Command", "Move")
    assert [name for name, _ in value.fields] == ["dx", "dy"]


def test_kvs_type_forces_wire_kind() -> None:
    """kvs_type 强制字段的线上类型."""
    value = Typed(small=200, ratio=0.5, text="t", initial="A", levels=[1, 2])
    tree = value.to_kvs_value()

    assert isinstance(tree, Struct)
    assert tree.get("small") == UnsignedInt8(200)
    assert tree.get("ratio") == Float32(0.5)
    assert tree.get("text") == String("t")
    assert tree.get("initial") == Character(ord("A"))
    assert encode(tree.get("levels")) == b"`2\nB1\nB2\n"  # type: ignore[arg-type]


def test_kvs_type_range_checked_at_encode() -> None:
    """强制类型的范围在编码时检查."""
    from kvsproto import KvsValueError

    with pytest.raises(KvsValueError):
        Typed(small=300, ratio=0.0, text="", initial="a").model_dump_kvs()


def test_kvs_field_rejects_container_type() -> None:
    """kvs_type 只能是标量值类型."""
    with pytest.raises(TypeError):
        KvsField(kvs_type=Struct)


# --- 解码 ---


def test_struct_round_trip() -> None:
    """嵌套结构体、枚举和容器应能往返."""
    record = Record(
        origin=Point(x=1, y=2),
        level=Level.WARN,
        tags=["a", "b"],
        scores={"p": 0.5},
        note="hi",
        path=[Point(x=3, y=4)],
    )

    assert Record.model_validate_kvs(record.model_dump_kvs()) == record


def test_struct_round_trip_optional_none() -> None:
    """Optional 字段的 None 编码为 Nil 并还原."""
    record = Record(origin=Point(x=0, y=0))

    restored = loads(dumps(record), target=Record)
    assert restored.note is None
    assert restored == record


def test_struct_variant_union_round_trip() -> None:
    """变体联合按变体名选择模型."""
    script = Script(steps=[Move(dx=1, dy=2), Jump(height=3), Move(dx=0, dy=0)])

    restored = Script.model_validate_kvs(script.model_dump_kvs())
    assert restored == script
    assert isinstance(restored.steps[1], Jump)


def test_typed_round_trip() -> None:
    """强制线上类型的字段应能往返."""
    value = Typed(small=7, ratio=0.25, text="line\nbreak", initial="é", levels=[9])

    assert Typed.model_validate_kvs(value.model_dump_kvs()) == value


def test_model_validate_kvs_from_value() -> None:
    """model_validate_kvs() 接受预解析的值树."""
    tree = Struct("Point", {"x": SignedInt32(5), "y": SignedInt32(6)})

    assert Point.model_validate_kvs(tree) == Point(x=5, y=6)


def test_model_validate_accepts_bytes() -> None:
    """model_validate() 的前置钩子可以直接解码字节."""
    data = Point(x=1, y=1).model_dump_kvs()

    assert Point.model_validate(data) == Point(x=1, y=1)


def test_struct_name_mismatch() -> None:
    """结构体名称不匹配时应抛出 KvsDecodeError."""
    data = encode(Struct("Other", {"x": SignedInt32(1), "y": SignedInt32(2)}))

    with pytest.raises(KvsDecodeError, match="Expected struct 'Point'"):
        Point.model_validate_kvs(data)


def test_struct_kind_mismatch() -> None:
    """期望结构体却得到其它值时应抛出 KvsDecodeError."""
    with pytest.raises(KvsDecodeError, match="Expected Struct"):
        Point.model_validate_kvs(encode(SimpleString("Point")))


def test_variant_name_mismatch() -> None:
    """变体名称不匹配时应抛出 KvsDecodeError."""
    data = encode(StructVariant("Command", "Jump", {"dx": SignedInt32(1)}))

    with pytest.raises(KvsDecodeError, match="Expected variant Command::Move"):
        Move.model_validate_kvs(data)


def test_nested_name_mismatch_has_location() -> None:
    """嵌套结构体名称不匹配时错误应携带字段路径."""
    tree = Struct(
        "LogRecord",
        {"origin": Struct("Pt", {"x": SignedInt32(1), "y": SignedInt32(1)})},
    )

    with pytest.raises(KvsDecodeError) as exc_info:
        Record.model_validate_kvs(tree)
    assert exc_info.value.loc == ["origin"]


def test_enum_name_mismatch() -> None:
    """枚举名称不匹配时应抛出 KvsDecodeError."""
    tree = Struct(
        "LogRecord",
        {
            "origin": Struct("Point", {"x": SignedInt32(1), "y": SignedInt32(1)}),
            "level": UnitVariant("Severity", "INFO"),
        },
    )

    with pytest.raises(KvsDecodeError, match="Expected enum 'Level'"):
        Record.model_validate_kvs(tree)


def test_unknown_enum_variant() -> None:
    """未知的变体名应抛出 KvsDecodeError."""
    tree = Struct(
        "LogRecord",
        {
            "origin": Struct("Point", {"x": SignedInt32(1), "y": SignedInt32(1)}),
            "level": UnitVariant("Level", "DEBUG"),
        },
    )

    with pytest.raises(KvsDecodeError, match="Unknown variant"):
        Record.model_validate_kvs(tree)


def test_validation_error_on_missing_field() -> None:
    """缺少必填字段时由 pydantic 报告验证错误."""
    data = encode(Struct("Point", {"x": SignedInt32(1)}))

    with pytest.raises(ValidationError):
        Point.model_validate_kvs(data)


def test_plain_pydantic_model() -> None:
    """普通 pydantic 模型也可以编解码."""

    class Plain(BaseModel):
        a: int
        b: str

    data = dumps(Plain(a=1, b="x"))

    assert data == b"}2\nPlain\n]a\nd1\n]b\n$x\n"
    assert loads(data, target=Plain) == Plain(a=1, b="x")


def test_loads_value_tree_of_struct() -> None:
    """target=Value 时结构体保持为值树."""
    value = loads(Point(x=1, y=2).model_dump_kvs(), target=Value)

    assert isinstance(value, Struct)
    assert value.name == "Point"
