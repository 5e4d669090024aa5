"""KVS数据类型模块.

本模块定义了协议可表示的全部值 (Value) 变体:
标量 (整数, 浮点, 字符, 布尔), 文本与二进制, 以及可任意嵌套的容器和枚举变体.

所有值都是不可变、可哈希的数据类, 容器以元组形式独占持有其子值,
因此值树既不共享节点也不存在环.
"""

import math
import struct
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, cast

from .exceptions import KvsTypeError, KvsValueError
from .tags import Kind

_PACK_d = struct.Struct(">d").pack
_STRUCT_f = struct.Struct(">f")


def _check_str(cls_name: str, attr: str, value: Any) -> None:
    if not isinstance(value, str):
        raise KvsTypeError(
            f"{cls_name}.{attr} must be str, got {type(value).__name__}"
        )


def _check_values(cls_name: str, items: Iterable[Any]) -> tuple["Value", ...]:
    result = tuple(items)
    for item in result:
        if not isinstance(item, Value):
            raise KvsTypeError(
                f"{cls_name} elements must be Value, got {type(item).__name__}"
            )
    return result


def _check_fields(
    cls_name: str, fields: Iterable[Any] | Mapping[str, Any]
) -> tuple[tuple[str, "Value"], ...]:
    pairs = fields.items() if isinstance(fields, Mapping) else fields
    result: list[tuple[str, Value]] = []
    for pair in pairs:
        name, value = pair
        _check_str(cls_name, "field name", name)
        if not isinstance(value, Value):
            raise KvsTypeError(
                f"{cls_name} field {name!r} must be Value, got {type(value).__name__}"
            )
        result.append((name, value))
    return tuple(result)


def round_float32(value: float) -> float:
    """将浮点数舍入为最近的 binary32 值.

    Raises:
        OverflowError: 有限值超出 binary32 范围.
    """
    return cast(float, _STRUCT_f.unpack(_STRUCT_f.pack(value))[0])


@dataclass(frozen=True)
class Value:
    """所有值变体的基类.

    通常用户不直接使用此类, 而是使用具体的子类 (如 `SimpleString`, `Struct`).
    """

    KIND: ClassVar[Kind]

    @property
    def kind(self) -> Kind:
        """值种类 (决定指示符字节)."""
        return self.KIND


# --- 文本与二进制 ---


@dataclass(frozen=True)
class SimpleString(Value):
    """短字符串 (`$`).

    UTF-8 编码后不超过 8192 字节且不含换行符; 编码器会检查这两个约束.
    """

    KIND = Kind.SIMPLE_STRING

    value: str

    def __post_init__(self) -> None:
        _check_str("SimpleString", "value", self.value)


@dataclass(frozen=True)
class String(Value):
    """带长度前缀的字符串 (`&`), 可包含换行符."""

    KIND = Kind.STRING

    value: str

    def __post_init__(self) -> None:
        _check_str("String", "value", self.value)


@dataclass(frozen=True)
class Identifier(Value):
    """标识符 (`=`), 命名枚举/变体/字段的文本."""

    KIND = Kind.IDENTIFIER

    value: str

    def __post_init__(self) -> None:
        _check_str("Identifier", "value", self.value)


@dataclass(frozen=True)
class Character(Value):
    """单个 Unicode 标量值 (`c`), 以码点存储.

    码点的合法性 (0..0x10FFFF 且不在代理区) 由编码器检查,
    因此可以构造越界的字符来测试错误路径.
    """

    KIND = Kind.CHARACTER

    code_point: int

    def __post_init__(self) -> None:
        if isinstance(self.code_point, bool) or not isinstance(self.code_point, int):
            raise KvsTypeError(
                f"Character.code_point must be int, got {type(self.code_point).__name__}"
            )

    @classmethod
    def from_char(cls, char: str) -> "Character":
        """从单字符字符串创建."""
        if not isinstance(char, str) or len(char) != 1:
            raise KvsTypeError(f"Expected a single character, got {char!r}")
        return cls(ord(char))

    @property
    def char(self) -> str:
        """对应的单字符字符串."""
        return chr(self.code_point)


@dataclass(frozen=True)
class Binary(Value):
    """原始字节序列 (`%`)."""

    KIND = Kind.BINARY

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, bytes | bytearray | memoryview):
            raise KvsTypeError(
                f"Binary.value must be bytes, got {type(self.value).__name__}"
            )
        # 复制出独立的 bytes, 值不引用调用方的缓冲区
        object.__setattr__(self, "value", bytes(self.value))


# --- 整数 ---


@dataclass(frozen=True)
class Integer(Value):
    """整数类型 (抽象基类).

    在构造值时应使用具体的子类 (`SignedInt8` ... `UnsignedInt128`)
    明确宽度; 取值范围在编码时检查.
    """

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise KvsTypeError(
                f"{type(self).__name__}.value must be int, "
                f"got {type(self.value).__name__}"
            )


@dataclass(frozen=True)
class SignedInt8(Integer):
    """8 位有符号整数 (`b`). 范围: -128 到 127."""

    KIND = Kind.INT8


@dataclass(frozen=True)
class SignedInt16(Integer):
    """16 位有符号整数 (`w`)."""

    KIND = Kind.INT16


@dataclass(frozen=True)
class SignedInt32(Integer):
    """32 位有符号整数 (`i`)."""

    KIND = Kind.INT32


@dataclass(frozen=True)
class SignedInt64(Integer):
    """64 位有符号整数 (`d`)."""

    KIND = Kind.INT64


@dataclass(frozen=True)
class SignedInt128(Integer):
    """128 位有符号整数 (`q`)."""

    KIND = Kind.INT128


@dataclass(frozen=True)
class UnsignedInt8(Integer):
    """8 位无符号整数 (`B`). 范围: 0 到 255."""

    KIND = Kind.UINT8


@dataclass(frozen=True)
class UnsignedInt16(Integer):
    """16 位无符号整数 (`W`)."""

    KIND = Kind.UINT16


@dataclass(frozen=True)
class UnsignedInt32(Integer):
    """32 位无符号整数 (`I`)."""

    KIND = Kind.UINT32


@dataclass(frozen=True)
class UnsignedInt64(Integer):
    """64 位无符号整数 (`D`)."""

    KIND = Kind.UINT64


@dataclass(frozen=True)
class UnsignedInt128(Integer):
    """128 位无符号整数 (`Q`)."""

    KIND = Kind.UINT128


# --- 浮点数 ---


@dataclass(frozen=True, eq=False)
class Float(Value):
    """浮点类型 (抽象基类).

    相等性按 IEEE-754 位模式比较, 因此 `nan` 与 `nan` 相等, `0.0` 与 `-0.0` 不等.
    """

    value: float

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int | float):
            raise KvsTypeError(
                f"{type(self).__name__}.value must be float, "
                f"got {type(self.value).__name__}"
            )
        try:
            value = float(self.value)
        except OverflowError:
            raise KvsValueError(
                f"{type(self).__name__}.value out of float range"
            ) from None
        if math.isnan(value):
            # 文本形式不保留 NaN 的符号和载荷
            value = math.nan
        object.__setattr__(self, "value", value)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return _PACK_d(self.value) == _PACK_d(cast(Float, other).value)

    def __hash__(self) -> int:
        return hash((type(self), _PACK_d(self.value)))


@dataclass(frozen=True, eq=False)
class Float32(Float):
    """IEEE-754 binary32 浮点数 (`f`).

    载荷在构造时舍入到最近的 binary32 值; 超出 binary32 范围的有限值保持原样,
    由编码器拒绝.
    """

    KIND = Kind.FLOAT32

    def __post_init__(self) -> None:
        super().__post_init__()
        try:
            object.__setattr__(self, "value", round_float32(self.value))
        except OverflowError:
            pass


@dataclass(frozen=True, eq=False)
class Float64(Float):
    """IEEE-754 binary64 浮点数 (`F`)."""

    KIND = Kind.FLOAT64


# --- 布尔与空值 ---


@dataclass(frozen=True)
class Bool(Value):
    """布尔值. 指示符本身 (`0`/`1`) 即为值."""

    value: bool

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise KvsTypeError(
                f"Bool.value must be bool, got {type(self.value).__name__}"
            )

    @property
    def kind(self) -> Kind:
        """`Kind.TRUE` 或 `Kind.FALSE`."""
        return Kind.TRUE if self.value else Kind.FALSE


@dataclass(frozen=True)
class Nil(Value):
    """空值 (`!`), 没有载荷."""

    KIND = Kind.NIL


# --- 枚举变体 ---


@dataclass(frozen=True)
class UnitVariant(Value):
    """无载荷的枚举变体 (`@`)."""

    KIND = Kind.UNIT_VARIANT

    enum: str
    variant: str

    def __post_init__(self) -> None:
        _check_str("UnitVariant", "enum", self.enum)
        _check_str("UnitVariant", "variant", self.variant)


@dataclass(frozen=True)
class TupleVariant(Value):
    """携带位置参数的枚举变体 (`^`)."""

    KIND = Kind.TUPLE_VARIANT

    enum: str
    variant: str
    items: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        _check_str("TupleVariant", "enum", self.enum)
        _check_str("TupleVariant", "variant", self.variant)
        object.__setattr__(self, "items", _check_values("TupleVariant", self.items))


@dataclass(frozen=True)
class StructVariant(Value):
    """携带具名字段的枚举变体 (`#`)."""

    KIND = Kind.STRUCT_VARIANT

    enum: str
    variant: str
    fields: tuple[tuple[str, Value], ...] = ()

    def __post_init__(self) -> None:
        _check_str("StructVariant", "enum", self.enum)
        _check_str("StructVariant", "variant", self.variant)
        object.__setattr__(
            self, "fields", _check_fields("StructVariant", self.fields)
        )


# --- 容器 ---


@dataclass(frozen=True)
class Sequence(Value):
    """同质序列 (`` ` ``).

    元素类型的一致性不由线格式强制.
    """

    KIND = Kind.SEQUENCE

    items: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", _check_values("Sequence", self.items))


@dataclass(frozen=True)
class Tuple(Value):
    """异质元组 (`~`)."""

    KIND = Kind.TUPLE

    items: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", _check_values("Tuple", self.items))


@dataclass(frozen=True)
class NamedTuple(Value):
    """具名元组结构体 (`:`), 字段按位置寻址."""

    KIND = Kind.NAMED_TUPLE

    name: str
    items: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        _check_str("NamedTuple", "name", self.name)
        object.__setattr__(self, "items", _check_values("NamedTuple", self.items))


@dataclass(frozen=True)
class Map(Value):
    """有序键值对映射 (`{`).

    键可以是任意值 (包括容器), 保持写入顺序.
    """

    KIND = Kind.MAP

    pairs: tuple[tuple[Value, Value], ...] = field(default=())

    def __post_init__(self) -> None:
        pairs = self.pairs.items() if isinstance(self.pairs, Mapping) else self.pairs
        result: list[tuple[Value, Value]] = []
        for pair in pairs:
            key, value = pair
            if not isinstance(key, Value) or not isinstance(value, Value):
                raise KvsTypeError("Map keys and values must be Value")
            result.append((key, value))
        object.__setattr__(self, "pairs", tuple(result))


@dataclass(frozen=True)
class Struct(Value):
    """具名结构体 (`}`), 字段按声明顺序排列."""

    KIND = Kind.STRUCT

    name: str
    fields: tuple[tuple[str, Value], ...] = ()

    def __post_init__(self) -> None:
        _check_str("Struct", "name", self.name)
        object.__setattr__(self, "fields", _check_fields("Struct", self.fields))

    def get(self, name: str, default: Value | None = None) -> Value | None:
        """按名称获取第一个匹配字段的值."""
        for field_name, value in self.fields:
            if field_name == name:
                return value
        return default


INTEGER_TYPES: dict[Kind, type[Integer]] = {
    cls.KIND: cls
    for cls in (
        SignedInt8,
        SignedInt16,
        SignedInt32,
        SignedInt64,
        SignedInt128,
        UnsignedInt8,
        UnsignedInt16,
        UnsignedInt32,
        UnsignedInt64,
        UnsignedInt128,
    )
}
