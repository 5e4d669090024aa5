"""原生 Python 对象与值树之间的转换.

`to_value` 把普通 Python 对象 (以及 pydantic 模型) 映射为 `Value`,
`to_python` 把解码得到的值树还原为普通 Python 对象.
"""

import enum
from typing import Any

from pydantic import BaseModel

from .config import KvsConfig
from .const import KVS_NEWLINE, MAX_SIMPLE_STRING_LENGTH
from .encoder import encode_text
from .exceptions import KvsEncodeError, KvsTypeError, KvsValueError
from .tags import Kind, integer_range
from .types import (
    Binary,
    Bool,
    Character,
    Float,
    Float64,
    Identifier,
    Integer,
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
    UnsignedInt128,
    Value,
)

# COMPACT_INT 时按从窄到宽尝试
_COMPACT_INT_TYPES: tuple[type[Integer], ...] = (
    SignedInt8,
    SignedInt16,
    SignedInt32,
    SignedInt64,
    SignedInt128,
    UnsignedInt128,
)
_DEFAULT_INT_TYPES: tuple[type[Integer], ...] = (
    SignedInt64,
    SignedInt128,
    UnsignedInt128,
)


def kvs_name_of(cls: type) -> str:
    """结构体/变体在线上使用的名称 (`__kvs_name__` 或类名)."""
    return getattr(cls, "__kvs_name__", None) or cls.__name__


def kvs_enum_of(cls: type) -> str | None:
    """模型声明的所属枚举名 (`__kvs_enum__`), 未声明时为 None."""
    return getattr(cls, "__kvs_enum__", None)


def field_kvs_type(field_info: Any) -> type[Value] | None:
    """读取 `KvsField(kvs_type=...)` 写入的线上类型."""
    extra = getattr(field_info, "json_schema_extra", None)
    if isinstance(extra, dict):
        return extra.get("kvs_type")
    return None


class ValueConverter:
    """具有循环引用检测的原生对象转换器."""

    __slots__ = ("_config", "_converting")

    _config: KvsConfig

    def __init__(self, config: KvsConfig | None = None):
        self._config = config or KvsConfig()
        # 跟踪正在转换的容器以检测循环引用
        self._converting: set[int] = set()

    def convert(
        self, obj: Any, kvs_type: type[Value] | None = None, depth: int = 0
    ) -> Value:
        """转换单个对象.

        Args:
            obj: 要转换的对象.
            kvs_type: 强制使用的标量线上类型 (来自 `KvsField`).
            depth: 外层容器的数量.

        Raises:
            KvsEncodeError: 如果检测到循环引用.
            KvsValueError: 如果容器嵌套超过 `max_depth`.
            KvsTypeError: 如果对象无法映射且没有 `default`.
        """
        if isinstance(obj, Value):
            return obj

        if kvs_type is not None and not isinstance(obj, list | tuple | dict):
            return self._convert_typed(obj, kvs_type)

        if isinstance(obj, list | tuple | dict | BaseModel):
            obj_id = id(obj)
            if obj_id in self._converting:
                raise KvsEncodeError(f"Circular reference in {type(obj).__name__}")
            if depth >= self._config.max_depth:
                raise KvsValueError(
                    f"Value nesting exceeds max depth {self._config.max_depth}"
                )

            self._converting.add(obj_id)
            try:
                return self._convert_container(obj, kvs_type, depth + 1)
            finally:
                self._converting.discard(obj_id)

        return self._convert_primitive(obj, depth)

    def _convert_primitive(self, obj: Any, depth: int) -> Value:
        if obj is None:
            return Nil()
        if isinstance(obj, bool):
            return Bool(obj)
        if isinstance(obj, enum.Enum):
            return UnitVariant(type(obj).__name__, obj.name)
        if isinstance(obj, int):
            return self._convert_int(obj)
        if isinstance(obj, float):
            return Float64(obj)
        if isinstance(obj, str):
            return self._convert_str(obj)
        if isinstance(obj, bytes | bytearray | memoryview):
            return Binary(obj)
        if self._config.default is not None:
            return self.convert(self._config.default(obj), depth=depth)
        raise KvsTypeError(f"Cannot encode type: {type(obj).__name__}")

    def _convert_int(self, obj: int) -> Value:
        candidates = (
            _COMPACT_INT_TYPES if self._config.compact_int else _DEFAULT_INT_TYPES
        )
        for cls in candidates:
            low, high = integer_range(cls.KIND)
            if low <= obj <= high:
                return cls(obj)
        raise KvsValueError(f"Integer out of 128-bit range: {obj}")

    def _convert_str(self, obj: str) -> Value:
        if self._config.always_length_string:
            return String(obj)
        data = encode_text(obj)
        if len(data) > MAX_SIMPLE_STRING_LENGTH or KVS_NEWLINE in data:
            return String(obj)
        return SimpleString(obj)

    def _convert_typed(self, obj: Any, kvs_type: type[Value]) -> Value:
        if obj is None:
            return Nil()
        if issubclass(kvs_type, Character) and isinstance(obj, str):
            return Character.from_char(obj)
        if issubclass(kvs_type, Integer | Float | Character):
            return kvs_type(obj)  # type: ignore[call-arg]
        if issubclass(kvs_type, SimpleString | String | Identifier):
            if isinstance(obj, enum.Enum):
                obj = obj.name
            return kvs_type(obj)  # type: ignore[call-arg]
        if issubclass(kvs_type, Binary):
            if isinstance(obj, str):
                obj = encode_text(obj)
            return Binary(obj)
        raise KvsTypeError(f"kvs_type {kvs_type.__name__} is not a scalar type")

    def _convert_container(
        self, obj: Any, kvs_type: type[Value] | None, depth: int
    ) -> Value:
        if isinstance(obj, BaseModel):
            return self._convert_model(obj, depth)
        if isinstance(obj, dict):
            return Map(
                tuple(
                    (self.convert(k, depth=depth), self.convert(v, kvs_type, depth))
                    for k, v in obj.items()
                )
            )
        items = tuple(self.convert(item, kvs_type, depth) for item in obj)
        if isinstance(obj, list):
            return Sequence(items)
        if hasattr(obj, "_fields"):
            # typing.NamedTuple / collections.namedtuple
            return NamedTuple(type(obj).__name__, items)
        return Tuple(items)

    def _convert_model(self, obj: BaseModel, depth: int) -> Value:
        cls = type(obj)
        fields: list[tuple[str, Value]] = []
        for name, field_info in cls.model_fields.items():
            if field_info.exclude is True:
                continue
            wire_name = field_info.alias or name
            val = getattr(obj, name)
            item = self.convert(val, field_kvs_type(field_info), depth)
            fields.append((wire_name, item))

        enum_name = kvs_enum_of(cls)
        if enum_name is not None:
            return StructVariant(enum_name, kvs_name_of(cls), tuple(fields))
        return Struct(kvs_name_of(cls), tuple(fields))


def to_value(obj: Any, config: KvsConfig | None = None) -> Value:
    """将 Python 对象转换为值树.

    映射规则:
        - `Value` 原样返回.
        - `None` -> `Nil`, `bool` -> `Bool`, `float` -> `Float64`.
        - `int` -> `SignedInt64` (超出时依次尝试 `SignedInt128`, `UnsignedInt128`);
          设置 `KvsOption.COMPACT_INT` 时使用能容纳该值的最窄有符号宽度.
        - `str` -> `SimpleString`; 含换行、超过 8192 字节或设置了
          `KvsOption.ALWAYS_LENGTH_STRING` 时为 `String`.
        - `bytes`/`bytearray`/`memoryview` -> `Binary`.
        - `list` -> `Sequence`, 具名元组 -> `NamedTuple`, `tuple` -> `Tuple`,
          `dict` -> `Map`.
        - `enum.Enum` 成员 -> `UnitVariant(枚举类名, 成员名)`.
        - pydantic 模型 -> `Struct` (声明了 `__kvs_enum__` 时为 `StructVariant`).

    Args:
        obj: 要转换的对象.
        config: 转换配置; `config.default` 用于处理无法直接映射的对象.

    Returns:
        Value: 转换后的值树.

    Raises:
        KvsEncodeError: 循环引用.
        KvsTypeError: 不支持的类型.
        KvsValueError: 整数超出 128 位范围.
    """
    return ValueConverter(config).convert(obj)


def freeze_key(key: Any) -> Any:
    """将不可哈希的键 (list/dict) 转换为可哈希的元组."""
    if isinstance(key, list | tuple):
        return tuple(freeze_key(k) for k in key)
    if isinstance(key, dict):
        return tuple((freeze_key(k), freeze_key(v)) for k, v in key.items())
    return key


def to_python(value: Value) -> Any:
    """将值树还原为普通 Python 对象.

    - 文本类 -> `str`, `Character` -> 单字符 `str`, `Binary` -> `bytes`.
    - 整数 -> `int`, 浮点 -> `float`, `Bool` -> `bool`, `Nil` -> `None`.
    - `Sequence` -> `list`, `Tuple`/`NamedTuple` -> `tuple`.
    - `Map` -> `dict` (不可哈希的键被冻结为元组).
    - `Struct` -> `dict` (字段名 -> 值).
    - 枚举变体采用外部标记: `UnitVariant` -> 变体名,
      `TupleVariant` -> `{变体名: [...]}`, `StructVariant` -> `{变体名: {...}}`.
    """
    kind = value.kind
    if isinstance(value, SimpleString | String | Identifier):
        return value.value
    if isinstance(value, Character):
        return value.char
    if isinstance(value, Binary | Integer | Float | Bool):
        return value.value
    if kind is Kind.NIL:
        return None
    if isinstance(value, Sequence):
        return [to_python(item) for item in value.items]
    if isinstance(value, Tuple | NamedTuple):
        return tuple(to_python(item) for item in value.items)
    if isinstance(value, Map):
        return {freeze_key(to_python(k)): to_python(v) for k, v in value.pairs}
    if isinstance(value, Struct):
        return {name: to_python(item) for name, item in value.fields}
    if isinstance(value, UnitVariant):
        return value.variant
    if isinstance(value, TupleVariant):
        return {value.variant: [to_python(item) for item in value.items]}
    if isinstance(value, StructVariant):
        return {value.variant: {name: to_python(item) for name, item in value.fields}}
    raise KvsTypeError(f"Cannot convert {type(value).__name__}")


__all__ = [
    "ValueConverter",
    "field_kvs_type",
    "freeze_key",
    "kvs_enum_of",
    "kvs_name_of",
    "to_python",
    "to_value",
]
