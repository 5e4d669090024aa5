"""KVS 结构体定义模块."""

import enum
import types as stdlib_types
from typing import (
    Any,
    ClassVar,
    TypeVar,
    Union,
    cast,
    get_args,
    get_origin,
)

from pydantic import BaseModel, Field, model_validator
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined
from typing_extensions import Self, dataclass_transform

from .convert import field_kvs_type, freeze_key, kvs_enum_of, kvs_name_of, to_python
from .exceptions import KvsDecodeError
from .options import KvsOption
from .types import (
    Binary,
    Character,
    Float,
    Identifier,
    Integer,
    Map,
    NamedTuple,
    Nil,
    Sequence,
    SimpleString,
    String,
    Struct,
    StructVariant,
    Tuple,
    UnitVariant,
    Value,
)

S = TypeVar("S", bound="KvsStruct")

# 可以通过 kvs_type 强制指定的标量线上类型
_SCALAR_TYPES = (
    SimpleString,
    String,
    Identifier,
    Character,
    Binary,
    Integer,
    Float,
)


def KvsField(
    default: Any = PydanticUndefined,
    *,
    kvs_type: type[Value] | None = None,
    default_factory: Any | None = None,
    alias: str | None = None,
) -> Any:
    """创建 KVS 结构体字段配置.

    这是一个 Pydantic `Field` 的包装函数, 用于注入线上类型元数据.
    没有使用 `KvsField` 的字段按值的 Python 类型推断线上类型
    (`int` -> `SignedInt64`, `str` -> `SimpleString` 等).

    Args:
        default: 字段的静态默认值.
            如果未提供此参数且未提供 `default_factory`, 则该字段在初始化时为**必填**.
        kvs_type: [可选] 显式指定标量的线上类型, 覆盖默认推断.
            例如: 指定 `UnsignedInt8` 可强制编码为 `B`. 对 `list`/`tuple`/`dict`
            字段, 该类型作用于每个元素 (映射则作用于值).
        default_factory: 用于生成默认值的无参可调用对象.
            对于可变类型 (如 `list`, `dict`), **必须**使用此参数而不是 `default`.
        alias: 线上使用的字段名 (默认为属性名).

    Returns:
        Any: 包含 KVS 元数据的 Pydantic FieldInfo 对象.

    Raises:
        TypeError: 如果 `kvs_type` 不是标量值类型.

    Examples:
        >>> from kvsproto import KvsStruct, KvsField, UnsignedInt8
        >>> class Pixel(KvsStruct):
        ...     level: int = KvsField(kvs_type=UnsignedInt8)
        ...     label: str = KvsField("none")
        ...     tags: list[str] = KvsField(default_factory=list)
    """
    if kvs_type is not None and not (
        isinstance(kvs_type, type) and issubclass(kvs_type, _SCALAR_TYPES)
    ):
        raise TypeError(f"Invalid kvs_type: {kvs_type!r}")

    kwargs: dict[str, Any] = {
        "json_schema_extra": {"kvs_type": kvs_type},
    }

    if default is not PydanticUndefined:
        kwargs["default"] = default

    if default_factory is not None:
        kwargs["default_factory"] = default_factory

    if alias is not None:
        kwargs["alias"] = alias

    return cast(Any, Field)(**kwargs)


class KvsModelField:
    """表示一个 KvsStruct 模型字段的元数据."""

    __slots__ = ("annotation", "kvs_type", "name", "wire_name")

    def __init__(
        self,
        name: str,
        wire_name: str,
        annotation: Any,
        kvs_type: type[Value] | None,
    ):
        self.name = name
        self.wire_name = wire_name
        self.annotation = annotation
        self.kvs_type = kvs_type

    @classmethod
    def from_field_info(cls, name: str, field_info: FieldInfo) -> Self:
        """从 FieldInfo 创建 KvsModelField."""
        return cls(
            name,
            field_info.alias or name,
            field_info.annotation,
            field_kvs_type(field_info),
        )


def prepare_fields(fields: dict[str, FieldInfo]) -> dict[str, KvsModelField]:
    """准备线上字段映射 (按线上名称索引, 保持声明顺序).

    显式排除 (`exclude=True`) 的字段不参与编解码.
    """
    kvs_fields = {}
    for name, field_info in fields.items():
        if field_info.exclude is True:
            continue
        model_field = KvsModelField.from_field_info(name, field_info)
        if model_field.wire_name in kvs_fields:
            raise ValueError(f"Duplicate wire field name: {model_field.wire_name!r}")
        kvs_fields[model_field.wire_name] = model_field
    return kvs_fields


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is stdlib_types.UnionType:
        args = get_args(annotation)
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return non_none[0], len(non_none) != len(args)
    return annotation, False


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _model_for_variant(annotation: Any, value: Value) -> type[BaseModel] | None:
    """在 `A | B | ...` 中查找与结构体/变体名称匹配的模型."""
    origin = get_origin(annotation)
    if origin is not Union and origin is not stdlib_types.UnionType:
        return None
    for arg in get_args(annotation):
        if not _is_model(arg):
            continue
        if isinstance(value, StructVariant):
            if kvs_enum_of(arg) == value.enum and kvs_name_of(arg) == value.variant:
                return cast(type[BaseModel], arg)
        elif isinstance(value, Struct):
            if kvs_enum_of(arg) is None and kvs_name_of(arg) == value.name:
                return cast(type[BaseModel], arg)
    return None


def value_for_annotation(annotation: Any, value: Value, loc: list[str | int]) -> Any:
    """按类型注解将值转换为 pydantic 可验证的输入.

    结构体和枚举会校验线上的名称, 其它值交给 `to_python` 处理.

    Raises:
        KvsDecodeError: 结构体/枚举名称或值种类不匹配.
    """
    if isinstance(value, Nil):
        return None

    annotation, _ = _unwrap_optional(annotation)

    if isinstance(value, Struct | StructVariant):
        model = _model_for_variant(annotation, value)
        if model is not None:
            # 返回实例, 避免 pydantic 在联合类型中按字段重新猜测
            return model.model_validate(model_input(model, value, loc))

    origin = get_origin(annotation)

    if _is_model(annotation):
        return model_input(annotation, value, loc)

    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        if isinstance(value, UnitVariant):
            return _enum_member(annotation, value, loc)
        return to_python(value)

    if isinstance(value, Sequence | Tuple | NamedTuple):
        args = get_args(annotation)
        if origin is tuple and args and args[-1] is not Ellipsis:
            items = [
                value_for_annotation(arg, item, [*loc, i])
                for i, (arg, item) in enumerate(zip(args, value.items))
            ]
            # 多余的元素交给 pydantic 报告长度错误
            items.extend(to_python(item) for item in value.items[len(args) :])
        else:
            item_type = args[0] if args else Any
            items = [
                value_for_annotation(item_type, item, [*loc, i])
                for i, item in enumerate(value.items)
            ]
        if isinstance(value, Sequence):
            return items
        return tuple(items)

    if isinstance(value, Map):
        args = get_args(annotation)
        key_type, item_type = args if len(args) == 2 else (Any, Any)
        return {
            freeze_key(value_for_annotation(key_type, k, [*loc, i])): (
                value_for_annotation(item_type, v, [*loc, i])
            )
            for i, (k, v) in enumerate(value.pairs)
        }

    return to_python(value)


def _enum_member(cls: type[enum.Enum], value: UnitVariant, loc: list[str | int]) -> Any:
    expected = kvs_name_of(cls)
    if value.enum != expected:
        raise KvsDecodeError(
            f"Expected enum {expected!r}, got {value.enum!r}", loc=list(loc)
        )
    try:
        return cls[value.variant]
    except KeyError:
        raise KvsDecodeError(
            f"Unknown variant {value.variant!r} of enum {expected!r}", loc=list(loc)
        ) from None


def model_input(
    cls: type[BaseModel], value: Value, loc: list[str | int] | None = None
) -> dict[str, Any]:
    """将结构体值转换为模型的验证输入, 同时校验结构体 (及枚举/变体) 名称.

    Args:
        cls: 目标模型.
        value: `Struct` 或 (当模型声明了 `__kvs_enum__` 时) `StructVariant`.
        loc: 当前位置路径.

    Raises:
        KvsDecodeError: 名称或值种类不匹配.
    """
    loc = loc or []
    name = kvs_name_of(cls)
    enum_name = kvs_enum_of(cls)

    if enum_name is not None:
        if not isinstance(value, StructVariant):
            raise KvsDecodeError(
                f"Expected StructVariant {enum_name}::{name}, "
                f"got {value.kind.value}",
                loc=list(loc),
            )
        if value.enum != enum_name or value.variant != name:
            raise KvsDecodeError(
                f"Expected variant {enum_name}::{name}, "
                f"got {value.enum}::{value.variant}",
                loc=list(loc),
            )
    else:
        if not isinstance(value, Struct):
            raise KvsDecodeError(
                f"Expected Struct {name!r}, got {value.kind.value}", loc=list(loc)
            )
        if value.name != name:
            raise KvsDecodeError(
                f"Expected struct {name!r}, got {value.name!r}", loc=list(loc)
            )

    kvs_fields = getattr(cls, "__kvs_fields__", None)
    if kvs_fields is None:
        kvs_fields = prepare_fields(cls.model_fields)

    result: dict[str, Any] = {}
    for field_name, item in value.fields:
        model_field = kvs_fields.get(field_name)
        annotation = model_field.annotation if model_field is not None else Any
        result[field_name] = value_for_annotation(
            annotation, item, [*loc, field_name]
        )
    return result


@dataclass_transform(kw_only_default=True, field_specifiers=(KvsField,))
class KvsStructMeta(type(BaseModel)):
    """KvsStruct 的元类, 用于收集线上字段信息."""

    def __new__(  # noqa: D102
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ):
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        if name != "KvsStruct":
            cls.__kvs_fields__ = prepare_fields(cls.model_fields)
        return cls


class KvsStruct(BaseModel, metaclass=KvsStructMeta):
    """KVS 结构体基类.

    继承自 `pydantic.BaseModel`, 提供声明式的结构体定义方式.
    模型编码为 `Struct` (`}`), 字段按声明顺序写出; 声明了 `__kvs_enum__`
    的模型编码为该枚举的 `StructVariant` (`#`).

    核心特性:
        1. **声明式定义**: 使用 Python 类型注解定义字段类型.
        2. **线上名称**: `__kvs_name__` 覆盖结构体名 (默认为类名).
        3. **名称校验**: 解码时校验结构体 (及枚举/变体) 名称.
        4. **序列化/反序列化**: 提供 `model_dump_kvs()` 和 `model_validate_kvs()` 方法.

    Examples:
        **基础用法:**
        >>> from kvsproto import KvsStruct, KvsField, SignedInt32
        >>> class Point(KvsStruct):
        ...     x: int = KvsField(kvs_type=SignedInt32)
        ...     y: int = KvsField(kvs_type=SignedInt32)

        **结构体变体:**
        >>> class Move(KvsStruct):
        ...     __kvs_enum__ = "Command"
        ...     dx: int
        ...     dy: int

        **序列化与反序列化:**
        >>> data = Point(x=1, y=2).model_dump_kvs()
        >>> assert Point.model_validate_kvs(data) == Point(x=1, y=2)
    """

    __kvs_name__: ClassVar[str | None] = None
    __kvs_enum__: ClassVar[str | None] = None
    __kvs_fields__: ClassVar[dict[str, KvsModelField]] = {}

    def to_kvs_value(
        self,
        option: KvsOption = KvsOption.NONE,
        default: Any | None = None,
    ) -> Value:
        """转换为值树 (`Struct` 或 `StructVariant`)."""
        from .config import KvsConfig
        from .convert import to_value

        return to_value(self, KvsConfig.from_params(option=option, default=default))

    @classmethod
    def from_kvs_value(
        cls: type[S], value: Value, context: dict[str, Any] | None = None
    ) -> S:
        """从值树创建实例, 校验结构体名称.

        Raises:
            KvsDecodeError: 名称或值种类不匹配.
            ValidationError: 数据不符合模型定义.
        """
        return cls.model_validate(model_input(cls, value), context=context)

    def model_dump_kvs(
        self,
        option: KvsOption = KvsOption.NONE,
        default: Any | None = None,
    ) -> bytes:
        """序列化为 KVS 字节数据.

        Args:
            option: 编码选项 (如 `KvsOption.COMPACT_INT`).
            default: 自定义序列化函数, 用于处理无法默认序列化的字段值.

        Returns:
            bytes: 序列化后的二进制数据.
        """
        from .api import dumps

        return dumps(self, option=option, default=default)

    @classmethod
    def model_validate_kvs(
        cls: type[S],
        data: bytes | bytearray | memoryview | Value,
        context: dict[str, Any] | None = None,
        max_depth: int | None = None,
    ) -> S:
        """验证 KVS 数据并创建实例.

        支持从二进制数据 (bytes) 或预解析的值树 (`Value`) 创建实例.

        Args:
            data: 输入数据.
            context: 验证上下文, 传递给 pydantic 验证器.
            max_depth: 解码时的最大嵌套深度.

        Returns:
            S: 结构体实例.

        Raises:
            KvsDecodeError: 字节数据解析失败或名称不匹配.
            ValidationError: 数据结构不符合模型定义.
        """
        if isinstance(data, Value):
            return cls.from_kvs_value(data, context=context)

        from .api import loads

        return loads(data, target=cls, context=context, max_depth=max_depth)

    @model_validator(mode="before")
    @classmethod
    def _kvs_pre_validate(cls, value: Any) -> Any:
        """验证前钩子: 负责字节和值树的解码."""
        if isinstance(value, bytes | bytearray | memoryview):
            from .api import decode

            value = decode(value)

        if isinstance(value, Value):
            return model_input(cls, value)

        return value
