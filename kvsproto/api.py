"""KVS API模块.

提供值树层面的 `encode`, `decode`, `iter_decode`,
以及面向 Python 对象的高级接口 `dumps`, `loads`, `dump`, `load`.
"""

from collections.abc import Iterator
from typing import IO, Any, TypeVar, overload

from pydantic import BaseModel, TypeAdapter

from .config import KvsConfig
from .convert import to_python, to_value
from .decoder import GenericDecoder
from .encoder import ValueEncoder
from .options import KvsOption
from .reader import ByteSource, DataReader
from .struct import KvsStruct, model_input, value_for_annotation
from .types import Value

T = TypeVar("T", bound=KvsStruct)


def encode(
    value: Value,
    sink: IO[bytes] | None = None,
    *,
    max_depth: int | None = None,
) -> bytes:
    """将值树编码为 KVS 字节.

    Args:
        value: 要编码的值.
        sink: [可选] 输出流. 编码成功后整段字节一次性写入;
            编码失败时不会写入任何内容.
        max_depth: 最大嵌套深度.

    Returns:
        bytes: 编码后的字节 (即使同时写入了 `sink`).

    Raises:
        KvsTypeError: `value` 不是 `Value`.
        KvsValueError: 载荷超出其声明宽度的范围, 或嵌套过深.
        KvsInvalidSimpleStringError: SimpleString 或名称过长或包含换行符.
        KvsLengthOverflowError: 长度超过 2^32-1.

    Examples:
        >>> from kvsproto import encode, UnsignedInt8
        >>> encode(UnsignedInt8(255))
        b'B255\\n'
    """
    data = ValueEncoder(KvsConfig.from_params(max_depth=max_depth)).encode(value)
    if sink is not None:
        sink.write(data)
    return data


def decode(
    source: ByteSource,
    *,
    max_depth: int | None = None,
    chunk_size: int | None = None,
) -> Value:
    """从字节或二进制流中解码一个顶层值.

    对于流, 只消费该值占用的字节 (按块读取时可能预读更多).

    Args:
        source: 输入的二进制数据或流.
        max_depth: 最大嵌套深度.
        chunk_size: 从流中读取时每次拉取的字节数.

    Returns:
        Value: 解码得到的值树.

    Raises:
        KvsEndOfInputError: 输入为空.
        KvsDecodeError: 数据格式错误或被截断.
    """
    config = KvsConfig.from_params(max_depth=max_depth, chunk_size=chunk_size)
    reader = DataReader(source, chunk_size=config.chunk_size)
    return GenericDecoder(reader, config).decode()


def iter_decode(
    source: ByteSource,
    *,
    max_depth: int | None = None,
    chunk_size: int | None = None,
) -> Iterator[Value]:
    """依次解码输入中的所有顶层值, 直到干净地到达输入末尾.

    Raises:
        KvsDecodeError: 某个值格式错误或被截断.
    """
    config = KvsConfig.from_params(max_depth=max_depth, chunk_size=chunk_size)
    reader = DataReader(source, chunk_size=config.chunk_size)
    yield from GenericDecoder(reader, config).iter_decode()


def dumps(
    obj: Any,
    option: KvsOption = KvsOption.NONE,
    default: Any | None = None,
    max_depth: int | None = None,
) -> bytes:
    """序列化对象为 KVS 字节数据.

    Args:
        obj: 要序列化的 Python 对象. 支持 `Value`, `KvsStruct` 实例,
            pydantic 模型, `dict`, `list`, `tuple`, 标量等.
        option: 序列化选项 (如 `KvsOption.COMPACT_INT`).
        default: 自定义序列化函数, 用于处理无法默认序列化的类型.
            函数签名应为 `def default(obj: Any) -> Any`.
        max_depth: 最大嵌套深度.

    Returns:
        bytes: 序列化后的二进制数据.

    Examples:
        >>> from kvsproto import dumps
        >>> dumps({"a": 1})
        b'{1\\n$a\\nd1\\n'
    """
    config = KvsConfig.from_params(option=option, default=default, max_depth=max_depth)
    return ValueEncoder(config).encode(to_value(obj, config))


def dump(
    obj: Any,
    fp: IO[bytes],
    option: KvsOption = KvsOption.NONE,
    default: Any | None = None,
    max_depth: int | None = None,
) -> None:
    """序列化对象为 KVS 字节并写入文件.

    Args:
        obj: 要序列化的对象.
        fp: 文件类对象, 必须实现 `write(bytes)` 方法.
        option: 序列化选项.
        default: 未知类型的默认处理函数.
        max_depth: 最大嵌套深度.
    """
    fp.write(dumps(obj, option=option, default=default, max_depth=max_depth))


def from_value(
    value: Value, target: Any = None, context: dict[str, Any] | None = None
) -> Any:
    """将解码得到的值树转换为目标类型 (规则同 `loads`)."""
    if target is None:
        return to_python(value)
    if target is Value:
        return value
    if isinstance(target, type) and issubclass(target, BaseModel):
        return target.model_validate(model_input(target, value), context=context)
    adapter: TypeAdapter[Any] = TypeAdapter(target)
    return adapter.validate_python(
        value_for_annotation(target, value, []), context=context
    )


@overload
def loads(
    data: bytes | bytearray | memoryview,
    target: type[T],
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> T: ...


@overload
def loads(
    data: bytes | bytearray | memoryview,
    target: type[Value],
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> Value: ...


@overload
def loads(
    data: bytes | bytearray | memoryview,
    target: Any = None,
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> Any: ...


def loads(
    data: bytes | bytearray | memoryview,
    target: Any = None,
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> Any:
    """反序列化 KVS 字节为 Python 对象.

    Args:
        data: 输入的二进制数据 (bytes, bytearray 或 memoryview).
        target: 目标类型.
            - `None` (默认): 解析为普通 Python 对象 (结构体为 `dict`).
            - `Value`: 返回原始值树.
            - `KvsStruct` 子类或其它 pydantic 模型: 校验结构体名称并验证为实例.
            - 其它类型 (如 `list[int]`): 通过 pydantic `TypeAdapter` 验证.
        context: 验证上下文, 传递给 pydantic 验证器.
        max_depth: 最大嵌套深度.

    Returns:
        目标类型的实例.

    Raises:
        KvsEndOfInputError: 输入为空.
        KvsDecodeError: 数据格式错误, 被截断, 或名称不匹配.
        ValidationError: 数据不符合目标类型.
    """
    value = decode(data, max_depth=max_depth)
    return from_value(value, target, context)


@overload
def load(
    fp: IO[bytes],
    target: type[T],
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> T: ...


@overload
def load(
    fp: IO[bytes],
    target: type[Value],
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> Value: ...


@overload
def load(
    fp: IO[bytes],
    target: Any = None,
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> Any: ...


def load(
    fp: IO[bytes],
    target: Any = None,
    *,
    context: dict[str, Any] | None = None,
    max_depth: int | None = None,
) -> Any:
    """从文件读取并反序列化一个 KVS 值.

    直接从流中按块读取, 不要求一次性读入整个文件.

    Args:
        fp: 打开的二进制文件对象.
        target: 目标类型 (同 `loads`).
        context: 验证上下文.
        max_depth: 最大嵌套深度.

    Returns:
        解析后的对象.
    """
    value = decode(fp, max_depth=max_depth)
    return from_value(value, target, context)
