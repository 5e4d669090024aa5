"""KVS编码器实现.

该模块提供用于缓冲管理的`DataWriter`和
用于将值树序列化为KVS字节的`ValueEncoder`.
"""

import math
from collections.abc import Callable
from typing import IO

from .config import KvsConfig
from .const import (
    KVS_FIELD_MARKER,
    KVS_NEWLINE,
    MAX_LENGTH,
    MAX_SIMPLE_STRING_LENGTH,
)
from .exceptions import (
    KvsEncodeError,
    KvsInvalidSimpleStringError,
    KvsLengthOverflowError,
    KvsTypeError,
    KvsValueError,
)
from .log import logger
from .tags import CONTAINER_KINDS, INTEGER_KINDS, Kind, integer_range, tag_for
from .types import (
    Binary,
    Bool,
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
    TupleVariant,
    UnitVariant,
    Value,
    round_float32,
)

MAX_CODE_POINT = 0x10FFFF
SURROGATE_RANGE = range(0xD800, 0xE000)


def format_float64(value: float) -> str:
    """binary64 的最短可往返十进制文本 (`inf`, `-inf`, `nan`)."""
    return repr(value)


def format_float32(value: float) -> str:
    """binary32 的最短可往返十进制文本.

    从 1 位有效数字开始递增, 取第一个解析回来后舍入到同一 binary32 值的文本.
    """
    if not math.isfinite(value):
        return repr(value)
    text = repr(value)
    for precision in range(1, 10):
        candidate = f"{value:.{precision}g}"
        try:
            rounded = round_float32(float(candidate))
        except OverflowError:
            # 接近 binary32 上限时, 舍入后的候选可能越界
            continue
        if rounded == value:
            text = candidate
            break
    if not any(c in text for c in ".en"):
        # 与 repr() 保持一致: 整数值也带小数点
        text += ".0"
    return text


def encode_text(value: str) -> bytes:
    """将文本编码为 UTF-8, 孤立代理项会被拒绝."""
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise KvsValueError(f"Text is not encodable as UTF-8: {e}") from e


class DataWriter:
    """KVS数据的缓冲写入器.

    所有写入先累积在内存中, 编码成功后一次性交给调用方,
    失败的编码不会向输出写入部分数据.
    """

    __slots__ = ("_buffer",)

    _buffer: bytearray

    def __init__(self) -> None:
        self._buffer = bytearray()

    def get_bytes(self) -> bytes:
        """返回累积的字节."""
        return bytes(self._buffer)

    def write_indicator(self, kind: Kind) -> None:
        """写入指示符字节."""
        self._buffer.append(tag_for(kind))

    def write_line(self, data: bytes) -> None:
        """写入内容并以换行符结束."""
        self._buffer.extend(data)
        self._buffer.append(KVS_NEWLINE)

    def write_length(self, length: int) -> None:
        """写入十进制长度/计数行."""
        if length > MAX_LENGTH:
            raise KvsLengthOverflowError(
                f"Length {length} exceeds the 32-bit length field"
            )
        self.write_line(str(length).encode("ascii"))

    def write_token(self, name: str) -> None:
        """写入名称标记 (结构体/枚举/变体/字段名)."""
        self.write_line(self.check_simple_text(name, "Name token"))

    def write_payload(self, data: bytes) -> None:
        """写入定长载荷及其终止换行符."""
        self.write_line(data)

    def write_field_marker(self) -> None:
        """写入结构体字段标记 (`]`)."""
        self._buffer.append(KVS_FIELD_MARKER)

    @staticmethod
    def check_simple_text(value: str, what: str) -> bytes:
        """检查并编码不含换行、不超过 8192 字节的文本."""
        data = encode_text(value)
        if len(data) > MAX_SIMPLE_STRING_LENGTH:
            raise KvsInvalidSimpleStringError(
                f"{what} is {len(data)} bytes, "
                f"exceeds limit of {MAX_SIMPLE_STRING_LENGTH}"
            )
        if KVS_NEWLINE in data:
            raise KvsInvalidSimpleStringError(f"{what} must not contain a newline")
        return data


class ValueEncoder:
    """递归的值树编码器.

    按值种类分发到对应的写入方法; 种类集合是封闭的, 每种恰好一个分支.
    """

    __slots__ = ("_config", "_dispatch", "_writer")

    _writer: DataWriter
    _config: KvsConfig
    _dispatch: dict[Kind, Callable[[Value, int], None]]

    def __init__(self, config: KvsConfig | None = None):
        self._config = config or KvsConfig()
        self._writer = DataWriter()
        self._dispatch = {
            Kind.SIMPLE_STRING: self._write_simple_string,
            Kind.STRING: self._write_string,
            Kind.IDENTIFIER: self._write_identifier,
            Kind.CHARACTER: self._write_character,
            Kind.BINARY: self._write_binary,
            Kind.FLOAT32: self._write_float,
            Kind.FLOAT64: self._write_float,
            Kind.FALSE: self._write_bare,
            Kind.TRUE: self._write_bare,
            Kind.NIL: self._write_bare,
            Kind.UNIT_VARIANT: self._write_unit_variant,
            Kind.TUPLE_VARIANT: self._write_tuple_variant,
            Kind.STRUCT_VARIANT: self._write_struct_variant,
            Kind.SEQUENCE: self._write_items,
            Kind.TUPLE: self._write_items,
            Kind.NAMED_TUPLE: self._write_named_tuple,
            Kind.MAP: self._write_map,
            Kind.STRUCT: self._write_struct,
        }
        for kind in INTEGER_KINDS:
            self._dispatch[kind] = self._write_integer

    def encode(self, value: Value) -> bytes:
        """编码入口."""
        try:
            self.encode_value(value, 0)
            return self._writer.get_bytes()
        except KvsEncodeError as e:
            logger.error("Encoding failed: %s", e)
            raise

    def encode_to(self, value: Value, sink: IO[bytes]) -> None:
        """编码并一次性写入输出."""
        sink.write(self.encode(value))

    def encode_value(self, value: Value, depth: int) -> None:
        """编码单个值 (用于递归).

        Args:
            value: 要编码的值.
            depth: 外层容器的数量 (顶层值为 0).

        Raises:
            KvsTypeError: 如果对象不是值.
            KvsValueError: 如果嵌套过深或载荷超出范围.
        """
        if not isinstance(value, Value):
            raise KvsTypeError(f"Cannot encode type: {type(value).__name__}")
        if value.kind in CONTAINER_KINDS and depth >= self._config.max_depth:
            # 与解码器相同: 第 max_depth + 1 层容器被拒绝
            raise KvsValueError(
                f"Value nesting exceeds max depth {self._config.max_depth}"
            )
        self._writer.write_indicator(value.kind)
        self._dispatch[value.kind](value, depth)

    # --- 标量 ---

    def _write_simple_string(self, value: Value, depth: int) -> None:
        assert isinstance(value, SimpleString)
        self._writer.write_line(
            self._writer.check_simple_text(value.value, "SimpleString")
        )

    def _write_identifier(self, value: Value, depth: int) -> None:
        assert isinstance(value, Identifier)
        self._writer.write_line(
            self._writer.check_simple_text(value.value, "Identifier")
        )

    def _write_string(self, value: Value, depth: int) -> None:
        assert isinstance(value, String)
        data = encode_text(value.value)
        self._writer.write_length(len(data))
        self._writer.write_payload(data)

    def _write_binary(self, value: Value, depth: int) -> None:
        assert isinstance(value, Binary)
        self._writer.write_length(len(value.value))
        self._writer.write_payload(value.value)

    def _write_character(self, value: Value, depth: int) -> None:
        assert isinstance(value, Character)
        code_point = value.code_point
        if not 0 <= code_point <= MAX_CODE_POINT or code_point in SURROGATE_RANGE:
            raise KvsValueError(f"Code point {code_point:#x} is not a Unicode scalar")
        self._writer.write_line(str(code_point).encode("ascii"))

    def _write_integer(self, value: Value, depth: int) -> None:
        assert isinstance(value, Integer)
        low, high = integer_range(value.kind)
        if not low <= value.value <= high:
            raise KvsValueError(
                f"{value.kind.value} out of range [{low}, {high}]: {value.value}"
            )
        self._writer.write_line(str(value.value).encode("ascii"))

    def _write_float(self, value: Value, depth: int) -> None:
        assert isinstance(value, Float)
        if value.kind is Kind.FLOAT32:
            try:
                round_float32(value.value)
            except OverflowError:
                raise KvsValueError(
                    f"Float32 out of range: {value.value!r}"
                ) from None
            text = format_float32(value.value)
        else:
            text = format_float64(value.value)
        self._writer.write_line(text.encode("ascii"))

    def _write_bare(self, value: Value, depth: int) -> None:
        # Bool 和 Nil 只有指示符
        assert isinstance(value, Bool | Nil)
        self._writer.write_line(b"")

    # --- 枚举变体 ---

    def _write_unit_variant(self, value: Value, depth: int) -> None:
        assert isinstance(value, UnitVariant)
        self._writer.write_token(value.enum)
        self._writer.write_token(value.variant)

    def _write_tuple_variant(self, value: Value, depth: int) -> None:
        assert isinstance(value, TupleVariant)
        self._writer.write_length(len(value.items))
        self._writer.write_token(value.enum)
        self._writer.write_token(value.variant)
        for item in value.items:
            self.encode_value(item, depth + 1)

    def _write_struct_variant(self, value: Value, depth: int) -> None:
        assert isinstance(value, StructVariant)
        self._writer.write_length(len(value.fields))
        self._writer.write_token(value.enum)
        self._writer.write_token(value.variant)
        for name, item in value.fields:
            self._writer.write_token(name)
            self.encode_value(item, depth + 1)

    # --- 容器 ---

    def _write_items(self, value: Value, depth: int) -> None:
        assert isinstance(value, Sequence | Tuple)
        self._writer.write_length(len(value.items))
        for item in value.items:
            self.encode_value(item, depth + 1)

    def _write_named_tuple(self, value: Value, depth: int) -> None:
        assert isinstance(value, NamedTuple)
        self._writer.write_length(len(value.items))
        self._writer.write_token(value.name)
        for item in value.items:
            self.encode_value(item, depth + 1)

    def _write_map(self, value: Value, depth: int) -> None:
        assert isinstance(value, Map)
        self._writer.write_length(len(value.pairs))
        for key, item in value.pairs:
            self.encode_value(key, depth + 1)
            self.encode_value(item, depth + 1)

    def _write_struct(self, value: Value, depth: int) -> None:
        assert isinstance(value, Struct)
        self._writer.write_length(len(value.fields))
        self._writer.write_token(value.name)
        for name, item in value.fields:
            self._writer.write_field_marker()
            self._writer.write_token(name)
            self.encode_value(item, depth + 1)
