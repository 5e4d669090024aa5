"""KVS解码器实现.

该模块提供用于无模式解析的`GenericDecoder`:
一个由标签表驱动的递归下降解析器, 从`DataReader`消费字节并构建值树,
校验每一个长度字段和终止符.
"""

import math
import re
from collections.abc import Callable, Iterator

from .config import KvsConfig
from .const import (
    KVS_FIELD_MARKER,
    KVS_NEWLINE,
    MAX_LENGTH,
    MAX_LENGTH_DIGITS,
    MAX_SCALAR_TEXT_LENGTH,
    MAX_SIMPLE_STRING_LENGTH,
)
from .exceptions import (
    KvsDecodeError,
    KvsDepthExceededError,
    KvsEndOfInputError,
    KvsInvalidUtf8Error,
    KvsLengthOverflowError,
    KvsLineTooLongError,
    KvsMalformedScalarError,
    KvsMissingTerminatorError,
    KvsSimpleStringTooLongError,
    KvsUnknownTagError,
)
from .log import get_hexdump, logger
from .reader import DataReader
from .tags import INTEGER_KINDS, Kind, integer_range, kind_for, tag_for
from .types import (
    INTEGER_TYPES,
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

# 规范十进制语法
_LENGTH_RE = re.compile(rb"0|[1-9][0-9]*")
_SIGNED_RE = re.compile(rb"0|-?[1-9][0-9]*")
_UNSIGNED_RE = re.compile(rb"0|[1-9][0-9]*")
_FLOAT_RE = re.compile(
    rb"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

MAX_CODE_POINT = 0x10FFFF


class GenericDecoder:
    """KVS数据的无模式解码器.

    根据指示符字节将输入解析为值树. 除读取器的位置和递归深度计数外没有其它状态,
    同一个读取器上可以连续解码多个顶层值.
    """

    __slots__ = ("_depth", "_dispatch", "_loc", "_max_depth", "_reader")

    _reader: DataReader
    _max_depth: int
    _depth: int
    _loc: list[str | int]
    _dispatch: dict[Kind, Callable[[Kind, int], Value]]

    def __init__(self, reader: DataReader, config: KvsConfig | None = None):
        self._reader = reader
        self._max_depth = (config or KvsConfig()).max_depth
        self._depth = 0
        # 当前正在解码的路径 (字段名或索引), 用于错误定位
        self._loc = []
        self._dispatch = {
            Kind.SIMPLE_STRING: self._read_simple_string,
            Kind.IDENTIFIER: self._read_identifier,
            Kind.STRING: self._read_string,
            Kind.BINARY: self._read_binary,
            Kind.CHARACTER: self._read_character,
            Kind.FLOAT32: self._read_float,
            Kind.FLOAT64: self._read_float,
            Kind.FALSE: self._read_bool,
            Kind.TRUE: self._read_bool,
            Kind.NIL: self._read_nil,
            Kind.UNIT_VARIANT: self._read_unit_variant,
            Kind.TUPLE_VARIANT: self._read_tuple_variant,
            Kind.STRUCT_VARIANT: self._read_struct_variant,
            Kind.SEQUENCE: self._read_items,
            Kind.TUPLE: self._read_items,
            Kind.NAMED_TUPLE: self._read_named_tuple,
            Kind.MAP: self._read_map,
            Kind.STRUCT: self._read_struct,
        }
        for kind in INTEGER_KINDS:
            self._dispatch[kind] = self._read_integer

    def decode(self, suppress_log: bool = False) -> Value:
        """解码一个顶层值.

        Raises:
            KvsEndOfInputError: 在指示符之前干净地到达输入末尾.
            KvsDecodeError: 输入格式错误或被截断.
        """
        start = self._reader.position
        if self._reader.eof:
            raise KvsEndOfInputError(start)

        if not suppress_log:
            logger.debug("[GenericDecoder] 开始解码, 偏移量 %d", start)

        try:
            self._depth = 0
            self._loc = []
            value = self.decode_one()
        except KvsDecodeError as e:
            if not suppress_log:
                logger.error("[GenericDecoder] 解码错误: %s", e)
                self._log_context(e)
            raise

        if not suppress_log:
            logger.debug(
                "[GenericDecoder] 成功解码 %s, 消耗 %d 字节",
                value.kind.value,
                self._reader.position - start,
            )
        return value

    def iter_decode(self, suppress_log: bool = False) -> Iterator[Value]:
        """依次解码所有顶层值, 直到干净地到达输入末尾."""
        while True:
            try:
                yield self.decode(suppress_log=suppress_log)
            except KvsEndOfInputError:
                return

    def decode_one(self) -> Value:
        """解码一个 (可能嵌套的) 值.

        与 `decode` 不同, 这里在指示符位置到达末尾属于截断.
        """
        offset = self._reader.position
        kind = kind_for(self._reader.read_byte(), offset)
        reader = self._dispatch.get(kind)
        if reader is None:
            # FIELD_MARKER 只能出现在结构体字段之前
            raise KvsUnknownTagError(
                tag_for(kind),
                offset,
                self._current_loc(),
                msg=f"Unexpected {kind.value} in value position",
            )
        return reader(kind, offset)

    def _log_context(self, error: KvsDecodeError) -> None:
        if error.offset is None:
            return
        # 仅在错误位置仍在缓冲区中时输出十六进制上下文
        pos = error.offset - (self._reader.position - self._reader.buffer_offset)
        if 0 <= pos <= len(self._reader.buffer):
            logger.debug(
                "[GenericDecoder] %s", get_hexdump(self._reader.buffer, pos)
            )

    def _current_loc(self) -> list[str | int]:
        return list(self._loc)

    # --- 基础读取 ---

    def _read_line(self, limit: int) -> bytes:
        return self._reader.read_until_newline(limit)

    def _read_length(self) -> int:
        """读取十进制长度/计数行."""
        offset = self._reader.position
        try:
            raw = self._read_line(MAX_LENGTH_DIGITS)
        except KvsLineTooLongError:
            raise KvsLengthOverflowError(
                f"Length field exceeds {MAX_LENGTH_DIGITS} digits",
                offset,
                self._current_loc(),
            ) from None
        if not _LENGTH_RE.fullmatch(raw):
            raise KvsLengthOverflowError(
                f"Invalid length field: {raw!r}", offset, self._current_loc()
            )
        length = int(raw)
        if length > MAX_LENGTH:
            raise KvsLengthOverflowError(
                f"Length {length} exceeds {MAX_LENGTH}", offset, self._current_loc()
            )
        return length

    def _read_text_line(self, what: str) -> str:
        """读取换行终止的 UTF-8 文本 (SimpleString, Identifier, 名称标记)."""
        offset = self._reader.position
        try:
            raw = self._read_line(MAX_SIMPLE_STRING_LENGTH)
        except KvsLineTooLongError:
            raise KvsSimpleStringTooLongError(
                f"{what} exceeds {MAX_SIMPLE_STRING_LENGTH} bytes",
                offset,
                self._current_loc(),
            ) from None
        return self._decode_utf8(raw, offset, what)

    def _read_token(self) -> str:
        return self._read_text_line("Name token")

    def _decode_utf8(self, raw: bytes, offset: int, what: str) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise KvsInvalidUtf8Error(
                f"{what} is not valid UTF-8: {e.reason}",
                offset + e.start,
                self._current_loc(),
            ) from None

    def _read_scalar_text(self, kind: Kind) -> tuple[bytes, int]:
        offset = self._reader.position
        try:
            raw = self._read_line(MAX_SCALAR_TEXT_LENGTH)
        except KvsLineTooLongError:
            raise KvsMalformedScalarError(
                kind,
                f"<more than {MAX_SCALAR_TEXT_LENGTH} bytes>",
                offset,
                self._current_loc(),
            ) from None
        return raw, offset

    def _malformed(self, kind: Kind, raw: bytes, offset: int) -> KvsMalformedScalarError:
        return KvsMalformedScalarError(
            kind, raw.decode("ascii", errors="replace"), offset, self._current_loc()
        )

    def _read_terminator(self) -> None:
        offset = self._reader.position
        byte = self._reader.read_byte()
        if byte != KVS_NEWLINE:
            raise KvsMissingTerminatorError(
                f"Expected LF terminator, found 0x{byte:02x}",
                offset,
                self._current_loc(),
            )

    def _read_sized_payload(self) -> tuple[bytes, int]:
        length = self._read_length()
        offset = self._reader.position
        data = self._reader.read_exact(length)
        self._read_terminator()
        return data, offset

    def _enter(self, offset: int) -> None:
        self._depth += 1
        if self._depth > self._max_depth:
            raise KvsDepthExceededError(
                f"Nesting exceeds max depth {self._max_depth}",
                offset,
                self._current_loc(),
            )

    def _leave(self) -> None:
        self._depth -= 1

    def _read_child(self, loc: str | int) -> Value:
        self._loc.append(loc)
        value = self.decode_one()
        self._loc.pop()
        return value

    # --- 标量 ---

    def _read_simple_string(self, kind: Kind, offset: int) -> Value:
        return SimpleString(self._read_text_line("SimpleString"))

    def _read_identifier(self, kind: Kind, offset: int) -> Value:
        return Identifier(self._read_text_line("Identifier"))

    def _read_string(self, kind: Kind, offset: int) -> Value:
        data, payload_offset = self._read_sized_payload()
        return String(self._decode_utf8(data, payload_offset, "String"))

    def _read_binary(self, kind: Kind, offset: int) -> Value:
        data, _ = self._read_sized_payload()
        return Binary(data)

    def _read_character(self, kind: Kind, offset: int) -> Value:
        raw, text_offset = self._read_scalar_text(kind)
        if not _UNSIGNED_RE.fullmatch(raw):
            raise self._malformed(kind, raw, text_offset)
        code_point = int(raw)
        if code_point > MAX_CODE_POINT or 0xD800 <= code_point <= 0xDFFF:
            raise self._malformed(kind, raw, text_offset)
        return Character(code_point)

    def _read_integer(self, kind: Kind, offset: int) -> Value:
        raw, text_offset = self._read_scalar_text(kind)
        _, signed = INTEGER_KINDS[kind]
        pattern = _SIGNED_RE if signed else _UNSIGNED_RE
        if not pattern.fullmatch(raw):
            raise self._malformed(kind, raw, text_offset)
        value = int(raw)
        low, high = integer_range(kind)
        if not low <= value <= high:
            raise self._malformed(kind, raw, text_offset)
        return INTEGER_TYPES[kind](value)

    def _read_float(self, kind: Kind, offset: int) -> Value:
        raw, text_offset = self._read_scalar_text(kind)
        if not _FLOAT_RE.fullmatch(raw):
            raise self._malformed(kind, raw, text_offset)
        value = float(raw)
        if kind is Kind.FLOAT32:
            if math.isfinite(value):
                try:
                    value = round_float32(value)
                except OverflowError:
                    raise self._malformed(kind, raw, text_offset) from None
            return Float32(value)
        return Float64(value)

    def _read_bool(self, kind: Kind, offset: int) -> Value:
        self._read_terminator()
        return Bool(kind is Kind.TRUE)

    def _read_nil(self, kind: Kind, offset: int) -> Value:
        self._read_terminator()
        return Nil()

    # --- 枚举变体 ---

    def _read_unit_variant(self, kind: Kind, offset: int) -> Value:
        enum = self._read_token()
        variant = self._read_token()
        return UnitVariant(enum, variant)

    def _read_tuple_variant(self, kind: Kind, offset: int) -> Value:
        count = self._read_length()
        enum = self._read_token()
        variant = self._read_token()
        self._enter(offset)
        try:
            items = [self._read_child(i) for i in range(count)]
        finally:
            self._leave()
        return TupleVariant(enum, variant, tuple(items))

    def _read_struct_variant(self, kind: Kind, offset: int) -> Value:
        count = self._read_length()
        enum = self._read_token()
        variant = self._read_token()
        self._enter(offset)
        try:
            fields = []
            for _ in range(count):
                name = self._read_token()
                fields.append((name, self._read_child(name)))
        finally:
            self._leave()
        return StructVariant(enum, variant, tuple(fields))

    # --- 容器 ---

    def _read_items(self, kind: Kind, offset: int) -> Value:
        count = self._read_length()
        self._enter(offset)
        try:
            items = [self._read_child(i) for i in range(count)]
        finally:
            self._leave()
        if kind is Kind.SEQUENCE:
            return Sequence(tuple(items))
        return Tuple(tuple(items))

    def _read_named_tuple(self, kind: Kind, offset: int) -> Value:
        count = self._read_length()
        name = self._read_token()
        self._enter(offset)
        try:
            items = [self._read_child(i) for i in range(count)]
        finally:
            self._leave()
        return NamedTuple(name, tuple(items))

    def _read_map(self, kind: Kind, offset: int) -> Value:
        count = self._read_length()
        self._enter(offset)
        try:
            pairs = []
            for i in range(count):
                key = self._read_child(f"{i}.key")
                pairs.append((key, self._read_child(i)))
        finally:
            self._leave()
        return Map(tuple(pairs))

    def _read_struct(self, kind: Kind, offset: int) -> Value:
        count = self._read_length()
        name = self._read_token()
        self._enter(offset)
        try:
            fields = []
            for _ in range(count):
                marker_offset = self._reader.position
                marker = self._reader.read_byte()
                if marker != KVS_FIELD_MARKER:
                    raise KvsUnknownTagError(
                        marker,
                        marker_offset,
                        self._current_loc(),
                        msg=f"Expected field marker ']', found 0x{marker:02x}",
                    )
                field_name = self._read_token()
                fields.append((field_name, self._read_child(field_name)))
        finally:
            self._leave()
        return Struct(name, tuple(fields))
