"""KVS 协议特定的异常类.

该模块为 kvsproto 库定义了异常层次结构.
所有解码错误都携带检测到错误时的字节偏移量.
"""

from typing import Any


class KvsError(Exception):
    """所有 KVS 异常的基类."""

    pass


class KvsEncodeError(KvsError):
    """序列化失败时抛出.

    Case:
        - 值超出其声明宽度的范围 (如 `UnsignedInt8` 存了 256).
        - SimpleString 过长或包含换行符.
        - 循环引用.
    """

    pass


class KvsTypeError(KvsEncodeError, TypeError):
    """类型不匹配时抛出."""

    pass


class KvsValueError(KvsEncodeError, ValueError):
    """值无效时抛出 (如超出范围)."""

    pass


class KvsInvalidSimpleStringError(KvsValueError):
    """SimpleString (或名称标记) 超过 8192 字节或包含换行符."""

    pass


class KvsEndOfInputError(KvsError):
    """在两个顶层值之间干净地到达输入末尾.

    这不是数据损坏, 而是一个哨兵: 调用方据此区分 "没有更多值" 与 "流已损坏".
    """

    def __init__(self, offset: int) -> None:
        """初始化输入结束哨兵.

        Args:
            offset: 到达末尾时的字节偏移量.
        """
        super().__init__(f"End of input at offset {offset}")
        self.offset = offset


class KvsDecodeError(KvsError):
    """反序列化失败时抛出.

    Case:
        - 输入数据被截断.
        - 未知的指示符字节.
        - 长度字段或标量文本格式错误.
        - 缺少换行终止符.
    """

    def __init__(
        self,
        msg: str,
        offset: int | None = None,
        loc: list[str | int] | None = None,
    ) -> None:
        """初始化解码错误.

        Args:
            msg: 错误描述信息.
            offset: 检测到错误时的字节偏移量.
            loc: 错误发生的位置路径 (字段名或索引).
        """
        super().__init__(msg)
        self.offset = offset
        self.loc = loc or []

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.offset is not None:
            base_msg = f"{base_msg} [offset {self.offset}]"
        if self.loc:
            # 格式化为 dotted path
            loc_str = ".".join(str(x) for x in self.loc)
            return f"{base_msg} (at {loc_str})"
        return base_msg


class KvsTruncatedInputError(KvsDecodeError):
    """输入在一个值的中间结束时抛出.

    在流式解析时表示需要更多数据才能完成解析.
    """

    pass


class KvsUnknownTagError(KvsDecodeError):
    """指示符字节不在标签表中时抛出."""

    def __init__(
        self,
        byte: int,
        offset: int | None = None,
        loc: list[str | int] | None = None,
        msg: str | None = None,
    ) -> None:
        """初始化未知标签错误.

        Args:
            byte: 出现在标签位置上的字节.
            offset: 该字节的偏移量.
            loc: 位置路径.
            msg: 自定义错误信息.
        """
        super().__init__(msg or f"Unknown indicator byte 0x{byte:02x}", offset, loc)
        self.byte = byte


class KvsMissingTerminatorError(KvsDecodeError):
    """期望的 0x0A 终止符未出现在预期位置时抛出."""

    pass


class KvsInvalidUtf8Error(KvsDecodeError):
    """声明为文本的载荷不是合法 UTF-8 时抛出."""

    pass


class KvsSimpleStringTooLongError(KvsDecodeError):
    """SimpleString (或名称标记) 载荷超过 8192 字节时抛出."""

    pass


class KvsMalformedScalarError(KvsDecodeError):
    """整数/浮点/字符的文本无法解析或超出其声明宽度时抛出."""

    def __init__(
        self,
        kind: Any,
        text: str,
        offset: int | None = None,
        loc: list[str | int] | None = None,
    ) -> None:
        """初始化标量格式错误.

        Args:
            kind: 标量的种类 (`Kind`).
            text: 原始文本.
            offset: 文本起始偏移量.
            loc: 位置路径.
        """
        name = getattr(kind, "name", kind)
        super().__init__(f"Malformed {name} scalar: {text!r}", offset, loc)
        self.kind = kind
        self.text = text


class KvsDepthExceededError(KvsDecodeError):
    """嵌套深度超过限制时抛出 (对抗性输入)."""

    pass


class KvsLineTooLongError(KvsDecodeError):
    """在限定字节数内未找到换行符时由读取器抛出.

    解码器会将其转换为更具体的错误 (如 `KvsSimpleStringTooLongError`).
    """

    def __init__(self, limit: int, offset: int | None = None) -> None:
        """初始化行过长错误.

        Args:
            limit: 允许的最大行长度 (不含换行符).
            offset: 行起始偏移量.
        """
        super().__init__(f"No newline within {limit} bytes", offset)
        self.limit = limit


class KvsLengthOverflowError(KvsDecodeError, KvsEncodeError):
    """长度或计数不是十进制、为负数, 或超过 2^32-1 时抛出.

    编码时 (值太大无法用 32 位长度表示) 和解码时都会抛出.
    """

    pass
