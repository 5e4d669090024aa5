"""KVS流式处理模块.

KVS 的每个值都自带定界 (长度前缀与换行终止符),
因此连续的顶层值可以直接拼接在同一个字节流中, 无需额外的长度头.
`KvsStreamWriter` 负责拼接, `KvsStreamReader` 负责从任意切分的数据块中
还原出完整的值.
"""

from collections.abc import Iterator
from typing import Any

from .api import from_value
from .config import KvsConfig
from .convert import to_value
from .decoder import GenericDecoder
from .encoder import ValueEncoder
from .exceptions import KvsEndOfInputError, KvsTruncatedInputError
from .options import KvsOption
from .reader import DataReader


class KvsStreamWriter:
    """KVS流式写入器.

    每次 `pack()` 编码一个顶层值并追加到内部缓冲区; 编码失败时缓冲区保持不变.

    Examples:
        >>> writer = KvsStreamWriter()
        >>> writer.pack(1)
        >>> writer.pack("a")
        >>> writer.get_buffer()
        b'd1\\n$a\\n'
    """

    def __init__(
        self,
        option: KvsOption = KvsOption.NONE,
        default: Any = None,
        max_depth: int | None = None,
    ):
        """初始化流式写入器.

        Args:
            option: 编码选项, 对每个写入的值生效.
            default: 无法直接映射的对象的转换函数.
            max_depth: 最大嵌套深度.
        """
        self._config = KvsConfig.from_params(
            option=option, default=default, max_depth=max_depth
        )
        self._chunks = bytearray()

    def pack(self, obj: Any) -> None:
        """编码一个对象, 追加到缓冲区末尾."""
        encoder = ValueEncoder(self._config)
        self._chunks += encoder.encode(to_value(obj, self._config))

    write = pack

    def pack_bytes(self, data: bytes) -> None:
        """追加已编码的字节 (不做校验)."""
        self._chunks += data

    write_bytes = pack_bytes

    def get_buffer(self) -> bytes:
        """已写入的全部字节."""
        return bytes(self._chunks)

    def clear(self) -> None:
        """清空缓冲区."""
        self._chunks.clear()


class KvsStreamReader:
    """KVS流式读取器.

    通过 `feed()` 输入任意切分的数据块, 迭代时产出所有已完整到达的值;
    不完整的尾部字节保留在缓冲区中, 等待下一次输入.

    Usage:
        >>> reader = KvsStreamReader(target=MyStruct)
        >>> reader.feed(received_bytes)
        >>> for obj in reader:
        ...     process(obj)
    """

    def __init__(
        self,
        target: Any = None,
        max_buffer_size: int = 10 * 1024 * 1024,
        max_depth: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        """初始化流式读取器.

        Args:
            target: 目标类型 (同 `loads`; 默认为普通 Python 对象).
            max_buffer_size: 待解析字节的上限, 超过时 `feed()` 抛出 `BufferError`.
            max_depth: 最大嵌套深度.
            context: 传给 pydantic 验证的上下文.
        """
        self._target = target
        self._limit = max_buffer_size
        self._config = KvsConfig.from_params(max_depth=max_depth)
        self._context = context
        self._pending = bytearray()

    @property
    def pending(self) -> int:
        """缓冲区中尚未解析的字节数."""
        return len(self._pending)

    def feed(self, data: bytes | bytearray | memoryview) -> None:
        """追加收到的数据块.

        Raises:
            BufferError: 待解析的数据超过 `max_buffer_size`.
        """
        if len(self._pending) + len(data) > self._limit:
            raise BufferError("KvsStreamReader buffer exceeded max size")
        self._pending += data

    feed_data = feed

    def __iter__(self) -> Iterator[Any]:
        """依次产出缓冲区中所有完整的值.

        Raises:
            KvsDecodeError: 缓冲区中的数据已损坏 (截断除外).
        """
        while self._pending:
            reader = DataReader(self._pending)
            try:
                value = GenericDecoder(reader, self._config).decode(suppress_log=True)
            except (KvsTruncatedInputError, KvsEndOfInputError):
                # 值尚未完整到达
                return
            del self._pending[: reader.position]
            yield from_value(value, self._target, self._context)
