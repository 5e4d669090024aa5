"""KVS字节游标.

`DataReader` 包装字节数据或二进制流, 提供 "读取恰好 N 字节" 和
"读取到下一个换行符" 两种基本操作, 并跟踪绝对偏移量用于错误报告.
"""

from typing import IO

from .const import DEFAULT_CHUNK_SIZE, KVS_NEWLINE
from .exceptions import KvsDecodeError, KvsLineTooLongError, KvsTruncatedInputError

ByteSource = bytes | bytearray | memoryview | IO[bytes]


class DataReader:
    """KVS数据的读取器.

    对于内存中的数据, 直接在其上移动指针;
    对于流 (任何实现了 `read(n)` 的对象), 按块惰性拉取数据到内部缓冲区,
    已消费的部分会被丢弃.

    读取操作永远不会越过已声明的输入: 任何超出可用数据的请求都会抛出
    `KvsTruncatedInputError`.
    """

    __slots__ = ("_buffer", "_chunk_size", "_exhausted", "_head", "_origin", "_stream")

    _buffer: bytes | bytearray
    _head: int
    _origin: int
    _stream: IO[bytes] | None
    _exhausted: bool
    _chunk_size: int

    def __init__(self, source: ByteSource, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """初始化DataReader.

        Args:
            source: 要读取的二进制数据或二进制流.
            chunk_size: 从流中读取时每次拉取的字节数.
        """
        if isinstance(source, bytes | bytearray | memoryview):
            self._buffer = bytes(source)
            self._stream = None
            self._exhausted = True
        elif hasattr(source, "read"):
            self._buffer = bytearray()
            self._stream = source
            self._exhausted = False
        else:
            raise TypeError(
                f"Expected bytes-like object or binary stream, got {type(source).__name__}"
            )
        self._head = 0
        # 缓冲区首字节在整个输入中的偏移量
        self._origin = 0
        self._chunk_size = chunk_size

    @property
    def position(self) -> int:
        """当前的绝对字节偏移量."""
        return self._origin + self._head

    @property
    def available(self) -> int:
        """缓冲区中尚未消费的字节数 (不触发读取)."""
        return len(self._buffer) - self._head

    @property
    def eof(self) -> bool:
        """检查是否到达输入末尾 (必要时从流中拉取数据)."""
        return not self._fill(1)

    @property
    def buffer(self) -> bytes | bytearray:
        """当前缓冲区 (用于诊断)."""
        return self._buffer

    @property
    def buffer_offset(self) -> int:
        """当前位置在缓冲区中的下标 (用于诊断)."""
        return self._head

    def _fill(self, need: int) -> bool:
        """确保缓冲区中至少有 `need` 个未消费字节.

        Returns:
            bool: 是否满足要求.
        """
        while len(self._buffer) - self._head < need:
            if self._exhausted or self._stream is None:
                return False
            chunk = self._stream.read(max(self._chunk_size, need))
            if not chunk:
                self._exhausted = True
                return False
            buffer = self._buffer
            assert isinstance(buffer, bytearray)
            if self._head:
                # 丢弃已消费的部分
                del buffer[: self._head]
                self._origin += self._head
                self._head = 0
            buffer.extend(chunk)
        return True

    def read_exact(self, length: int) -> bytes:
        """读取恰好 `length` 个字节.

        Args:
            length: 要读取的字节数.

        Returns:
            bytes: 数据的副本.

        Raises:
            KvsTruncatedInputError: 如果没有足够的数据可用.
        """
        if length < 0:
            raise KvsDecodeError(f"Cannot read negative bytes: {length}", self.position)
        if not self._fill(length):
            raise KvsTruncatedInputError(
                f"Not enough data to read {length} bytes "
                f"({self.available} available)",
                self.position,
            )
        start = self._head
        self._head += length
        return bytes(self._buffer[start : self._head])

    def read_byte(self) -> int:
        """读取一个字节."""
        if not self._fill(1):
            raise KvsTruncatedInputError("Not enough data to read byte", self.position)
        val = self._buffer[self._head]
        self._head += 1
        return val

    def peek_byte(self) -> int:
        """查看下一个字节而不移动指针."""
        if not self._fill(1):
            raise KvsTruncatedInputError("Not enough data to peek byte", self.position)
        return self._buffer[self._head]

    def read_until_newline(self, limit: int) -> bytes:
        """读取到下一个换行符, 返回不含换行符的内容并消费换行符.

        Args:
            limit: 内容的最大字节数. 只在前 `limit + 1` 个字节内搜索换行符,
                以限制对抗性输入下的内存占用.

        Returns:
            bytes: 行内容的副本.

        Raises:
            KvsLineTooLongError: 前 `limit + 1` 个字节中没有换行符.
            KvsTruncatedInputError: 在找到换行符之前到达输入末尾.
        """
        window = limit + 1
        scanned = 0
        while True:
            end = min(len(self._buffer), self._head + window)
            index = self._buffer.find(KVS_NEWLINE, self._head + scanned, end)
            if index >= 0:
                line = bytes(self._buffer[self._head : index])
                self._head = index + 1
                return line
            scanned = end - self._head
            if scanned >= window:
                raise KvsLineTooLongError(limit, self.position)
            # _fill 可能压缩缓冲区, 但 scanned 是相对 _head 的, 不受影响
            if not self._fill(scanned + 1):
                raise KvsTruncatedInputError(
                    "End of input before newline", self.position
                )
