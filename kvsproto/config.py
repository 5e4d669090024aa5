"""KVS序列化配置.

`KvsConfig` 汇总了一次编解码调用所需的全部参数,
由 API, 编码器, 解码器和流式读写器共享.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .const import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_DEPTH
from .options import KvsOption


@dataclass(frozen=True)
class KvsConfig:
    """编解码配置.

    Attributes:
        option: 选项位掩码 (`KvsOption`).
        max_depth: 容器的最大嵌套深度.
        default: 无法直接映射的 Python 对象的转换函数.
        chunk_size: 从流中读取时每次拉取的字节数.
    """

    option: KvsOption = KvsOption.NONE
    max_depth: int = DEFAULT_MAX_DEPTH
    default: Callable[[Any], Any] | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def from_params(
        cls,
        option: KvsOption | int = KvsOption.NONE,
        max_depth: int | None = None,
        default: Callable[[Any], Any] | None = None,
        chunk_size: int | None = None,
    ) -> "KvsConfig":
        """从 API 关键字参数构造配置, `None` 表示使用默认值."""
        return cls(
            option=KvsOption(option),
            max_depth=DEFAULT_MAX_DEPTH if max_depth is None else max_depth,
            default=default,
            chunk_size=DEFAULT_CHUNK_SIZE if chunk_size is None else chunk_size,
        )

    @property
    def compact_int(self) -> bool:
        """原生 int 是否使用最窄宽度."""
        return bool(self.option & KvsOption.COMPACT_INT)

    @property
    def always_length_string(self) -> bool:
        """原生 str 是否总是编码为 String."""
        return bool(self.option & KvsOption.ALWAYS_LENGTH_STRING)
