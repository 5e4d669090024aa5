"""KVS类型适配器.

提供类似于 Pydantic TypeAdapter 的接口,
用于处理泛型类型和基础类型的 KVS 序列化/反序列化.
"""

from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter

from .api import decode, dumps
from .options import KvsOption
from .struct import value_for_annotation

T = TypeVar("T")


class KvsTypeAdapter(Generic[T]):
    """KVS 类型适配器.

    用于处理泛型类型和基础类型的 KVS 序列化/反序列化.
    类似于 `pydantic.TypeAdapter`, 但针对 KVS 协议.

    支持的类型:
        - `KvsStruct` 子类 (声明式结构体)
        - 基础类型 (`int`, `str`, `bytes` 等)
        - 容器类型 (`list`, `dict`, `tuple` 等)
        - `enum.Enum` 子类 (单元变体)

    Examples:
        >>> adapter = KvsTypeAdapter(list[int])
        >>> data = adapter.dump_kvs([1, 2, 3])
        >>> assert adapter.validate_kvs(data) == [1, 2, 3]
    """

    def __init__(self, type_: type[T] | Any):
        """初始化 KVS 类型适配器.

        Args:
            type_: 目标类型 (如 KvsStruct 子类, list[int], int 等).
        """
        self._type = type_
        self._pydantic_adapter: TypeAdapter[T] = TypeAdapter(type_)

    def validate_kvs(
        self,
        data: bytes | bytearray | memoryview,
        *,
        max_depth: int | None = None,
    ) -> T:
        """验证并反序列化 KVS 数据.

        Args:
            data: KVS 字节数据 (单个顶层值).
            max_depth: 最大嵌套深度.

        Returns:
            反序列化后的对象.

        Raises:
            KvsDecodeError: 数据格式错误或结构体名称不匹配.
            ValidationError: 数据不符合目标类型.
        """
        value = decode(data, max_depth=max_depth)
        return self._pydantic_adapter.validate_python(
            value_for_annotation(self._type, value, [])
        )

    def dump_kvs(
        self,
        obj: T,
        *,
        option: KvsOption = KvsOption.NONE,
        default: Any | None = None,
    ) -> bytes:
        """序列化为 KVS 数据.

        对象先经 pydantic 验证 (例如把 `dict` 转换为目标模型), 再编码.
        """
        validated = self._pydantic_adapter.validate_python(obj)
        return dumps(validated, option=KvsOption(option), default=default)
