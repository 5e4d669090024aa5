"""KVS序列化的配置选项.

该模块定义了用于控制 `dumps` 将 Python 原生对象映射为值时的选项标志.
"""

from enum import IntFlag


class KvsOption(IntFlag):
    """KVS 配置选项标志.

    可以使用位运算组合多个选项:
        option = KvsOption.COMPACT_INT | KvsOption.ALWAYS_LENGTH_STRING
    """

    # 默认行为: int -> SignedInt64, 不含换行的短 str -> SimpleString
    NONE = 0x0000

    # 原生 int 使用能容纳该值的最窄有符号宽度
    COMPACT_INT = 0x0001

    # 原生 str 总是编码为带长度前缀的 String (&)
    ALWAYS_LENGTH_STRING = 0x0002
