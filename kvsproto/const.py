"""KVS 协议常量.

指示符字节与格式级别的限制都是线协议的一部分, 因此集中定义在此处.
"""

# 字符串与二进制
KVS_SIMPLE_STRING = ord("$")
KVS_STRING = ord("&")
KVS_CHARACTER = ord("c")
KVS_BINARY = ord("%")

# 有符号整数
KVS_INT8 = ord("b")
KVS_INT16 = ord("w")
KVS_INT32 = ord("i")
KVS_INT64 = ord("d")
KVS_INT128 = ord("q")

# 无符号整数
KVS_UINT8 = ord("B")
KVS_UINT16 = ord("W")
KVS_UINT32 = ord("I")
KVS_UINT64 = ord("D")
KVS_UINT128 = ord("Q")

# 浮点数
KVS_FLOAT32 = ord("f")
KVS_FLOAT64 = ord("F")

# 布尔 (指示符本身即为值)
KVS_FALSE = ord("0")
KVS_TRUE = ord("1")

# 枚举
KVS_UNIT_VARIANT = ord("@")
KVS_TUPLE_VARIANT = ord("^")
KVS_STRUCT_VARIANT = ord("#")

# 容器
KVS_SEQUENCE = ord("`")
KVS_TUPLE = ord("~")
KVS_NAMED_TUPLE = ord(":")
KVS_MAP = ord("{")
KVS_STRUCT = ord("}")

KVS_NIL = ord("!")
KVS_IDENTIFIER = ord("=")

# 结构体字段标记
KVS_FIELD_MARKER = ord("]")

KVS_NEWLINE = 0x0A

# 格式限制
MAX_SIMPLE_STRING_LENGTH = 8192
MAX_LENGTH = 2**32 - 1
MAX_LENGTH_DIGITS = len(str(MAX_LENGTH))
MAX_SCALAR_TEXT_LENGTH = 1024
DEFAULT_MAX_DEPTH = 128
DEFAULT_CHUNK_SIZE = 64 * 1024
