"""测试 KVS 日志模块."""

import logging

import pytest

from kvsproto import KvsUnknownTagError, decode
from kvsproto.log import get_hexdump, logger


def test_logger_has_no_handlers() -> None:
    """包日志器不安装 Handler, 由应用自行配置."""
    assert logger.name == "kvsproto"
    assert not logger.handlers
    assert logger.level == logging.NOTSET


@pytest.mark.parametrize(
    ("data", "pos", "window", "expected"),
    [
        (b"\x01\x02\x03", 1, 1, "01 02"),
        (b"\xaa\xbb\xcc", 0, 1, "aa"),
        (b"\xaa\xbb\xcc", 2, 1, "bb cc"),
        (b"$Test\n", 3, 2, "54 65 73"),
    ],
)
def test_get_hexdump_window(data: bytes, pos: int, window: int, expected: str) -> None:
    """get_hexdump() 只显示位置附近窗口内的字节, 并在两端截断."""
    assert expected in get_hexdump(data, pos=pos, window=window)


def test_get_hexdump_ascii_view() -> None:
    """get_hexdump() 应附带可打印字符视图, 不可打印字节显示为点."""
    dump = get_hexdump(b"B255\n", pos=0)

    assert "B255." in dump


@pytest.mark.parametrize(("data", "pos"), [(b"", 0), (b"\x01", 10)])
def test_get_hexdump_degenerate_input(data: bytes, pos: int) -> None:
    """空输入或越界位置不报错, 仍给出位置说明."""
    assert f"位置 {pos}" in get_hexdump(data, pos=pos)


def test_decode_error_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    """解码失败时应记录错误日志和十六进制上下文."""
    with caplog.at_level(logging.DEBUG, logger="kvsproto"):
        with pytest.raises(KvsUnknownTagError):
            decode(b"\x05")

    messages = [r.getMessage() for r in caplog.records]
    assert any("解码错误" in m for m in messages)
    assert any("05" in m and "位置 0" in m for m in messages)


def test_decode_success_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    """成功解码时应记录调试日志."""
    with caplog.at_level(logging.DEBUG, logger="kvsproto"):
        decode(b"B255\n")

    assert any("成功解码" in r.getMessage() for r in caplog.records)
