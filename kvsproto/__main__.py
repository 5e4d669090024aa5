"""KVS命令行工具."""

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .convert import to_python
from .decoder import GenericDecoder
from .reader import DataReader
from .types import (
    Binary,
    Character,
    Map,
    NamedTuple,
    Sequence,
    Struct,
    StructVariant,
    Tuple,
    TupleVariant,
    UnitVariant,
    Value,
)

if TYPE_CHECKING:
    import click as click_module
    from rich.console import Console
    from rich.syntax import Syntax
    from rich.text import Text
    from rich.tree import Tree
else:
    try:
        import click as click_module
        from rich.console import Console
        from rich.syntax import Syntax
        from rich.text import Text
        from rich.tree import Tree
    except ImportError:
        click_module = None
        Console = None
        Syntax = None
        Text = None
        Tree = None

click = click_module

# 按十六进制文本读取的文件扩展名
HEX_SUFFIXES = frozenset({".hex", ".txt"})


def decode_all(data: bytes, verbose: bool = False) -> list[Value]:
    """解码数据中的全部顶层值."""
    decoder = GenericDecoder(DataReader(data))
    return list(decoder.iter_decode(suppress_log=not verbose))


def jsonable(obj: Any) -> Any:
    """将 `to_python` 的结果转换为可 JSON 序列化的形式.

    `bytes` 输出为十六进制, 非字符串的映射键使用其 `repr`.
    """
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, float) and obj != obj:
        return "nan"
    if isinstance(obj, dict):
        return {
            k if isinstance(k, str) else repr(k): jsonable(v) for k, v in obj.items()
        }
    if isinstance(obj, list | tuple):
        return [jsonable(v) for v in obj]
    return obj


def describe_scalar(value: Value) -> str:
    """标量值的单行显示文本."""
    if isinstance(value, Binary):
        return value.value.hex(" ").upper()
    if isinstance(value, Character):
        return f"{value.char!r} (U+{value.code_point:04X})"
    if isinstance(value, UnitVariant):
        return f"{value.enum}::{value.variant}"
    payload = getattr(value, "value", None)
    return "" if payload is None else repr(payload)


if not click:

    def main() -> None:
        """入口函数 (缺少 click)."""
        print("错误: 未检测到 'click' 模块,无法运行 CLI 工具。", file=sys.stderr)
        print(
            "\n该功能属于可选组件,请通过以下命令安装依赖:\n"
            "  pip install 'kvsproto[cli]'",
            file=sys.stderr,
        )
        sys.exit(1)

else:

    def _read_hex_file(file_path: Path) -> bytes:
        """读取并解析十六进制文本文件.

        Raises:
            ValueError: 如果文件内容不是有效的十六进制字符串.
        """
        hex_data = file_path.read_text(encoding="utf-8").strip()
        cleaned = "".join(hex_data.split())
        if not all(c in "0123456789abcdefABCDEF" for c in cleaned):
            raise ValueError("不是有效的十六进制字符串")
        return bytes.fromhex(cleaned)

    def _build_rich_tree(value: Value, tree: Tree, label_prefix: str = "") -> None:
        """递归构建 Rich 树.

        Args:
            value: 当前值.
            tree: 父级 Tree 对象.
            label_prefix: 节点标签前缀 (字段名或索引).
        """
        style_key = "bold blue"
        style_type = "cyan"
        style_value = "green"

        label = Text()
        if label_prefix:
            label.append(f"{label_prefix} ", style=style_key)

        if isinstance(value, Struct | StructVariant):
            if isinstance(value, Struct):
                label.append(f"Struct {value.name}", style="bold yellow")
            else:
                label.append(
                    f"StructVariant {value.enum}::{value.variant}", style="bold yellow"
                )
            branch = tree.add(label)
            for name, item in value.fields:
                _build_rich_tree(item, branch, f"[{name}]")

        elif isinstance(value, Sequence | Tuple | NamedTuple | TupleVariant):
            if isinstance(value, NamedTuple):
                title = f"NamedTuple {value.name}"
            elif isinstance(value, TupleVariant):
                title = f"TupleVariant {value.enum}::{value.variant}"
            else:
                title = value.kind.value
            label.append(f"{title} ({len(value.items)})", style=style_type)
            branch = tree.add(label)
            for i, item in enumerate(value.items):
                _build_rich_tree(item, branch, f"[{i}]")

        elif isinstance(value, Map):
            label.append(f"Map ({len(value.pairs)})", style=style_type)
            branch = tree.add(label)
            for i, (key, item) in enumerate(value.pairs):
                entry_branch = branch.add(Text(f"Entry {i}", style="dim"))
                _build_rich_tree(key, entry_branch, "Key")
                _build_rich_tree(item, entry_branch, "Value")

        else:
            label.append(f"{value.kind.value}: ", style=style_type)
            label.append(describe_scalar(value), style=style_value)
            tree.add(label)

    def _print_value_tree(values: list[Value], file: Any = None) -> None:
        """打印值树 (使用 Rich)."""
        console = Console(file=file, force_terminal=file is None)
        root = Tree("KVS Root", style="bold white")
        for value in values:
            _build_rich_tree(value, root)
        console.print(root)

    def _decode_and_print(
        data: bytes,
        output_format: str,
        output_file: str | None,
        verbose: bool,
    ) -> None:
        """解码并输出结果."""
        if verbose:
            click.echo(f"[DEBUG] 数据大小: {len(data)} 字节", err=True)

        try:
            values = decode_all(data, verbose)
        except Exception as e:
            if verbose:
                import traceback

                traceback.print_exc(file=sys.stderr)
            raise click.ClickException(f"解码失败: {e}") from e

        if verbose:
            click.echo(f"[DEBUG] 顶层值数量: {len(values)}", err=True)

        if output_format == "tree":
            if output_file:
                with open(output_file, "w", encoding="utf-8") as f:
                    _print_value_tree(values, file=f)
                click.echo(f"结果已保存到: {output_file}", err=True)
            else:
                _print_value_tree(values)
            return

        results = [to_python(value) for value in values]
        result: Any = results[0] if len(results) == 1 else results

        if output_format == "json":
            output_text = json.dumps(jsonable(result), indent=2, ensure_ascii=False)
        else:
            import pprint

            output_text = pprint.pformat(result, width=100)

        if output_file:
            Path(output_file).write_text(output_text, encoding="utf-8")
            click.echo(f"结果已保存到: {output_file}", err=True)
        elif output_format == "json":
            Console().print(
                Syntax(output_text, "json", theme="monokai", word_wrap=True)
            )
        else:
            # Rich 直接支持 Python 对象高亮
            Console().print(result)

    @click.command(help="KVS 解码与查看工具")
    @click.argument("encoded", required=False)
    @click.option(
        "-f",
        "--file",
        "file_path",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="从文件读取编码数据 (.hex/.txt 按十六进制文本读取, 其它按二进制)",
    )
    @click.option(
        "--format",
        "output_format",
        type=click.Choice(["pretty", "json", "tree"]),
        default="pretty",
        show_default=True,
        help="输出格式",
    )
    @click.option(
        "-o",
        "--output",
        "output_file",
        type=click.Path(dir_okay=False, writable=True),
        help="将输出保存到文件 (如不指定则输出到控制台)",
    )
    @click.option(
        "-v",
        "--verbose",
        is_flag=True,
        help="显示详细的解码过程信息",
    )
    def cli(
        encoded: str | None,
        file_path: Path | None,
        output_format: str,
        output_file: str | None,
        verbose: bool,
    ) -> None:
        """KVS 解码与查看工具.

        Examples:
          # 直接解码十六进制数据 (B255\\n)
          kvsproto "423235350a"

          # 从文件读取数据
          kvsproto -f dump.kvs

          # 以 JSON 格式输出结果
          kvsproto -f dump.hex --format json

          # 以 Tree 格式输出
          kvsproto "423235350a" --format tree
        """
        if encoded and file_path:
            raise click.UsageError("不能同时指定 ENCODED 数据和 --file 参数")
        if not encoded and not file_path:
            raise click.UsageError("必须指定 ENCODED 数据或 --file 参数")

        if file_path:
            # KVS 本身是文本协议, 只按扩展名识别十六进制文件
            if file_path.suffix.lower() in HEX_SUFFIXES:
                try:
                    data = _read_hex_file(file_path)
                except (UnicodeDecodeError, ValueError) as e:
                    raise click.BadParameter(f"无效的十六进制文件 - {e}") from e
                if verbose:
                    click.echo("[DEBUG] 从文件读取十六进制数据 (文本模式)", err=True)
            else:
                data = file_path.read_bytes()
                if verbose:
                    click.echo("[DEBUG] 从文件读取二进制数据 (二进制模式)", err=True)
        else:
            assert encoded is not None
            try:
                data = bytes.fromhex(encoded)
            except ValueError as e:
                raise click.BadParameter(f"无效的十六进制格式 - {e}") from e

        _decode_and_print(data, output_format, output_file, verbose)

    def main() -> None:
        """入口函数."""
        cli()


if __name__ == "__main__":
    main()
