"""Go 源文件头部扫描

只解析到 import 声明为止（等价于 go/parser 的 ImportsOnly | ParseComments）:
- package 子句
- import 声明（单行 / 分组，支持别名、`.`、`_`）
- package 子句之前的构建约束（// +build 与 //go:build）
- `import "C"` 前的 cgo preamble 注释

另含按 GOOS/GOARCH 文件名后缀过滤的规则。
"""

from __future__ import annotations

import os
import platform
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from gotrash.core.exceptions import SourceParseError

KNOWN_GOOS = frozenset(
    "android darwin dragonfly freebsd linux nacl netbsd openbsd plan9 solaris windows".split()
)
KNOWN_GOARCH = frozenset(
    "386 amd64 amd64p32 arm armbe arm64 arm64be ppc64 ppc64le mips mipsle mips64 "
    "mips64le mips64p32 mips64p32le ppc s390 s390x sparc sparc64".split()
)

_SYSTEM_TO_GOOS = {
    "linux": "linux", "darwin": "darwin", "windows": "windows",
    "freebsd": "freebsd", "openbsd": "openbsd", "netbsd": "netbsd",
    "dragonfly": "dragonfly", "sunos": "solaris", "android": "android",
}
_MACHINE_TO_GOARCH = {
    "x86_64": "amd64", "amd64": "amd64", "i386": "386", "i686": "386", "x86": "386",
    "aarch64": "arm64", "arm64": "arm64", "armv7l": "arm", "armv6l": "arm", "arm": "arm",
    "ppc64le": "ppc64le", "ppc64": "ppc64", "s390x": "s390x",
    "mips": "mips", "mipsel": "mipsle", "mips64": "mips64", "mips64el": "mips64le",
}

_INCLUDE_RE = re.compile(r'^#include\s*"([^"]+)"')
_GO_BUILD_TOKEN_RE = re.compile(r"(!*)\s*([A-Za-z0-9_.]+)")


# =========================================================================
# 平台
# =========================================================================

def host_platform() -> tuple[str, str]:
    """当前主机的 (GOOS, GOARCH)，GOOS/GOARCH 环境变量优先"""
    goos = os.environ.get("GOOS") or _SYSTEM_TO_GOOS.get(
        platform.system().lower(), platform.system().lower()
    )
    machine = platform.machine().lower()
    goarch = os.environ.get("GOARCH") or _MACHINE_TO_GOARCH.get(machine, machine)
    return goos, goarch


def matches_platform(filename: str, goos: str, goarch: str) -> bool:
    """文件名后缀 *_GOOS / *_GOARCH / *_GOOS_GOARCH 是否与给定平台兼容"""
    parts = filename.split("_")
    if len(parts) == 1:
        return True
    last = parts[-1].removesuffix(".go")
    if last in KNOWN_GOOS and last != goos:
        return False
    if last in KNOWN_GOARCH and last != goarch:
        return False
    if last in KNOWN_GOARCH and parts[-2] in KNOWN_GOOS and parts[-2] != goos:
        return False
    return True


def is_test_file(filename: str) -> bool:
    return filename.endswith("_test.go")


# =========================================================================
# 词法
# =========================================================================

@dataclass
class _Token:
    kind: str  # comment / ident / string / punct
    value: str
    line: int
    end_line: int


def _tokens(src: str) -> Iterator[_Token]:
    """惰性切分 Go 源码头部，只识别 import 区域用得到的记号"""
    i, n, line = 0, len(src), 1
    while i < n:
        c = src[i]
        if c == "\n":
            line += 1
            i += 1
        elif c in " \t\r\ufeff":
            i += 1
        elif src.startswith("//", i):
            end = src.find("\n", i)
            end = n if end == -1 else end
            yield _Token("comment", src[i:end], line, line)
            i = end
        elif src.startswith("/*", i):
            end = src.find("*/", i + 2)
            if end == -1:
                raise SourceParseError(f"第 {line} 行: 块注释未闭合")
            text = src[i:end + 2]
            start = line
            line += text.count("\n")
            yield _Token("comment", text, start, line)
            i = end + 2
        elif c == '"':
            j = i + 1
            while j < n and src[j] != '"':
                if src[j] == "\n":
                    raise SourceParseError(f"第 {line} 行: 字符串未闭合")
                j += 2 if src[j] == "\\" else 1
            if j >= n:
                raise SourceParseError(f"第 {line} 行: 字符串未闭合")
            raw = src[i + 1:j]
            yield _Token("string", raw.replace('\\"', '"').replace("\\\\", "\\"), line, line)
            i = j + 1
        elif c == "`":
            end = src.find("`", i + 1)
            if end == -1:
                raise SourceParseError(f"第 {line} 行: 原始字符串未闭合")
            text = src[i + 1:end]
            start = line
            line += text.count("\n")
            yield _Token("string", text, start, line)
            i = end + 1
        elif c.isalnum() or c == "_":
            j = i
            while j < n and (src[j].isalnum() or src[j] == "_"):
                j += 1
            yield _Token("ident", src[i:j], line, line)
            i = j
        else:
            yield _Token("punct", c, line, line)
            i += 1


# =========================================================================
# 语法
# =========================================================================

@dataclass
class CommentGroup:
    """相邻（中间无空行）的一组注释"""

    comments: list[_Token] = field(default_factory=list)

    @property
    def line(self) -> int:
        return self.comments[0].line

    @property
    def end_line(self) -> int:
        return self.comments[-1].end_line

    def text_lines(self) -> list[str]:
        """去掉注释标记后的文本行"""
        lines: list[str] = []
        for c in self.comments:
            if c.value.startswith("//"):
                lines.append(c.value[2:])
            else:
                lines.extend(c.value[2:-2].splitlines())
        return lines

    def line_comments(self) -> list[str]:
        """仅 // 形式注释的内容（构建约束只能写在这种注释里）"""
        return [c.value[2:].strip() for c in self.comments if c.value.startswith("//")]


@dataclass
class ImportSpec:
    path: str
    name: str = ""
    doc: CommentGroup | None = None


@dataclass
class GoFile:
    """一个 Go 源文件的头部信息"""

    filename: str
    package: str
    imports: list[ImportSpec] = field(default_factory=list)
    constraint_groups: list[CommentGroup] = field(default_factory=list)

    def has_filtered_tag(self, filtered: set[str] | frozenset[str]) -> bool:
        """构建约束中是否出现任一需要跳过的 tag

        +build 行中空格分组为 OR、逗号为 AND，//go:build 为表达式；
        只要某个非取反的 tag 命中即跳过整个文件。
        """
        if not filtered:
            return False
        for group in self.constraint_groups:
            for comment in group.line_comments():
                if comment.startswith("+build"):
                    tagline = comment[len("+build"):].strip()
                    tags = [t for grp in tagline.split() for t in grp.split(",")]
                elif comment.startswith("go:build"):
                    expr = comment[len("go:build"):]
                    tags = [
                        tag for bangs, tag in _GO_BUILD_TOKEN_RE.findall(expr)
                        if len(bangs) % 2 == 0
                    ]
                else:
                    continue
                if any(t in filtered for t in tags):
                    return True
        return False

    def cgo_includes(self) -> list[str]:
        """`import "C"` preamble 中 #include "..." 的本地头文件路径"""
        result: list[str] = []
        for spec in self.imports:
            if spec.path != "C" or spec.doc is None:
                continue
            for raw in spec.doc.text_lines():
                m = _INCLUDE_RE.match(raw.strip())
                if m:
                    result.append(m.group(1))
        return result


def _group(comments: list[_Token]) -> list[CommentGroup]:
    groups: list[CommentGroup] = []
    for c in comments:
        if groups and c.line <= groups[-1].end_line + 1:
            groups[-1].comments.append(c)
        else:
            groups.append(CommentGroup([c]))
    return groups


def _doc_for(groups: list[CommentGroup], line: int) -> CommentGroup | None:
    """紧贴在 line 之前一行结束的注释组"""
    if groups and groups[-1].end_line == line - 1:
        return groups[-1]
    return None


class _Parser:
    def __init__(self, src: str, filename: str) -> None:
        self._it = _tokens(src)
        self._peeked: _Token | None = None
        self._comments: list[_Token] = []
        self._last_line = 0
        self.filename = filename

    def _next(self) -> _Token | None:
        """下一个非注释记号，途经的注释累积到 _comments

        与上一个记号同行的行尾注释不可能是文档注释，直接丢弃。
        """
        if self._peeked is not None:
            tok, self._peeked = self._peeked, None
            return tok
        for tok in self._it:
            if tok.kind == "comment":
                if tok.line != self._last_line:
                    self._comments.append(tok)
                continue
            self._last_line = tok.end_line
            return tok
        return None

    def _peek(self) -> _Token | None:
        if self._peeked is None:
            self._peeked = self._next()
        return self._peeked

    def _take_comments(self) -> list[_Token]:
        taken, self._comments = self._comments, []
        return taken

    def _expect(self, kind: str, value: str | None = None) -> _Token:
        tok = self._next()
        if tok is None or tok.kind != kind or (value is not None and tok.value != value):
            got = "EOF" if tok is None else repr(tok.value)
            raise SourceParseError(f"{self.filename}: 期望 {value or kind}，实际 {got}")
        return tok

    def _spec(self, groups: list[CommentGroup]) -> ImportSpec:
        tok = self._next()
        if tok is None:
            raise SourceParseError(f"{self.filename}: import 声明不完整")
        first_line = tok.line
        name = ""
        if tok.kind == "ident" or (tok.kind == "punct" and tok.value == "."):
            name = tok.value
            tok = self._next()
        if tok is None or tok.kind != "string":
            raise SourceParseError(f"{self.filename}: import 路径必须是字符串")
        return ImportSpec(path=tok.value, name=name, doc=_doc_for(groups, first_line))

    def package_name(self) -> str:
        """读到 package 名即停止"""
        self._expect("ident", "package")
        return self._expect("ident").value

    def parse(self) -> GoFile:
        pkg_tok = self._expect("ident", "package")
        leading = _group(self._take_comments())
        doc = _doc_for(leading, pkg_tok.line)
        constraint_groups = [g for g in leading if g is not doc]
        name = self._expect("ident").value
        gofile = GoFile(self.filename, name, constraint_groups=constraint_groups)

        while True:
            tok = self._peek()
            if tok is not None and tok.kind == "punct" and tok.value == ";":
                self._next()
                continue
            if tok is None or tok.kind != "ident" or tok.value != "import":
                break
            self._next()
            decl_groups = _group(self._take_comments())
            decl_doc = _doc_for(decl_groups, tok.line)
            nxt = self._peek()
            if nxt is not None and nxt.kind == "punct" and nxt.value == "(":
                self._next()
                group: list[ImportSpec] = []
                while True:
                    inner = self._peek()
                    if inner is None:
                        raise SourceParseError(f"{self.filename}: import 分组未闭合")
                    if inner.kind == "punct" and inner.value == ")":
                        self._next()
                        self._take_comments()
                        break
                    if inner.kind == "punct" and inner.value == ";":
                        self._next()
                        continue
                    group.append(self._spec(_group(self._take_comments())))
                # 分组内只有一条时，import 关键字上的注释同样作为它的文档
                if len(group) == 1 and group[0].doc is None:
                    group[0].doc = decl_doc
                gofile.imports.extend(group)
            else:
                spec = self._spec([])
                # 单条声明的文档注释挂在 import 关键字上
                spec.doc = spec.doc or decl_doc
                gofile.imports.append(spec)
            self._take_comments()
        return gofile


def parse_source(src: str, filename: str = "<src>") -> GoFile:
    """解析 Go 源码头部，语法错误抛 SourceParseError"""
    return _Parser(src, filename).parse()


def parse_file(path: Path) -> GoFile:
    try:
        src = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise SourceParseError(f"{path}: 无法读取 - {e}") from e
    return parse_source(src, str(path))


def package_clause(path: Path) -> str | None:
    """只读取 package 名（PackageClauseOnly），解析失败返回 None

    import 区域不参与解析，其中的语法错误不影响结果。
    """
    try:
        src = path.read_text(encoding="utf-8", errors="replace")
        return _Parser(src, str(path)).package_name()
    except (OSError, SourceParseError):
        return None
