"""bot 回复的显示格式化。

format_message 把累积的回复文本逐行转成 DisplayLine：

- ``* `` 开头的行是列表项，行内 ``**...**`` 为粗体；
- 以 ``` 开头的行是代码块：同一行内闭合的是单行代码块，
  否则一直收集到以 ``` 结尾的行为止（流式输出中途可能尚未闭合）；
- 其他行只做粗体转换。

代码高亮语言固定为 cpp，不读取围栏后的语言标记。
所有行最终都作为同一个列表容器的条目渲染。
"""

import html
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Literal, Tuple

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name

CODE_LANGUAGE = "cpp"
CODE_STYLE = "solarized-light"
FENCE = "```"

_BOLD = re.compile(r"\*\*(.*?)\*\*")

LineKind = Literal["list_item", "text", "code"]


@dataclass
class Span:
    text: str
    bold: bool = False


@dataclass
class DisplayLine:
    kind: LineKind
    spans: List[Span] = field(default_factory=list)
    code: str = ""
    language: str = ""
    multiline: bool = False
    closed: bool = True


def parse_bold(text: str) -> List[Span]:
    spans: List[Span] = []
    pos = 0
    for m in _BOLD.finditer(text):
        if m.start() > pos:
            spans.append(Span(text[pos:m.start()]))
        spans.append(Span(m.group(1), bold=True))
        pos = m.end()
    if pos < len(text):
        spans.append(Span(text[pos:]))
    return spans


def _is_single_line_fence(line: str) -> bool:
    return len(line) >= 2 * len(FENCE) and line.startswith(FENCE) and line.endswith(FENCE)


def format_message(message: str) -> List[DisplayLine]:
    lines = message.split("\n")
    out: List[DisplayLine] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("* "):
            out.append(DisplayLine("list_item", parse_bold(line[2:])))
        elif _is_single_line_fence(line):
            out.append(DisplayLine("code", code=line[3:-3], language=CODE_LANGUAGE))
        elif line.startswith(FENCE):
            body: List[str] = []
            closed = False
            i += 1
            while i < len(lines):
                current = lines[i]
                if current.rstrip().endswith(FENCE):
                    head = current.rstrip()[: -len(FENCE)]
                    if head:
                        body.append(head)
                    closed = True
                    break
                body.append(current)
                i += 1
            out.append(DisplayLine(
                "code",
                code="\n".join(body),
                language=CODE_LANGUAGE,
                multiline=True,
                closed=closed,
            ))
        else:
            out.append(DisplayLine("text", parse_bold(line)))
        i += 1
    return out


def visible_text(line: DisplayLine) -> str:
    """界面上实际可见的纯文本。"""
    if line.kind == "code":
        return line.code
    return "".join(s.text for s in line.spans)


def _spans_markup(spans: Iterable[Span]) -> str:
    return "".join(f"**{s.text}**" if s.bold else s.text for s in spans)


def to_markup(lines: Iterable[DisplayLine]) -> str:
    """从显示行重建标记文本。围栏上的语言标记不会保留。"""
    parts = []
    for line in lines:
        if line.kind == "list_item":
            parts.append("* " + _spans_markup(line.spans))
        elif line.kind == "code" and line.multiline:
            parts.append(f"{FENCE}\n{line.code}\n{FENCE}" if line.closed else f"{FENCE}\n{line.code}")
        elif line.kind == "code":
            parts.append(f"{FENCE}{line.code}{FENCE}")
        else:
            parts.append(_spans_markup(line.spans))
    return "\n".join(parts)


def code_tokens(code: str, language: str = CODE_LANGUAGE) -> List[Tuple[Any, str]]:
    """按固定语言切分代码 token，供桌面界面着色。"""
    lexer = get_lexer_by_name(language)
    return list(lexer.get_tokens(code))


def _spans_html(spans: Iterable[Span]) -> str:
    return "".join(
        f"<strong>{html.escape(s.text)}</strong>" if s.bold else html.escape(s.text)
        for s in spans
    )


def render_html(lines: Iterable[DisplayLine]) -> str:
    formatter = HtmlFormatter(style=CODE_STYLE, noclasses=True)
    items = []
    for line in lines:
        if line.kind == "list_item":
            items.append(f"<li>{_spans_html(line.spans)}</li>")
        elif line.kind == "code":
            highlighted = highlight(line.code, get_lexer_by_name(line.language or CODE_LANGUAGE), formatter)
            items.append(
                '<div class="code-block">'
                f"{highlighted}"
                f'<button class="copy" data-code="{html.escape(line.code, quote=True)}">Copy</button>'
                "</div>"
            )
        else:
            items.append(f"<span>{_spans_html(line.spans)}</span>")
    return "<ul>" + "".join(items) + "</ul>"
