"""relay 与客户端之间的帧格式。

每个片段编码为一帧 ``data: <fragment>\\n\\n``，不带 id / event / retry 字段。

客户端有两种解码方式：

- ``sse``（默认）: 按空行切分帧，只去掉每行行首的 ``data:`` 前缀，
  多条 data 行用 ``\\n`` 拼回原文。
- ``legacy``: 对每个解码后的 chunk 删除所有 ``data: `` 子串，不做分帧。
  正文里出现的 ``data: `` 也会被删掉，chunk 里的空行分隔符则原样保留。

分帧按 ``\\r\\n``、``\\r``、``\\n`` 切行，解码端统一用 ``\\n`` 拼回，
所以片段中的 ``\\r\\n`` 与单独的 ``\\r`` 到客户端都会变成 ``\\n``。
"""

import re
from typing import List, Literal, Protocol

from chat_relay.domain.exceptions import StreamInterruptedError

Framing = Literal["sse", "legacy"]

DATA_PREFIX = "data: "
FRAME_TERMINATOR = "\n\n"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def encode_frame(fragment: str, split_newlines: bool = True) -> str:
    """把一个片段编码成一帧。

    split_newlines 为 True 时，片段里的每一行各占一条 ``data:`` 行；
    为 False 时原样写成一行，片段中的换行会破坏分帧。
    """
    if not split_newlines:
        return f"{DATA_PREFIX}{fragment}{FRAME_TERMINATOR}"
    lines = _LINE_BREAK.split(fragment)
    return "".join(f"{DATA_PREFIX}{line}\n" for line in lines) + "\n"


class ChunkDecoder(Protocol):
    def feed(self, text: str) -> str:
        """输入一段解码后的文本，返回其中可以立即展示的正文。"""
        ...

    def flush(self) -> str:
        """流结束时调用，返回剩余正文；残留不完整帧时抛出 StreamInterruptedError。"""
        ...


class LegacyChunkDecoder:
    def feed(self, text: str) -> str:
        return text.replace(DATA_PREFIX, "")

    def flush(self) -> str:
        return ""


class FrameDecoder:
    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> str:
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        out: List[str] = []
        while FRAME_TERMINATOR in self._buffer:
            event, self._buffer = self._buffer.split(FRAME_TERMINATOR, 1)
            out.append(self._parse_event(event))
        return "".join(out)

    def flush(self) -> str:
        rest, self._buffer = self._buffer, ""
        if rest.strip():
            raise StreamInterruptedError(
                code="STREAM_INTERRUPTED",
                message="stream ended in the middle of a frame",
                pending=len(rest),
            )
        return ""

    @staticmethod
    def _parse_event(event: str) -> str:
        data_lines = []
        for line in event.split("\n"):
            if not line.startswith("data:"):
                # 注释行与 event/id/retry 字段都不携带正文
                continue
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)
        return "\n".join(data_lines)


def make_decoder(framing: Framing = "sse") -> ChunkDecoder:
    if framing == "legacy":
        return LegacyChunkDecoder()
    if framing == "sse":
        return FrameDecoder()
    raise ValueError(f"Unknown framing: {framing!r}")
