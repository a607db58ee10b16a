"""客户端会话状态。

ConversationState 只存在于一次客户端会话的生命周期内，不做持久化。
回复的累积过程由 ReplyAccumulator 显式维护 IDLE / ACCUMULATING 两个状态，
而不是通过“最后一条消息是不是 bot”来推断。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional

EntryRole = Literal["user", "bot"]

ERROR_REPLY = "Error: Could not get a response"


@dataclass
class ConversationEntry:
    role: EntryRole
    content: str


@dataclass
class ConversationState:
    """按时间顺序排列的会话条目，以及当前是否在等待回复。"""

    entries: List[ConversationEntry] = field(default_factory=list)
    loading: bool = False

    def append(self, role: EntryRole, content: str) -> ConversationEntry:
        entry = ConversationEntry(role=role, content=content)
        self.entries.append(entry)
        return entry

    def add_user(self, content: str) -> ConversationEntry:
        return self.append("user", content)

    def add_error_reply(self) -> ConversationEntry:
        return self.append("bot", ERROR_REPLY)

    @property
    def last(self) -> Optional[ConversationEntry]:
        return self.entries[-1] if self.entries else None

    def __len__(self) -> int:
        return len(self.entries)


class ReplyState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class ReplyAccumulator:
    """把一轮回复的增量片段累积到 ConversationState 中。

    - IDLE: 尚未收到任何片段；第一个非空片段会追加一条新的 bot 条目。
    - ACCUMULATING: 之后的片段只更新这条 bot 条目的内容。

    每次用户提交都要新建一个 accumulator，因此新的提问一定会开启新的 bot 条目。
    """

    def __init__(self, conversation: ConversationState):
        self._conversation = conversation
        self._buffer: List[str] = []
        self._entry: Optional[ConversationEntry] = None
        self.state = ReplyState.IDLE

    @property
    def text(self) -> str:
        return "".join(self._buffer)

    def feed(self, fragment: str) -> str:
        """追加一个片段并同步会话，返回当前完整回复。"""
        if not fragment:
            return self.text
        self._buffer.append(fragment)
        message = self.text
        if self.state is ReplyState.IDLE:
            self._entry = self._conversation.append("bot", message)
            self.state = ReplyState.ACCUMULATING
        else:
            self._entry.content = message
        return message
