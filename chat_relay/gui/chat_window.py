import argparse
import threading
import tkinter as tk
from tkinter import scrolledtext

from pygments.token import Comment, Keyword, Literal, Name, Operator

from chat_relay.client.formatter import code_tokens, format_message
from chat_relay.client.stream_client import ChatSession, StreamingClient, can_submit
from chat_relay.config.env_utils import save_backend_url
from chat_relay.config.settings import load_settings
from chat_relay.domain.conversation import ConversationState
from chat_relay.infrastructure.logging.logger import setup_logger

# 近似 solarized-light 的配色
TOKEN_COLORS = {
    Keyword: "#859900",
    Name.Function: "#268bd2",
    Name.Class: "#268bd2",
    Literal.String: "#2aa198",
    Literal.Number: "#d33682",
    Comment: "#93a1a1",
    Operator: "#657b83",
}


def _token_tag(ttype):
    while ttype is not None:
        if ttype in TOKEN_COLORS:
            return str(ttype)
        ttype = ttype.parent
    return None


class App:
    def __init__(self, root, session: ChatSession):
        self.root = root
        self.root.title("Gemini AI Chat")
        self.session = session
        self._copy_buttons = []
        self.chat = scrolledtext.ScrolledText(root, width=80, height=24, wrap=tk.WORD)
        self.chat.pack(fill=tk.BOTH, expand=True)
        self.chat.tag_config("user", foreground="#1a73e8")
        self.chat.tag_config("bot", foreground="#34a853")
        self.chat.tag_config("bold", font=("TkDefaultFont", 10, "bold"))
        self.chat.tag_config("bullet", lmargin1=12, lmargin2=24)
        self.chat.tag_config("code", font=("TkFixedFont", 10), background="#fdf6e3")
        self.chat.tag_config("welcome", foreground="#5f6368", justify=tk.CENTER)
        for ttype, color in TOKEN_COLORS.items():
            self.chat.tag_config(str(ttype), foreground=color)
        row = tk.Frame(root)
        row.pack(fill=tk.X)
        self.entry = tk.Entry(row)
        self.entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
        self.entry.bind("<Return>", self.on_send_event)
        self.entry.bind("<KeyRelease>", lambda e: self.refresh_send_state())
        self.send_btn = tk.Button(row, text="发送", command=self.on_send, state=tk.DISABLED)
        self.send_btn.pack(side=tk.LEFT)
        self.status = tk.Label(root, text="准备就绪", anchor=tk.W)
        self.status.pack(fill=tk.X)
        self.render(self.session.conversation)

    def refresh_send_state(self):
        enabled = can_submit(self.entry.get()) and not self.session.loading
        self.send_btn.config(state=tk.NORMAL if enabled else tk.DISABLED)

    def on_send(self):
        text = self.entry.get()
        if self.session.loading or not can_submit(text):
            return
        self.entry.delete(0, tk.END)
        self.send_btn.config(state=tk.DISABLED)
        self.status.config(text="Gemini 正在输入...")

        def worker():
            self.session.ask(text, on_update=lambda conv: self.root.after(0, lambda: self.render(conv)))
            self.root.after(0, self.on_done)

        threading.Thread(target=worker, daemon=True).start()

    def on_send_event(self, event):
        self.on_send()
        return "break"

    def on_done(self):
        self.status.config(text="准备就绪")
        self.refresh_send_state()

    def copy_code(self, code):
        self.root.clipboard_clear()
        self.root.clipboard_append(code)
        self.status.config(text="代码已复制到剪贴板")

    def render(self, conversation: ConversationState):
        self.chat.config(state=tk.NORMAL)
        self.chat.delete(1.0, tk.END)
        # 删除文本不会销毁嵌入的按钮
        for btn in self._copy_buttons:
            btn.destroy()
        self._copy_buttons = []
        if not conversation.entries:
            self.chat.insert(tk.END, "\nWelcome to Gemini AI Chat!\n", "welcome")
            self.chat.insert(tk.END, "How can I help you today?\n", "welcome")
        for entry in list(conversation.entries):
            if entry.role == "user":
                self.chat.insert(tk.END, "你: ", ("user", "bold"))
                self.chat.insert(tk.END, entry.content + "\n", "user")
            else:
                self.chat.insert(tk.END, "Gemini:\n", ("bot", "bold"))
                self._insert_reply(entry.content)
        if conversation.loading:
            self.chat.insert(tk.END, "Gemini is typing...\n", "welcome")
        self.chat.config(state=tk.DISABLED)
        self.chat.see(tk.END)

    def _insert_reply(self, content):
        for line in format_message(content):
            if line.kind == "code":
                for ttype, value in code_tokens(line.code, line.language):
                    tag = _token_tag(ttype)
                    self.chat.insert(tk.END, value, ("code", tag) if tag else "code")
                btn = tk.Button(self.chat, text="Copy", command=lambda c=line.code: self.copy_code(c))
                self.chat.window_create(tk.END, window=btn)
                self._copy_buttons.append(btn)
                self.chat.insert(tk.END, "\n")
                continue
            tags = ("bullet",) if line.kind == "list_item" else ()
            if line.kind == "list_item":
                self.chat.insert(tk.END, "• ", tags)
            for span in line.spans:
                self.chat.insert(tk.END, span.text, tags + (("bold",) if span.bold else ()))
            self.chat.insert(tk.END, "\n", tags)


def build_session(argv=None) -> ChatSession:
    """解析命令行、加载配置并初始化日志，返回窗口使用的 ChatSession。"""
    parser = argparse.ArgumentParser(description="Gemini AI Chat")
    parser.add_argument("--backend", help="relay 地址，会写入 .env 的 BACKEND_URL 供下次使用")
    parser.add_argument("--framing", choices=["sse", "legacy"], default="sse")
    args = parser.parse_args(argv)
    if args.backend:
        save_backend_url(args.backend)
        settings = load_settings(backend_url=args.backend)
    else:
        settings = load_settings()
    setup_logger(settings)
    return ChatSession(StreamingClient.from_settings(settings, framing=args.framing))


def main(argv=None):
    session = build_session(argv)
    root = tk.Tk()
    App(root, session)
    root.mainloop()


if __name__ == "__main__":
    main()
