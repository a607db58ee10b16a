"""Minimal terminal demonstration of the streaming client."""

import sys

from chat_relay import ChatSession, StreamingClient

if __name__ == "__main__":
    question = " ".join(sys.argv[1:]) or "用三句话介绍一下你自己"
    session = ChatSession(StreamingClient())
    print("You:", question)
    print("Gemini: ", end="", flush=True)
    for piece in session.client.send_and_stream(question, session.conversation):
        print(piece, end="", flush=True)
    print()
    if session.conversation.last and session.conversation.last.content.startswith("Error:"):
        print(session.conversation.last.content)
