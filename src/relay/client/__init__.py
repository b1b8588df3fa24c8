from .base import ChatClient
from .http import HttpChatClient, build_chat_client

__all__ = ["ChatClient", "HttpChatClient", "build_chat_client"]
