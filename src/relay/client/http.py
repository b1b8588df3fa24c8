"""HTTP implementation of the remote chat client."""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import get_api_token
from ..errors import ChatApiError, ChatNotFoundError
from ..models.agent import Organization, SpecialistAgent
from ..models.chat import ChatMessage, ChatSnapshot
from ..utils.sanitize import sanitize_error
from .base import user_message


def _items(data: Any) -> list:
    """List endpoints answer either a bare array or an {items: [...]} envelope."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("items") or []
    return []


def _extract_chat_id(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    for key in ("chat_id", "id"):
        if data.get(key):
            return str(data[key])
    chat = data.get("chat")
    if isinstance(chat, dict) and chat.get("id"):
        return str(chat["id"])
    return None


def _api_error(response: httpx.Response) -> ChatApiError:
    body = ""
    try:
        body = response.text
    except httpx.ResponseNotRead:
        pass
    body = sanitize_error(body)
    message = f"{response.status_code} | {body}"
    if response.status_code == 404:
        return ChatNotFoundError(message, status_code=404, body=body)
    return ChatApiError(message, status_code=response.status_code, body=body)


def _parse(model: type[BaseModel], data: Any, what: str):
    """Validate one payload, reporting an unexpected shape as a ChatApiError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ChatApiError(
            f"{what} returned an unexpected payload ({e.error_count()} validation error(s))",
            body=sanitize_error(str(e)[:500]),
        ) from e


class HttpChatClient:
    name = "http"

    def __init__(
        self,
        token: str,
        base_url: str = "https://blink.so/api",
        timeout: float = 30,
        per_page: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "content-type": "application/json",
            },
        )

    async def __aenter__(self) -> "HttpChatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _api_error(e.response) from e
        except httpx.HTTPError as e:
            raise ChatApiError(sanitize_error(f"{method} {path} failed: {e}")) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ChatApiError(
                f"{method} {path} returned invalid JSON",
                status_code=response.status_code,
                body=sanitize_error(response.text[:500]),
            ) from e

    async def list_organizations(self) -> list[Organization]:
        data = await self._request("GET", "/organizations")
        return [_parse(Organization, item, "GET /organizations") for item in _items(data)]

    async def list_agents(self, organization_id: str) -> list[SpecialistAgent]:
        data = await self._request(
            "GET",
            "/agents",
            params={"organization_id": organization_id, "per_page": self.per_page},
        )
        return [_parse(SpecialistAgent, item, "GET /agents") for item in _items(data)]

    async def get_agent(self, agent_id: str) -> SpecialistAgent:
        data = await self._request("GET", f"/agents/{agent_id}")
        return _parse(SpecialistAgent, data, f"GET /agents/{agent_id}")

    async def create_chat(
        self,
        organization_id: str,
        agent_id: str,
        query: str,
        stream: bool = False,
    ) -> str:
        body = {
            "organization_id": organization_id,
            "agent_id": agent_id,
            "stream": stream,
            "messages": [user_message(query)],
        }
        if stream:
            return await self._create_chat_streaming(body)

        data = await self._request("POST", "/chats", json=body)
        chat_id = _extract_chat_id(data)
        if not chat_id:
            raise ChatApiError("POST /chats response did not include a chat id")
        return chat_id

    async def _create_chat_streaming(self, body: dict) -> str:
        """Read events until the chat id shows up, then drop the stream.

        Generation keeps running server-side; the caller polls for the result.
        """
        try:
            async with self._http.stream("POST", "/chats", json=body) as response:
                if response.is_error:
                    await response.aread()
                    raise _api_error(response)
                async for line in response.aiter_lines():
                    line = line.strip()
                    if line.startswith("data:"):
                        line = line[len("data:"):].strip()
                    if not line or line == "[DONE]":
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError:
                        continue
                    chat_id = _extract_chat_id(event)
                    if chat_id:
                        return chat_id
        except httpx.HTTPError as e:
            raise ChatApiError(sanitize_error(f"POST /chats failed: {e}")) from e
        raise ChatApiError("POST /chats stream ended without a chat id")

    async def append_message(self, chat_id: str, text: str) -> None:
        await self._request(
            "POST",
            "/messages",
            json={
                "chat_id": chat_id,
                "behavior": "enqueue",
                "messages": [user_message(text)],
            },
        )

    async def get_chat(self, chat_id: str) -> ChatSnapshot:
        data = await self._request("GET", f"/chats/{chat_id}")
        if isinstance(data, dict) and not data.get("id"):
            data = {**data, "id": chat_id}
        return _parse(ChatSnapshot, data, f"GET /chats/{chat_id}")

    async def get_messages(self, chat_id: str) -> list[ChatMessage]:
        data = await self._request("GET", "/messages", params={"chat_id": chat_id})
        return [_parse(ChatMessage, item, "GET /messages") for item in _items(data)]


def build_chat_client(config: dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> HttpChatClient:
    """Factory: build the HTTP client from resolved config. Raises ConfigurationError."""
    api = config.get("api") or {}
    token = get_api_token(config)
    return HttpChatClient(
        token=token,
        base_url=api.get("base_url", "https://blink.so/api"),
        timeout=api.get("timeout_seconds", 30),
        per_page=api.get("per_page", 100),
        transport=transport,
    )
