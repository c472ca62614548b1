"""
SkillSwap — Async HTTP client

Thin ``httpx.AsyncClient`` wrapper over the public API, used by scripts and
by the polling helpers in ``app.client.poller``.  Non-2xx responses raise
``ApiError`` carrying the status code and the server's ``detail``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

logger = structlog.get_logger("skillswap.client.api")

DEFAULT_BASE_URL = "http://localhost:8000/api"


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any, kind: str | None = None) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.kind = kind


class SkillSwapClient:
    """Session-scoped API client; remembers the bearer token after login."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SkillSwapClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = await self._http.request(method, path.lstrip("/"), headers=headers, **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {"detail": response.text}
            logger.debug("api_error", method=method, path=path, status=response.status_code)
            raise ApiError(response.status_code, body.get("detail"), body.get("error"))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ── Auth ──────────────────────────────────────────────────────────────

    async def register(self, **fields) -> dict:
        data = await self._request("POST", "auth/register", json=fields)
        self.token = data["token"]
        return data

    async def login(self, email: str, password: str) -> dict:
        data = await self._request("POST", "auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data

    async def me(self) -> dict:
        return await self._request("GET", "auth/me")

    # ── Users & matching ──────────────────────────────────────────────────

    async def list_users(self) -> list[dict]:
        return await self._request("GET", "users")

    async def matches(self) -> list[dict]:
        return await self._request("GET", "users/matches")

    async def update_profile(self, **changes) -> dict:
        return await self._request("PUT", "users/profile", json=changes)

    # ── Requests ──────────────────────────────────────────────────────────

    async def send_request(self, to_user_id: str) -> dict:
        return await self._request("POST", "requests/send", json={"to_user_id": str(to_user_id)})

    async def incoming_requests(self) -> list[dict]:
        return await self._request("GET", "requests/incoming")

    async def sent_requests(self) -> list[dict]:
        return await self._request("GET", "requests/sent")

    async def accept_request(self, request_id: str) -> dict:
        return await self._request("PUT", f"requests/{request_id}/accept")

    async def reject_request(self, request_id: str) -> dict:
        return await self._request("PUT", f"requests/{request_id}/reject")

    # ── Chats ─────────────────────────────────────────────────────────────

    async def list_chats(self) -> list[dict]:
        return await self._request("GET", "chats")

    async def get_chat(self, chat_id: str) -> dict:
        return await self._request("GET", f"chats/{chat_id}")

    async def send_message(self, chat_id: str, text: str) -> dict:
        return await self._request("POST", f"chats/{chat_id}/message", json={"text": text})

    # ── Admin ─────────────────────────────────────────────────────────────

    async def admin_list_users(self) -> list[dict]:
        return await self._request("GET", "admin/users")

    async def admin_verify_user(self, user_id: str) -> dict:
        return await self._request("PUT", f"admin/users/{user_id}/verify")

    async def admin_delete_user(self, user_id: str) -> dict:
        return await self._request("DELETE", f"admin/users/{user_id}")
