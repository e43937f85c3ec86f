from __future__ import annotations

from typing import Any
from urllib.parse import quote, urlencode

import httpx

from aiscraper.api_client import ApiClient, ApiResult, InMemoryTokenStore, RequestOptions
from aiscraper.tokens import is_demo_token


def _query(path: str, params: dict[str, Any]) -> str:
    clean = {k: (v.value if hasattr(v, "value") else v) for k, v in params.items() if v is not None}
    return f"{path}?{urlencode(clean)}" if clean else path


class AiScraperClient:
    """Typed access to the AiScraper REST API.

    Every call goes through `ApiClient`, so it inherits the per-attempt
    timeout and retry policy, and returns an `ApiResult` instead of raising.
    A successful login or registration stores the issued token; later calls
    send it as a bearer credential.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_store: InMemoryTokenStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        options: RequestOptions | None = None,
        **client_kwargs: Any,
    ) -> None:
        self.tokens = token_store if token_store is not None else InMemoryTokenStore()
        self.api = ApiClient(
            base_url=base_url,
            token_store=self.tokens,
            options=options,
            transport=transport,
            **client_kwargs,
        )

    async def close(self) -> None:
        await self.api.close()

    async def __aenter__(self) -> "AiScraperClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.tokens.get_token())

    @property
    def is_demo_session(self) -> bool:
        return is_demo_token(self.tokens.get_token())

    # auth

    async def _remember_token(self, result: ApiResult) -> ApiResult:
        if result.ok and isinstance(result.value, dict) and result.value.get("token"):
            self.tokens.set_token(result.value["token"])
        return result

    async def login(self, email: str, password: str) -> ApiResult:
        result = await self.api.post("/api/auth/login", {"email": email, "password": password})
        return await self._remember_token(result)

    async def register(self, name: str, email: str, password: str) -> ApiResult:
        result = await self.api.post("/api/auth/register", {"name": name, "email": email, "password": password})
        return await self._remember_token(result)

    def logout(self) -> None:
        self.tokens.clear()

    async def verify(self) -> ApiResult:
        return await self.api.auth_get("/api/auth/verify")

    async def profile(self) -> ApiResult:
        return await self.api.auth_get("/api/auth/profile")

    # crawlers

    async def list_crawlers(
        self,
        *,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> ApiResult:
        path = _query(
            "/api/crawlers",
            {"page": page, "limit": limit, "status": status, "search": search, "sortBy": sort_by, "sortOrder": sort_order},
        )
        return await self.api.auth_get(path)

    async def get_crawler(self, crawler_id: str) -> ApiResult:
        return await self.api.auth_get(f"/api/crawlers/{quote(crawler_id, safe='')}")

    async def create_crawler(self, data: dict[str, Any]) -> ApiResult:
        return await self.api.auth_post("/api/crawlers", data)

    async def update_crawler(self, crawler_id: str, data: dict[str, Any]) -> ApiResult:
        return await self.api.auth_put(f"/api/crawlers/{quote(crawler_id, safe='')}", data)

    async def delete_crawler(self, crawler_id: str) -> ApiResult:
        return await self.api.auth_delete(f"/api/crawlers/{quote(crawler_id, safe='')}")

    async def crawler_stats(self) -> ApiResult:
        return await self.api.auth_get("/api/crawlers/stats")

    # properties

    async def list_properties(
        self,
        *,
        page: int | None = None,
        limit: int | None = None,
        category: str | None = None,
        status: str | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> ApiResult:
        path = _query(
            "/api/properties",
            {
                "page": page,
                "limit": limit,
                "category": category,
                "status": status,
                "search": search,
                "sortBy": sort_by,
                "sortOrder": sort_order,
            },
        )
        return await self.api.auth_get(path)

    async def get_property(self, property_id: str) -> ApiResult:
        return await self.api.auth_get(f"/api/properties/{quote(property_id, safe='')}")

    async def create_property(self, data: dict[str, Any]) -> ApiResult:
        return await self.api.auth_post("/api/properties", data)

    async def update_property(self, property_id: str, data: dict[str, Any]) -> ApiResult:
        return await self.api.auth_put(f"/api/properties/{quote(property_id, safe='')}", data)

    async def delete_property(self, property_id: str) -> ApiResult:
        return await self.api.auth_delete(f"/api/properties/{quote(property_id, safe='')}")

    async def property_stats(self) -> ApiResult:
        return await self.api.auth_get("/api/properties/stats")

    # account

    async def update_profile(self, *, name: str, email: str) -> ApiResult:
        return await self.api.auth_put("/api/account/profile", {"name": name, "email": email})

    async def change_password(self, *, current_password: str, new_password: str) -> ApiResult:
        return await self.api.auth_put(
            "/api/account/password",
            {"currentPassword": current_password, "newPassword": new_password},
        )

    async def delete_account(self) -> ApiResult:
        result = await self.api.auth_delete("/api/account")
        if result.ok:
            self.tokens.clear()
        return result

    async def account_stats(self) -> ApiResult:
        return await self.api.auth_get("/api/account/stats")
