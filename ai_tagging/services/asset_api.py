"""HTTP client for the external asset-management API.

Every endpoint answers with an envelope ``{"code", "message", "result"}``;
``code == "0"`` means success. Team calls authenticate with a per-team API key
obtained by exchanging the app key and secret, cached in a CredentialCache.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from ai_tagging.config import Settings
from ai_tagging.core.exceptions import ApplyError

logger = logging.getLogger(__name__)


@dataclass
class ExternalAsset:
    id: str
    name: str
    tags: list[dict[str, Any]] = field(default_factory=list)  # [{"tagId", "tagPath"}]


class CredentialCache:
    """In-memory TTL cache of team API keys. Injected so tests and workers can share or reset it."""

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = asyncio.Lock()

    def get(self, team_id: str) -> str | None:
        entry = self._entries.get(team_id)
        if entry is None:
            return None
        api_key, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[team_id]
            return None
        return api_key

    def put(self, team_id: str, api_key: str) -> None:
        self._entries[team_id] = (api_key, time.monotonic() + self.ttl_seconds)

    def invalidate(self, team_id: str) -> None:
        self._entries.pop(team_id, None)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock


class MuseAssetClient:
    """AssetTaggingAPI implementation."""

    def __init__(
        self,
        settings: Settings,
        credential_cache: CredentialCache,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = settings.asset_api_base_url.rstrip("/")
        self.app_key = settings.asset_api_app_key
        self.app_secret = settings.asset_api_app_secret
        self.timeout = settings.asset_api_timeout_seconds
        self.max_retries = settings.asset_api_max_retries
        self.credentials = credential_cache
        self._transport = transport

    async def _request(
        self, api_path: str, body: Any, authorization: str, team_id: str | None = None
    ) -> Any:
        """POST JSON and unwrap the response envelope.

        A 401 on a team call drops that team's cached API key so the next
        call exchanges a fresh one.

        Raises:
            ApplyError: Transport failure after retries, HTTP error status,
                or an envelope with a non-zero code.
        """
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url, timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.post(
                        api_path, json=body, headers={"Authorization": authorization}
                    )
                    response.raise_for_status()
                    payload = response.json()
                break
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < self.max_retries:
                    backoff = 2**attempt
                    logger.warning(
                        "Asset API call %s attempt %d failed: %s, retrying in %ds",
                        api_path,
                        attempt + 1,
                        e,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise ApplyError(
                    f"Asset API {api_path} unreachable after {self.max_retries + 1} attempts: {e}"
                ) from e
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 401 and team_id is not None:
                    logger.warning(
                        "Asset API rejected cached team key, invalidating",
                        extra={"team_id": team_id, "api_path": api_path},
                    )
                    self.credentials.invalidate(team_id)
                raise ApplyError(
                    f"Asset API {api_path} failed, status code: {e.response.status_code}"
                ) from e
            except ValueError as e:
                raise ApplyError(f"Asset API {api_path} returned a non-JSON body") from e

        if not isinstance(payload, dict) or payload.get("code") != "0":
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ApplyError(f"Asset API {api_path} failed, message: {message}")
        return payload.get("result")

    async def _team_api_key(self, team_id: str) -> str:
        cached = self.credentials.get(team_id)
        if cached:
            return cached

        async with self.credentials.lock:
            cached = self.credentials.get(team_id)
            if cached:
                return cached

            if not self.app_key or not self.app_secret:
                raise ApplyError("Asset API app key/secret are not configured")
            token = base64.b64encode(f"{self.app_key}:{self.app_secret}".encode()).decode()
            org_id: int | str = int(team_id) if team_id.isdigit() else team_id
            result = await self._request(
                "/api/apps/exchange-api-key", {"orgId": org_id}, f"Basic {token}"
            )
            api_key = (result or {}).get("apiKey")
            if not api_key:
                logger.error("exchange-api-key returned no apiKey", extra={"team_id": team_id})
                raise ApplyError("Invalid API key received from exchange-api-key")

            self.credentials.put(team_id, api_key)
            return api_key

    async def apply_tags(
        self,
        team_id: str,
        asset_external_id: str,
        tag_external_ids: list[str],
        append: bool = True,
    ) -> None:
        api_key = await self._team_api_key(team_id)
        await self._request(
            "/api/muse/set-asset-tags",
            {"assetId": asset_external_id, "tagIds": tag_external_ids, "append": append},
            f"Bearer {api_key}",
            team_id=team_id,
        )
        logger.info(
            "asset_api.tags_applied",
            extra={
                "team_id": team_id,
                "asset_external_id": asset_external_id,
                "tag_count": len(tag_external_ids),
            },
        )

    async def fetch_assets_by_ids(
        self, team_id: str, asset_external_ids: list[str]
    ) -> list[ExternalAsset]:
        api_key = await self._team_api_key(team_id)
        result = await self._request(
            "/api/muse/query-assets-by-ids",
            {"assetIds": asset_external_ids},
            f"Bearer {api_key}",
            team_id=team_id,
        )
        assets = result.get("assets", []) if isinstance(result, dict) else (result or [])
        return [
            ExternalAsset(
                id=str(item["id"]),
                name=item.get("name", ""),
                tags=[
                    {"tagId": str(tag.get("id")), "tagPath": tag.get("tagPath") or [tag.get("name")]}
                    for tag in item.get("tags") or []
                ],
            )
            for item in assets
        ]
