"""
GitHub Gist backend — a secret gist is the vault's remote blob.

The vault document lives in the gist file named ``promptvault_data.json``
(configurable). Discovery pages through the account's gists and picks the
first one holding that file.

Usage:
    store = GistStore()
    result = await store.locate(token)
    if result.is_ok:
        dataset = (await store.fetch(token, result.value)).value
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from promptvault.config import DEFAULT_API_BASE, DEFAULT_BLOB_NAME, VaultConfig
from promptvault.errors import ErrorKind, SerializationFailure
from promptvault.remote.base import RemoteResult, RemoteVaultStore
from promptvault.vault.models import VaultDataset

logger = logging.getLogger(__name__)

GIST_DESCRIPTION = "PromptVault — encrypted prompt storage (do not edit manually)"


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/vnd.github.v3+json",
    }


def _status_error(resp: httpx.Response) -> RemoteResult[Any]:
    """Map a non-success HTTP response to an error result."""
    if resp.status_code in (401, 403):
        return RemoteResult.err(ErrorKind.CREDENTIAL_INVALID, f"HTTP {resp.status_code}")
    return RemoteResult.err(ErrorKind.NETWORK, f"HTTP {resp.status_code}")


class GistStore(RemoteVaultStore):
    """RemoteVaultStore over the GitHub REST API."""

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        *,
        blob_name: str = DEFAULT_BLOB_NAME,
        page_size: int = 100,
        max_pages: int = 3,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.blob_name = blob_name
        self.page_size = page_size
        self.max_pages = max_pages
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: VaultConfig) -> GistStore:
        return cls(
            config.api_base,
            blob_name=config.blob_name,
            page_size=config.page_size,
            max_pages=config.max_pages,
            timeout=config.http_timeout,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GistStore:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def validate_credential(self, token: str) -> RemoteResult[str]:
        """GET /user — ok(login) if the token is accepted."""
        try:
            resp = await self._client.get(f"{self.api_base}/user", headers=_headers(token))
        except httpx.HTTPError as e:
            logger.warning("Token validation request failed: %s", e)
            return RemoteResult.err(ErrorKind.NETWORK, str(e))
        if not resp.is_success:
            logger.info("Token rejected: HTTP %d", resp.status_code)
            return _status_error(resp)
        try:
            login = resp.json().get("login") or ""
        except (ValueError, AttributeError) as e:
            return RemoteResult.err(ErrorKind.SERIALIZATION, str(e))
        return RemoteResult.ok(str(login))

    async def locate(self, token: str) -> RemoteResult[str]:
        """Scan up to max_pages of the account's gists for the vault file."""
        for page in range(1, self.max_pages + 1):
            try:
                resp = await self._client.get(
                    f"{self.api_base}/gists",
                    params={"per_page": self.page_size, "page": page},
                    headers=_headers(token),
                )
            except httpx.HTTPError as e:
                logger.warning("Gist listing failed on page %d: %s", page, e)
                return RemoteResult.err(ErrorKind.NETWORK, str(e))
            if not resp.is_success:
                logger.warning("Gist listing failed on page %d: HTTP %d", page, resp.status_code)
                return _status_error(resp)
            try:
                gists = resp.json()
            except ValueError as e:
                return RemoteResult.err(ErrorKind.SERIALIZATION, str(e))
            if not isinstance(gists, list) or not gists:
                break

            for gist in gists:
                if not isinstance(gist, dict) or not gist.get("id"):
                    continue
                if self.blob_name in (gist.get("files") or {}):
                    logger.info("Found vault gist %s on page %d", gist["id"], page)
                    return RemoteResult.ok(str(gist["id"]))

        return RemoteResult.absent("no vault gist found")

    async def fetch(self, token: str, handle: str) -> RemoteResult[VaultDataset]:
        """GET /gists/{id} and parse the vault file."""
        try:
            resp = await self._client.get(
                f"{self.api_base}/gists/{handle}", headers=_headers(token)
            )
            if resp.status_code == 404:
                return RemoteResult.absent(f"gist {handle} not found")
            if not resp.is_success:
                logger.warning("Gist fetch failed: HTTP %d", resp.status_code)
                return _status_error(resp)

            gist = resp.json()
            file = (gist.get("files") or {}).get(self.blob_name)
            if not file:
                return RemoteResult.absent(f"gist {handle} has no {self.blob_name}")

            content = file.get("content") or ""
            if file.get("truncated") and file.get("raw_url"):
                # Files over 1 MB come back truncated; the raw URL has the full text
                raw = await self._client.get(file["raw_url"], headers=_headers(token))
                if not raw.is_success:
                    return _status_error(raw)
                content = raw.text
        except httpx.HTTPError as e:
            logger.warning("Gist fetch failed: %s", e)
            return RemoteResult.err(ErrorKind.NETWORK, str(e))
        except (ValueError, AttributeError) as e:
            return RemoteResult.err(ErrorKind.SERIALIZATION, str(e))

        try:
            return RemoteResult.ok(VaultDataset.from_json(content))
        except SerializationFailure as e:
            logger.warning("Gist %s holds a malformed vault document: %s", handle, e)
            return RemoteResult.err(ErrorKind.SERIALIZATION, str(e))

    async def upsert(
        self, token: str, handle: str | None, dataset: VaultDataset
    ) -> RemoteResult[str]:
        """POST a new secret gist, or PATCH the vault file of an existing one."""
        content = json.dumps(dataset.to_document(), indent=2, ensure_ascii=False)
        files = {self.blob_name: {"content": content}}

        try:
            if handle:
                resp = await self._client.patch(
                    f"{self.api_base}/gists/{handle}",
                    json={"description": GIST_DESCRIPTION, "files": files},
                    headers=_headers(token),
                )
                if resp.status_code == 404:
                    logger.warning("Gist %s vanished, cannot update it", handle)
                    return RemoteResult.err(ErrorKind.NOT_FOUND, f"gist {handle} not found")
                if not resp.is_success:
                    logger.error("Failed to update gist: HTTP %d", resp.status_code)
                    return _status_error(resp)
                return RemoteResult.ok(handle)

            resp = await self._client.post(
                f"{self.api_base}/gists",
                json={"description": GIST_DESCRIPTION, "public": False, "files": files},
                headers=_headers(token),
            )
            if not resp.is_success:
                logger.error("Failed to create gist: HTTP %d", resp.status_code)
                return _status_error(resp)
            new_id = str(resp.json()["id"])
        except httpx.HTTPError as e:
            logger.error("Gist save error: %s", e)
            return RemoteResult.err(ErrorKind.NETWORK, str(e))
        except (ValueError, KeyError, TypeError) as e:
            return RemoteResult.err(ErrorKind.SERIALIZATION, str(e))

        logger.info("Created vault gist %s", new_id)
        return RemoteResult.ok(new_id)

    async def remove(self, token: str, handle: str) -> RemoteResult[bool]:
        """DELETE /gists/{id}."""
        try:
            resp = await self._client.delete(
                f"{self.api_base}/gists/{handle}", headers=_headers(token)
            )
        except httpx.HTTPError as e:
            logger.warning("Gist delete failed: %s", e)
            return RemoteResult.err(ErrorKind.NETWORK, str(e))
        if resp.status_code == 404:
            return RemoteResult.absent(f"gist {handle} not found")
        if not resp.is_success:
            return _status_error(resp)
        return RemoteResult.ok(True)
