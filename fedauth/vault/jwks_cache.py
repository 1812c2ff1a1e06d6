"""Verifier-side fetch-and-cache of a registry's published key set.

Entries are keyed by issuer URL and refreshed once older than the TTL. A failed
refresh falls back to the stale entry, so a registry outage only breaks
verification for issuers never fetched by this process. Staleness across
worker processes is bounded by the TTL; there is no cross-instance sync.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx
import structlog
from pydantic import ValidationError

from fedauth.core.errors import InvalidSignature, KeyFetchFailed, NoMatchingKey
from fedauth.core.settings import JWKS_CACHE_TTL_DEFAULT
from fedauth.crypto.keys import jwk_entry_to_public_key
from fedauth.crypto.token_codec import verify_token
from fedauth.crypto.types import DecodedToken, JWKEntry

logger = structlog.get_logger(__name__)

JWKS_PATH = "/.well-known/jwks.json"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class CacheEntry:
    """Keys fetched from one issuer and when."""

    keys: list[JWKEntry]
    fetched_at: datetime


class JWKSCache:
    """Per-issuer JWKS cache with an injectable clock."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        ttl_seconds: int = JWKS_CACHE_TTL_DEFAULT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._http = http_client
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def jwks_url(issuer_url: str) -> str:
        return f"{issuer_url.rstrip('/')}{JWKS_PATH}"

    def invalidate(self, issuer_url: str | None = None) -> None:
        """Drop one issuer's entry, or all of them."""
        if issuer_url is None:
            self._entries.clear()
        else:
            self._entries.pop(issuer_url, None)

    def _is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return (now - entry.fetched_at).total_seconds() < self._ttl

    async def _fetch(self, issuer_url: str) -> list[JWKEntry]:
        response = await self._http.get(self.jwks_url(issuer_url))
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict) or not isinstance(body.get("keys"), list):
            raise ValueError("JWKS document has no keys array")
        keys: list[JWKEntry] = []
        for raw in body["keys"]:
            try:
                keys.append(JWKEntry.model_validate(raw))
            except ValidationError:
                logger.warning(
                    "jwks_entry_skipped",
                    issuer=issuer_url,
                    kid=raw.get("kid") if isinstance(raw, dict) else None,
                )
        return keys

    async def get_keys(self, issuer_url: str) -> list[JWKEntry]:
        """Cached keys for an issuer, refetching past the TTL."""
        now = self._clock()
        entry = self._entries.get(issuer_url)
        if entry is not None and self._is_fresh(entry, now):
            return entry.keys

        try:
            keys = await self._fetch(issuer_url)
        except (httpx.HTTPError, ValueError) as exc:
            if entry is not None:
                logger.warning(
                    "jwks_refresh_failed_serving_stale",
                    issuer=issuer_url,
                    age_seconds=(now - entry.fetched_at).total_seconds(),
                    error=str(exc),
                )
                return entry.keys
            logger.error("jwks_fetch_failed", issuer=issuer_url, error=str(exc))
            raise KeyFetchFailed(f"Could not fetch JWKS for {issuer_url}") from exc

        self._entries[issuer_url] = CacheEntry(keys=keys, fetched_at=now)
        logger.info("jwks_refreshed", issuer=issuer_url, keys_count=len(keys))
        return keys

    async def verify(
        self, token: str, issuer_url: str, expected_audience: str
    ) -> DecodedToken:
        """Verify against each published key in order.

        A key whose signature matches settles the outcome: its claim errors
        (expired, wrong audience, malformed) propagate as-is. Only when no key
        matches is NoMatchingKey raised.
        """
        keys = await self.get_keys(issuer_url)
        for entry in keys:
            try:
                public_key = jwk_entry_to_public_key(entry)
            except ValueError:
                logger.warning("jwks_entry_unusable", issuer=issuer_url, kid=entry.kid)
                continue
            try:
                return verify_token(
                    token,
                    public_key,
                    issuer=issuer_url,
                    audience=expected_audience,
                    now=self._clock(),
                )
            except InvalidSignature:
                continue

        logger.warning(
            "token_no_matching_key", issuer=issuer_url, keys_tried=len(keys)
        )
        raise NoMatchingKey(f"No published key for {issuer_url} verifies the token")
