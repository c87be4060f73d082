"""
Best-effort IP geolocation over an ordered chain of HTTP providers.

Each provider gets its own timeout window; the first provider that yields a
country wins. Provider payloads differ, so every provider carries a field
mapping (see GeoProviderConfig) that turns its JSON into a GeoLocation.
"""

import asyncio
from dataclasses import dataclass, asdict
from typing import Any, List, Optional, Sequence

import httpx

from .config import GeoProviderConfig, settings
from .redis_client import RedisService
from .security import clean_client_ip
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GeoLocation:
    country: Optional[str] = None
    city: Optional[str] = None
    resolved_ip: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return asdict(self)


EMPTY_LOCATION = GeoLocation()


class ProviderError(Exception):
    """A provider answered, but not with a usable payload."""


def _field(payload: dict[str, Any], name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    value = payload.get(name)
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def map_payload(provider: GeoProviderConfig, payload: Any) -> GeoLocation:
    """Map one provider's JSON body onto the canonical GeoLocation shape."""
    if not isinstance(payload, dict):
        raise ProviderError("response body is not a JSON object")

    if provider.success_field and payload.get(provider.success_field) != provider.success_value:
        reason = payload.get("message") or payload.get("reason") or "success flag not set"
        raise ProviderError(str(reason))

    if provider.error_field and payload.get(provider.error_field):
        reason = payload.get("reason") or payload.get("message") or "error flag set"
        raise ProviderError(str(reason))

    return GeoLocation(
        country=_field(payload, provider.country_field),
        city=_field(payload, provider.city_field),
        resolved_ip=_field(payload, provider.ip_field),
    )


def provider_url(provider: GeoProviderConfig, ip: Optional[str]) -> Optional[str]:
    """URL to query for this IP, or None when the provider cannot serve it."""
    if ip:
        if not provider.lookup_url:
            return None
        return provider.lookup_url.format(ip=ip)
    return provider.self_url


class GeoResolver:
    """Resolves {country, city, resolved_ip} for a client address. Never raises."""

    def __init__(
        self,
        providers: Sequence[GeoProviderConfig],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        use_cache: bool = True,
    ):
        self.providers: List[GeoProviderConfig] = list(providers)
        self.transport = transport
        self.use_cache = use_cache

    @classmethod
    def from_settings(cls) -> "GeoResolver":
        return cls(settings.GEO_PROVIDERS)

    async def resolve(self, ip: Optional[str]) -> GeoLocation:
        try:
            return await self._resolve(clean_client_ip(ip))
        except Exception as e:
            logger.error(f"Geolocation failed unexpectedly: {e!r}")
            return EMPTY_LOCATION

    async def _resolve(self, ip: Optional[str]) -> GeoLocation:
        if ip and self.use_cache:
            cached = RedisService.get_cached_geo(ip)
            if cached:
                logger.debug(f"Geolocation cache hit for {ip}")
                return GeoLocation(
                    country=cached.get("country"),
                    city=cached.get("city"),
                    resolved_ip=cached.get("resolved_ip"),
                )

        resolved_ip: Optional[str] = None
        async with httpx.AsyncClient(transport=self.transport) as client:
            for provider in self.providers:
                url = provider_url(provider, ip)
                if not url:
                    continue
                try:
                    found = await self._query(client, provider, url)
                except (httpx.HTTPError, asyncio.TimeoutError, ProviderError, ValueError) as e:
                    logger.warning(f"Geolocation provider {provider.name} failed: {e!r}")
                    continue

                resolved_ip = resolved_ip or found.resolved_ip
                if found.country:
                    result = GeoLocation(
                        country=found.country,
                        city=found.city,
                        resolved_ip=resolved_ip,
                    )
                    logger.info(f"Location resolved by {provider.name}: {result.country}/{result.city}")
                    if ip and self.use_cache:
                        RedisService.cache_geo(ip, result.to_dict())
                    return result

        logger.info("No geolocation provider returned a country")
        return GeoLocation(resolved_ip=resolved_ip)

    async def _query(
        self, client: httpx.AsyncClient, provider: GeoProviderConfig, url: str
    ) -> GeoLocation:
        # httpx enforces per-phase timeouts; wait_for caps the whole call
        response = await asyncio.wait_for(
            client.get(url, timeout=provider.timeout),
            timeout=provider.timeout,
        )
        response.raise_for_status()
        return map_payload(provider, response.json())
