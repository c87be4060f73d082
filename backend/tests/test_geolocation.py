"""
Tests for the geolocation provider chain.
Provider HTTP traffic goes through httpx.MockTransport.
"""

import asyncio
import time

import httpx
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from linktrack.config import DEFAULT_GEO_PROVIDERS, GeoProviderConfig
from linktrack.geolocation import (
    GeoLocation,
    GeoResolver,
    ProviderError,
    map_payload,
    provider_url,
)

IP_API, IPAPI_CO, IPIFY = DEFAULT_GEO_PROVIDERS

PUBLIC_IP = "8.8.8.8"


def resolver_for(handler, providers=None, use_cache=True):
    return GeoResolver(
        providers or DEFAULT_GEO_PROVIDERS,
        transport=httpx.MockTransport(handler),
        use_cache=use_cache,
    )


def quick(provider: GeoProviderConfig, timeout: float) -> GeoProviderConfig:
    return provider.model_copy(update={"timeout": timeout})


class TestPayloadMapping:
    """Tests for map_payload."""

    def test_ip_api_success(self):
        payload = {"status": "success", "country": "France", "city": "Paris", "query": PUBLIC_IP}
        assert map_payload(IP_API, payload) == GeoLocation("France", "Paris", PUBLIC_IP)

    def test_ip_api_fail_status(self):
        with pytest.raises(ProviderError):
            map_payload(IP_API, {"status": "fail", "message": "reserved range"})

    def test_ip_api_missing_status(self):
        with pytest.raises(ProviderError):
            map_payload(IP_API, {"country": "France"})

    def test_ipapi_co_success(self):
        payload = {"country_name": "Germany", "city": "Berlin", "ip": PUBLIC_IP}
        assert map_payload(IPAPI_CO, payload) == GeoLocation("Germany", "Berlin", PUBLIC_IP)

    def test_ipapi_co_error_flag(self):
        with pytest.raises(ProviderError):
            map_payload(IPAPI_CO, {"error": True, "reason": "RateLimited"})

    def test_ipify_only_ip(self):
        assert map_payload(IPIFY, {"ip": PUBLIC_IP}) == GeoLocation(resolved_ip=PUBLIC_IP)

    def test_non_object_body(self):
        with pytest.raises(ProviderError):
            map_payload(IPAPI_CO, ["not", "an", "object"])

    def test_empty_strings_become_none(self):
        payload = {"status": "success", "country": "", "city": "  ", "query": PUBLIC_IP}
        assert map_payload(IP_API, payload) == GeoLocation(resolved_ip=PUBLIC_IP)


class TestProviderUrl:
    """Tests for provider_url."""

    def test_explicit_ip(self):
        assert provider_url(IP_API, PUBLIC_IP) == f"http://ip-api.com/json/{PUBLIC_IP}"

    def test_origin_lookup(self):
        assert provider_url(IPAPI_CO, None) == "https://ipapi.co/json/"

    def test_origin_only_provider_skipped_for_known_ip(self):
        assert provider_url(IPIFY, PUBLIC_IP) is None


class TestResolverChain:
    """Tests for GeoResolver.resolve."""

    def test_first_provider_wins(self):
        seen = []

        def handler(request):
            seen.append(request.url.host)
            return httpx.Response(200, json={
                "status": "success", "country": "Japan", "city": "Tokyo", "query": PUBLIC_IP,
            })

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result == GeoLocation("Japan", "Tokyo", PUBLIC_IP)
        assert seen == ["ip-api.com"]

    def test_falls_through_on_server_error(self):
        def handler(request):
            if request.url.host == "ip-api.com":
                return httpx.Response(500)
            return httpx.Response(200, json={"country_name": "France", "city": "Lyon", "ip": PUBLIC_IP})

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result.country == "France"
        assert result.city == "Lyon"

    def test_falls_through_on_bad_json(self):
        def handler(request):
            if request.url.host == "ip-api.com":
                return httpx.Response(200, text="<html>nope</html>")
            return httpx.Response(200, json={"country_name": "France", "city": None, "ip": PUBLIC_IP})

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result.country == "France"
        assert result.city is None

    def test_falls_through_on_network_error(self):
        def handler(request):
            if request.url.host == "ip-api.com":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"country_name": "Spain", "city": "Madrid", "ip": PUBLIC_IP})

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result.country == "Spain"

    def test_slow_provider_bounded_by_its_timeout(self):
        """A hanging first provider costs at most its own timeout."""
        async def handler(request):
            if request.url.host == "ip-api.com":
                await asyncio.sleep(5)
            return httpx.Response(200, json={"country_name": "France", "city": "Paris", "ip": PUBLIC_IP})

        providers = [quick(IP_API, 0.2), quick(IPAPI_CO, 1.0)]
        started = time.monotonic()
        result = asyncio.run(resolver_for(handler, providers).resolve(PUBLIC_IP))
        elapsed = time.monotonic() - started

        assert result.country == "France"
        assert elapsed < 2.0

    def test_all_providers_fail(self):
        def handler(request):
            return httpx.Response(503)

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result == GeoLocation()

    def test_unknown_ip_uses_origin_lookup(self):
        """Private addresses are treated as unknown and geolocate the origin."""
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={
                "status": "success", "country": "Canada", "city": "Toronto", "query": "198.51.100.7",
            })

        result = asyncio.run(resolver_for(handler).resolve("192.168.1.10"))
        assert seen == ["http://ip-api.com/json"]
        assert result.resolved_ip == "198.51.100.7"

    def test_ipify_reports_ip_without_country(self):
        def handler(request):
            if request.url.host == "api.ipify.org":
                return httpx.Response(200, json={"ip": "198.51.100.7"})
            return httpx.Response(500)

        result = asyncio.run(resolver_for(handler).resolve(None))
        assert result == GeoLocation(resolved_ip="198.51.100.7")

    def test_never_raises(self):
        def handler(request):
            raise RuntimeError("boom")

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result == GeoLocation()


class TestResolverCache:
    """Tests for the Redis-backed result cache."""

    def test_result_cached(self, mock_redis):
        def handler(request):
            return httpx.Response(200, json={
                "status": "success", "country": "Italy", "city": "Rome", "query": PUBLIC_IP,
            })

        asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert mock_redis.get_cached_geo(PUBLIC_IP)["country"] == "Italy"

    def test_cache_hit_skips_providers(self, mock_redis):
        mock_redis.cache_geo(PUBLIC_IP, {"country": "Peru", "city": "Lima", "resolved_ip": PUBLIC_IP})

        def handler(request):
            raise AssertionError("provider should not be called")

        result = asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert result == GeoLocation("Peru", "Lima", PUBLIC_IP)

    def test_failures_not_cached(self, mock_redis):
        def handler(request):
            return httpx.Response(500)

        asyncio.run(resolver_for(handler).resolve(PUBLIC_IP))
        assert mock_redis.get_cached_geo(PUBLIC_IP) is None
