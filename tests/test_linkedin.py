from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import httpx
import pytest

from app.integrations.linkedin import (
    LinkedInService,
    ProfileLookupResult,
    ProfileSearchParams,
    extract_public_identifier,
    generate_inmail_url,
    generate_search_url,
)


def _service(cache=None, http_client=None, api_key="", profile=None):
    repo = AsyncMock()
    repo.tenant_id = uuid4()
    repo.get_profile = AsyncMock(return_value=profile)
    repo.add_activity = AsyncMock(side_effect=lambda **kw: SimpleNamespace(id=uuid4(), **kw))
    activities = AsyncMock()
    service = LinkedInService(repo, activities, cache=cache, http_client=http_client, api_key=api_key)
    return service, repo, activities


class TestUrlHelpers:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.linkedin.com/in/ada-lovelace/", "ada-lovelace"),
            ("https://linkedin.com/in/ada?trk=x", "ada"),
            ("https://example.com/ada", None),
            (None, None),
        ],
    )
    def test_extract_public_identifier(self, url, expected):
        assert extract_public_identifier(url) == expected

    def test_search_url_quotes_terms(self):
        url = generate_search_url(ProfileSearchParams(first_name="Ada", last_name="Lovelace", company="A&B"))
        assert url == "https://www.linkedin.com/search/results/people/?keywords=Ada%20Lovelace%20A%26B"

    def test_inmail_url(self):
        assert generate_inmail_url("ada") == "https://www.linkedin.com/messaging/compose/?recipient=ada"


class TestLookupProfile:
    @pytest.mark.asyncio
    async def test_without_api_key_profile_is_built_from_params(self):
        service, *_ = _service()
        result = await service.lookup_profile(
            ProfileSearchParams(first_name="Ada", company="Analytical Engines", title="CTO")
        )
        assert result.current_company == "Analytical Engines"
        assert result.headline == "CTO"
        assert result.linkedin_url is None

    @pytest.mark.asyncio
    async def test_title_alone_is_not_enough(self):
        service, *_ = _service()
        assert await service.lookup_profile(ProfileSearchParams(title="CTO")) is None

    @pytest.mark.asyncio
    async def test_rocketreach_lookup_is_cached(self, mock_cache, mock_redis):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "linkedin_url": "https://www.linkedin.com/in/ada-lovelace",
                    "current_title": "CTO",
                    "current_employer": "Analytical Engines",
                    "city": "London",
                    "country": "UK",
                },
            )

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service, *_ = _service(cache=mock_cache, http_client=client, api_key="rr-key")

        result = await service.lookup_profile(ProfileSearchParams(first_name="Ada", last_name="Lovelace"))

        assert result.public_identifier == "ada-lovelace"
        assert result.location == "London,  UK"
        assert seen[0].headers["Api-Key"] == "rr-key"
        assert seen[0].url.params["name"] == "Ada Lovelace"
        mock_redis.setex.assert_awaited_once()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, mock_cache, mock_redis):
        mock_redis.get = AsyncMock(return_value='{"headline": "Cached", "raw_data": {}}')
        service, *_ = _service(cache=mock_cache, api_key="rr-key")

        result = await service.lookup_profile(ProfileSearchParams(first_name="Ada"))

        assert result == ProfileLookupResult(headline="Cached")

    @pytest.mark.asyncio
    async def test_provider_failure_returns_none(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        service, *_ = _service(http_client=client, api_key="rr-key")

        assert await service.lookup_profile(ProfileSearchParams(first_name="Ada")) is None
        await client.aclose()


class TestOutreach:
    @pytest.mark.asyncio
    async def test_log_activity_mirrors_to_lead_timeline(self):
        lead_id = uuid4()
        profile = SimpleNamespace(id=uuid4(), contact_id=None, lead_id=lead_id, public_identifier="ada")
        service, repo, activities = _service(profile=profile)

        await service.log_activity(None, profile.id, "connection_request_sent")

        mirrored = activities.create.await_args.kwargs
        assert mirrored["entity_type"] == "lead"
        assert mirrored["entity_id"] == lead_id
        assert mirrored["subject"] == "Connection Request Sent"
        repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_inmail_returns_compose_url(self):
        profile = SimpleNamespace(id=uuid4(), contact_id=uuid4(), lead_id=None, public_identifier="ada")
        service, repo, activities = _service(profile=profile)

        result = await service.send_inmail(uuid4(), profile.id, "Hello", "Body text")

        assert result == {"success": True, "inmail_url": "https://www.linkedin.com/messaging/compose/?recipient=ada"}
        logged = repo.add_activity.await_args.kwargs
        assert logged["activity_type"] == "inmail_sent"
        assert logged["inmail_body"] == "Body text"
        assert activities.create.await_args.kwargs["entity_type"] == "contact"

    @pytest.mark.asyncio
    async def test_send_inmail_without_identifier(self):
        profile = SimpleNamespace(id=uuid4(), contact_id=None, lead_id=None, public_identifier=None)
        service, repo, _ = _service(profile=profile)

        result = await service.send_inmail(None, profile.id, "Hello", "Body")

        assert result["success"] is False
        repo.add_activity.assert_not_awaited()
