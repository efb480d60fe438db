# backend/tests/test_prefetch.py

import asyncio

import httpx
import pytest
import respx

from pokedex_client import ApiClient, ApiError, Connectivity, PrefetchScheduler, RequestCache, RetryPolicy, fingerprint
from pokedex_client import prefetch

from conftest import FakeListApi, make_list_response

FAST_RETRY = RetryPolicy(max_retries=0, base_delay=0.001, max_delay=0.01)


@pytest.fixture
def recorded(monkeypatch):
    """Captures schedule() calls instead of running them."""
    calls = []
    monkeypatch.setattr(PrefetchScheduler, "schedule", lambda self, params, delay=0.0: calls.append((params, delay)))
    return calls


def make_scheduler(api=None, connectivity=None):
    api = api or FakeListApi()
    cache = RequestCache(retry_policy=FAST_RETRY)
    return PrefetchScheduler(cache, api, connectivity), api, cache


@pytest.mark.asyncio
async def test_small_page_schedules_next_two(recorded):
    scheduler, _, _ = make_scheduler()

    scheduler.schedule_after_success({"page": 1, "limit": 10}, make_list_response(page=1, total_pages=65, size=10))

    assert recorded == [
        ({"page": 2, "limit": 10}, prefetch.SMALL_PAGE_DELAY),
        ({"page": 3, "limit": 10}, prefetch.SMALL_PAGE_DELAY + prefetch.SECOND_PAGE_EXTRA_DELAY),
    ]


@pytest.mark.asyncio
async def test_large_page_uses_shorter_delay(recorded):
    scheduler, _, _ = make_scheduler()

    scheduler.schedule_after_success({"page": 4, "limit": 20}, make_list_response(page=4, total_pages=65, size=20))

    assert recorded[0] == ({"page": 5, "limit": 20}, 0.5)
    assert recorded[1] == ({"page": 6, "limit": 20}, 2.5)


@pytest.mark.asyncio
async def test_second_to_last_page_only_schedules_one(recorded):
    scheduler, _, _ = make_scheduler()

    scheduler.schedule_after_success({"page": 64, "limit": 20}, make_list_response(page=64, total_pages=65))

    assert [params["page"] for params, _ in recorded] == [65]


@pytest.mark.asyncio
async def test_nothing_scheduled_on_last_page_or_search(recorded):
    scheduler, _, _ = make_scheduler()

    scheduler.schedule_after_success({"page": 65, "limit": 20}, make_list_response(page=65, total_pages=65))
    scheduler.schedule_after_success({"page": 1, "search": "char"}, make_list_response(page=1, total_pages=3))

    assert recorded == []


@pytest.mark.asyncio
async def test_warm_cache_and_popular_searches(recorded):
    scheduler, _, _ = make_scheduler()

    scheduler.warm_cache()
    scheduler.preload_popular()

    assert recorded[:3] == [({"page": p, "limit": 20}, 0.0) for p in (1, 2, 3)]
    popular = recorded[3:]
    assert [params["search"] for params, _ in popular] == ["pikachu", "charizard", "blastoise", "venusaur", "mewtwo"]
    assert [delay for _, delay in popular] == [0.0, 1.0, 2.0, 3.0, 4.0]


@pytest.mark.asyncio
async def test_scheduled_fetch_fills_the_cache():
    scheduler, api, cache = make_scheduler()

    scheduler.schedule({"page": 2, "limit": 20})
    await scheduler.drain()

    assert cache.peek(fingerprint({"page": 2, "limit": 20})).data.pagination.current_page == 2
    assert api.calls == [{"page": 2, "limit": 20, "search": None}]
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_cached_page_is_not_fetched_again():
    scheduler, api, cache = make_scheduler()
    cache.set(fingerprint({"page": 2, "limit": 20}), make_list_response(page=2))

    scheduler.schedule({"page": 2, "limit": 20})
    await scheduler.drain()

    assert api.calls == []


@pytest.mark.asyncio
async def test_failed_prefetch_is_swallowed_and_not_cached():
    api = FakeListApi()
    api.errors[2] = ApiError("Server error - please try again later", status=500)
    scheduler, _, cache = make_scheduler(api=api)

    task = scheduler.schedule({"page": 2, "limit": 20})
    await scheduler.drain()

    assert task.exception() is None
    assert cache.peek(fingerprint({"page": 2, "limit": 20})) is None


@pytest.mark.asyncio
async def test_prefetch_waits_while_offline():
    connectivity = Connectivity(online=False)
    scheduler, api, _ = make_scheduler(connectivity=connectivity)

    scheduler.schedule({"page": 2, "limit": 20})
    await asyncio.sleep(0.01)
    assert api.calls == []

    connectivity.set_online()
    await scheduler.drain()
    assert len(api.calls) == 1


@pytest.mark.asyncio
async def test_close_cancels_pending_prefetches():
    scheduler, api, _ = make_scheduler()

    scheduler.schedule({"page": 2, "limit": 20}, delay=60)
    await scheduler.close()

    assert scheduler.pending == 0
    assert api.calls == []


@pytest.mark.asyncio
async def test_blank_search_still_prefetches(recorded):
    scheduler, _, _ = make_scheduler()

    scheduler.schedule_after_success({"page": 1, "limit": 20, "search": "   "}, make_list_response(page=1))

    assert [params["page"] for params, _ in recorded] == [2, 3]


@pytest.mark.asyncio
@respx.mock
async def test_prefetch_of_unexpected_payload_is_logged_not_raised(caplog):
    respx.get("http://pokedex.test/api/pokemons").mock(return_value=httpx.Response(200, json={"status": "ok"}))
    api = ApiClient(base_url="http://pokedex.test/api")
    scheduler, _, cache = make_scheduler(api=api)

    task = scheduler.schedule({"page": 2, "limit": 20})
    await scheduler.drain()
    await api.close()

    assert task.exception() is None
    assert cache.peek(fingerprint({"page": 2, "limit": 20})) is None
    assert "Prefetch of" in caplog.text
