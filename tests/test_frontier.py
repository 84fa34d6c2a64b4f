import asyncio

import pytest

from spiderrank.crawler.url_frontier import (
    URLFrontier,
    InvalidSeedURLError,
    validate_seed_url,
)


def test_fifo_order_and_visited_marking():
    async def scenario():
        frontier = URLFrontier(["http://x.test/1"])
        await frontier.add_urls(["http://x.test/2", "http://x.test/3"])
        assert frontier.snapshot() == ["http://x.test/1", "http://x.test/2", "http://x.test/3"]

        first = await frontier.get_next_url()
        second = await frontier.get_next_url()
        return frontier, first, second

    frontier, first, second = asyncio.run(scenario())
    assert (first, second) == ("http://x.test/1", "http://x.test/2")
    assert frontier.visited == {"http://x.test/1", "http://x.test/2"}
    assert len(frontier) == 1


def test_duplicates_are_discarded_at_dequeue():
    async def scenario():
        frontier = URLFrontier(["http://x.test/a", "http://x.test/a"])
        await frontier.add_urls(["http://x.test/a", "http://x.test/b", "http://x.test/a"])
        dequeued = []
        while True:
            url = await frontier.get_next_url()
            if url is None:
                break
            dequeued.append(url)
        return frontier, dequeued

    frontier, dequeued = asyncio.run(scenario())
    assert dequeued == ["http://x.test/a", "http://x.test/b"]
    assert frontier.is_empty()
    assert frontier.get_stats()["duplicates_discarded"] == 3


def test_concurrent_consumers_never_share_a_url():
    urls = [f"http://x.test/{i % 20}" for i in range(200)]

    async def consumer(frontier, seen):
        while True:
            url = await frontier.get_next_url()
            if url is None:
                return
            seen.append(url)
            await asyncio.sleep(0)

    async def scenario():
        frontier = URLFrontier(urls)
        seen = []
        await asyncio.gather(*(consumer(frontier, seen) for _ in range(8)))
        return seen

    seen = asyncio.run(scenario())
    assert sorted(seen) == sorted(set(urls))


@pytest.mark.parametrize("seed", [
    "",
    "   ",
    "not a url",
    "example.com/page",
    "ftp://example.com/file",
    "http://",
    "http://[::1",
])
def test_malformed_seeds_are_rejected(seed):
    with pytest.raises(InvalidSeedURLError):
        validate_seed_url(seed)


def test_valid_seed_is_stripped():
    assert validate_seed_url("  https://example.com/  ") == "https://example.com/"


def test_invalid_seed_error_is_a_value_error():
    assert issubclass(InvalidSeedURLError, ValueError)
