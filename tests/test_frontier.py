import threading

import pytest

from sitecrawler import EnqueueStatus, Frontier
from sitecrawler.types import UrlSource


def test_push_enforces_depth_and_dedup():
    frontier = Frontier(max_pages=10, max_depth=2)

    assert frontier.push("https://example.com/a", depth=1).accepted
    assert frontier.push("https://www.example.com/a/", depth=1).status == EnqueueStatus.SKIPPED_SEEN
    assert frontier.push("https://example.com/b", depth=2).status == EnqueueStatus.SKIPPED_DEPTH
    assert frontier.push("", depth=0).status == EnqueueStatus.SKIPPED_INVALID_URL
    assert frontier.qsize() == 1


def test_seed_marks_source_and_depth_zero():
    frontier = Frontier(max_pages=10, max_depth=2)
    results = frontier.seed(["https://example.com", "https://example.com/about"], source=UrlSource.SITEMAP)

    assert all(result.accepted for result in results)
    item = frontier.pop(timeout=0)
    assert item.depth == 0
    assert item.source == UrlSource.SITEMAP


def test_pop_is_fifo_and_marks_visited():
    frontier = Frontier(max_pages=10, max_depth=3)
    frontier.push_many(["https://example.com/1", "https://example.com/2"], depth=1)

    first = frontier.pop(timeout=0)
    second = frontier.pop(timeout=0)

    assert [first.url, second.url] == ["https://example.com/1", "https://example.com/2"]
    assert frontier.visited_urls() == {"https://example.com/1", "https://example.com/2"}
    assert frontier.push("https://example.com/1", depth=1).status == EnqueueStatus.SKIPPED_SEEN


def test_pop_times_out_on_empty_queue():
    frontier = Frontier(max_pages=1, max_depth=1)
    assert frontier.pop(timeout=0.01) is None


def test_budget_reservation_blocks_extra_pops():
    frontier = Frontier(max_pages=2, max_depth=2)
    frontier.push_many(["https://example.com/1", "https://example.com/2", "https://example.com/3"], depth=1)

    assert frontier.pop(timeout=0) is not None
    assert frontier.pop(timeout=0) is not None
    assert frontier.budget_exhausted
    assert frontier.pop(timeout=0.01) is None
    assert frontier.push("https://example.com/4", depth=1).status == EnqueueStatus.SKIPPED_BUDGET


def test_release_frees_a_slot():
    frontier = Frontier(max_pages=1, max_depth=2)
    frontier.push_many(["https://example.com/1", "https://example.com/2"], depth=1)

    first = frontier.pop(timeout=0)
    frontier.release(first)
    frontier.task_done()

    second = frontier.pop(timeout=0)
    assert second.url == "https://example.com/2"
    assert frontier.snapshot()["released"] == 1


def test_exhausted_budget_drops_queue_once_idle():
    frontier = Frontier(max_pages=1, max_depth=2)
    frontier.push_many(["https://example.com/1", "https://example.com/2"], depth=1)

    frontier.pop(timeout=0)
    frontier.task_done()

    assert frontier.pop(timeout=0) is None
    assert frontier.snapshot()["dropped"] == 1
    assert frontier.wait_until_idle(timeout=0.1)
    frontier.join()


def test_queue_size_limit():
    frontier = Frontier(max_pages=10, max_depth=2, max_queue_size=1)
    assert frontier.push("https://example.com/1", depth=1).accepted
    assert frontier.push("https://example.com/2", depth=1).status == EnqueueStatus.SKIPPED_QUEUE_FULL


def test_close_refuses_pushes_and_wakes_waiters():
    frontier = Frontier(max_pages=5, max_depth=2)
    frontier.push("https://example.com/1", depth=1)
    results = []

    worker = threading.Thread(target=lambda: results.append(frontier.pop(timeout=5)))
    frontier.pop(timeout=0)
    worker.start()
    frontier.close()
    worker.join(timeout=2)

    assert not worker.is_alive()
    assert results == [None]
    assert frontier.closed
    assert frontier.push("https://example.com/2", depth=1).status == EnqueueStatus.SKIPPED_CLOSED


def test_concurrent_pops_never_exceed_budget():
    frontier = Frontier(max_pages=5, max_depth=2)
    frontier.push_many([f"https://example.com/p{index}" for index in range(20)], depth=1)
    popped = []
    lock = threading.Lock()

    def worker():
        while True:
            item = frontier.pop(timeout=0.05)
            if item is None:
                return
            with lock:
                popped.append(item.normalized_url)
            frontier.task_done()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(popped) == 5
    assert len(set(popped)) == 5


@pytest.mark.parametrize("kwargs", [{"max_pages": 0, "max_depth": 1}, {"max_pages": 1, "max_depth": 0}])
def test_invalid_bounds(kwargs):
    with pytest.raises(ValueError):
        Frontier(**kwargs)
