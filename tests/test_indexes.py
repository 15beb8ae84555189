import threading

from spp_lobby.registry import EndpointIndex, TimelineIndex


def test_endpoint_index_get_set_delete():
    index = EndpointIndex()
    assert index.get(("10.0.0.1", 7777)) is None

    index.set(("10.0.0.1", 7777), "a")
    index.set(("10.0.0.1", 7777), "b")
    assert index.get(("10.0.0.1", 7777)) == "b"
    assert len(index) == 1

    index.delete(("10.0.0.1", 7777))
    assert index.get(("10.0.0.1", 7777)) is None
    # Deleting an absent endpoint is a no-op
    index.delete(("10.0.0.1", 7777))
    assert len(index) == 0


def test_endpoint_index_distinguishes_ports():
    index = EndpointIndex()
    index.set(("10.0.0.1", 1), "one")
    index.set(("10.0.0.1", 2), "two")
    assert index.get(("10.0.0.1", 1)) == "one"
    assert index.get(("10.0.0.1", 2)) == "two"


def test_timeline_iterates_in_ascending_key_order():
    index = TimelineIndex()
    index.set(10, ["b"])
    index.set(5, ["a"])
    index.set(20, ["c"])

    assert [ts for ts, _ in index.iterate_ascending()] == [5, 10, 20]
    assert list(index.iterate_ascending())[0] == (5, ["a"])


def test_timeline_point_operations():
    index = TimelineIndex()
    assert index.get(1) is None
    index.set(1, ["x"])
    assert index.get(1) == ["x"]
    index.delete(1)
    index.delete(1)
    assert index.get(1) is None
    assert len(index) == 0


def test_timeline_iteration_is_restartable_and_live():
    index = TimelineIndex()
    index.set(1, ["x"])
    assert len(list(index.iterate_ascending())) == 1

    index.set(2, ["y"])
    assert [ts for ts, _ in index.iterate_ascending()] == [1, 2]


def test_timeline_lock_is_reentrant_for_point_operations():
    index = TimelineIndex()
    with index.lock:
        index.set(3, ["z"])
        for _ in index.iterate_ascending():
            pass
        index.delete(3)
    assert len(index) == 0


def test_timeline_iteration_blocks_writers_until_exhausted():
    index = TimelineIndex()
    index.set(1, ["x"])
    done = threading.Event()

    def writer():
        index.set(2, ["y"])
        done.set()

    iterator = index.iterate_ascending()
    next(iterator)
    thread = threading.Thread(target=writer)
    thread.start()
    assert not done.wait(0.1)

    list(iterator)
    thread.join(timeout=5)
    assert done.is_set()
    assert index.get(2) == ["y"]
