import threading

import numpy as np
import pytest

from eqsys.assembly import AccumulationBuffer, ForkJoin, partition


@pytest.mark.parametrize(
    "count, n_parts, expected",
    [
        (5, 2, [(0, 2), (2, 5)]),
        (6, 3, [(0, 2), (2, 4), (4, 6)]),
        (2, 4, [(0, 1), (1, 2)]),
        (0, 3, []),
        (4, 1, [(0, 4)]),
    ],
)
def test_partition(count, n_parts, expected):
    assert partition(count, n_parts) == expected


def test_partition_rejects_zero_parts():
    with pytest.raises(ValueError):
        partition(3, 0)


def _target() -> AccumulationBuffer:
    buffer = AccumulationBuffer()
    buffer.resize(4, 0, 0, 0, 1)
    return buffer


def _work(begin, end, buffer):
    for k in range(begin, end):
        buffer.f += float(k)
        buffer.add_df(k % 4, 1.0)


@pytest.mark.parametrize("n_workers", [1, 2, 3, 8])
def test_run_matches_sequential_sum(n_workers):
    target = _target()
    ForkJoin(n_workers).run(10, _work, target)
    assert target.f == sum(range(10))
    np.testing.assert_array_equal(target.df, [3.0, 3.0, 2.0, 2.0])


def test_run_zeroes_target_between_passes():
    fork_join = ForkJoin(2)
    target = _target()
    fork_join.run(10, _work, target)
    fork_join.run(10, _work, target)
    assert target.f == sum(range(10))


def test_worker_buffers_are_reused():
    fork_join = ForkJoin(3)
    target = _target()
    fork_join.prepare(target)
    buffers = list(fork_join.buffers)
    fork_join.run(9, _work, target)
    assert all(a is b for a, b in zip(buffers, fork_join.buffers))


def test_worker_buffers_follow_target_layout():
    fork_join = ForkJoin(2)
    fork_join.prepare(_target())
    bigger = AccumulationBuffer()
    bigger.resize(6, 0, 0, 0, 1)
    fork_join.run(4, _work, bigger)
    assert all(buffer.values.size == bigger.values.size for buffer in fork_join.buffers)


def test_worker_buffers_follow_layout_of_same_total_size():
    fork_join = ForkJoin(2)
    first = AccumulationBuffer()
    first.resize(2, 0, 0, 3, 2)
    fork_join.run(2, lambda begin, end, buffer: None, first)

    second = AccumulationBuffer()
    second.resize(3, 0, 0, 2, 3)
    assert second.values.size == first.values.size

    def work(begin, end, buffer):
        buffer.df[2] += 1.0

    fork_join.run(2, work, second)
    assert all(buffer.layout == second.layout for buffer in fork_join.buffers)
    np.testing.assert_array_equal(second.df, [0.0, 0.0, 2.0])


def test_each_worker_writes_its_own_buffer():
    seen = {}
    lock = threading.Lock()

    def work(begin, end, buffer):
        with lock:
            seen[begin] = id(buffer)

    ForkJoin(4).run(8, work, _target())
    assert len(set(seen.values())) == 4


def test_worker_exception_propagates():
    def work(begin, end, buffer):
        if begin > 0:
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        ForkJoin(2).run(4, work, _target())


def test_rejects_non_positive_workers():
    with pytest.raises(ValueError):
        ForkJoin(0)


def test_thread_pool_is_kept_across_passes():
    names = set()
    lock = threading.Lock()

    def work(begin, end, buffer):
        with lock:
            names.add(threading.current_thread().name)

    with ForkJoin(2) as fork_join:
        for _ in range(5):
            fork_join.run(4, work, _target())
    assert len(names) <= 2
    assert all(name.startswith("eqsys-fork-join") for name in names)


def test_shutdown_then_run_starts_a_new_pool():
    fork_join = ForkJoin(2)
    target = _target()
    fork_join.run(10, _work, target)
    fork_join.shutdown()
    fork_join.shutdown()
    fork_join.run(10, _work, target)
    fork_join.shutdown()
    assert target.f == sum(range(10))


def test_failing_worker_does_not_leak_into_next_pass():
    fork_join = ForkJoin(2)

    def failing(begin, end, buffer):
        if begin == 0:
            raise RuntimeError("boom")
        threading.Event().wait(0.05)
        buffer.f += 100.0

    with pytest.raises(RuntimeError, match="boom"):
        fork_join.run(4, failing, _target())

    target = _target()
    fork_join.run(10, _work, target)
    fork_join.shutdown()
    assert target.f == sum(range(10))
