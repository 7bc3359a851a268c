"""
Agent Pool Unit Tests
"""

import threading

import pytest

from agent_orchestrator.errors import AgentNotFoundError, CapacityExceededError, DuplicateAgentError
from agent_orchestrator.models import AgentStatus, EventType

from conftest import make_agent


class TestRegistry:
    """Adding, removing and reading agents"""

    def test_add_agent_resets_runtime_state(self, pool):
        stored = pool.add_agent(make_agent("a", status=AgentStatus.WORKING, current_load=1))

        assert stored.current_load == 0
        assert stored.status == AgentStatus.IDLE
        assert "a" in pool
        assert len(pool) == 1

    def test_returned_agents_are_copies(self, pool):
        pool.add_agent(make_agent("a", caps={"x"}))

        copy = pool.get_agent("a")
        copy.capabilities.add("y")
        copy.current_load = 99

        assert pool.get_agent("a").capabilities == {"x"}
        assert pool.get_agent("a").current_load == 0

    def test_remove_agent(self, pool, recorder):
        pool.add_agent(make_agent("a"))
        pool.remove_agent("a")

        assert pool.get_agent("a") is None
        assert [e.type for e in recorder.events] == [EventType.AGENT_CREATED, EventType.AGENT_REMOVED]

    def test_remove_unknown_agent(self, pool):
        with pytest.raises(AgentNotFoundError):
            pool.remove_agent("missing")

    def test_duplicate_id_keeps_live_entry(self, pool):
        pool.add_agent(make_agent("a", capacity=1))
        pool.reserve("a", "t1")

        with pytest.raises(DuplicateAgentError):
            pool.add_agent(make_agent("a", capacity=3))

        capacity = pool.get_agent_capacity("a")
        assert capacity.current_load == 1
        assert capacity.max_capacity == 1
        assert capacity.is_available is False


class TestReservations:
    """reserve / release accounting"""

    def test_reserve_and_release(self, pool):
        pool.add_agent(make_agent("a", capacity=2))

        pool.reserve("a", "t1")
        assert pool.get_agent_capacity("a").current_load == 1

        pool.release("a", "t1")
        assert pool.get_agent_capacity("a").current_load == 0

    def test_reserve_beyond_capacity_fails(self, pool):
        pool.add_agent(make_agent("a", capacity=1))
        pool.reserve("a", "t1")

        with pytest.raises(CapacityExceededError) as exc_info:
            pool.reserve("a", "t2")

        assert exc_info.value.details["current_load"] == 1
        assert pool.get_agent_capacity("a").current_load == 1

    def test_reserve_unknown_agent(self, pool):
        with pytest.raises(AgentNotFoundError):
            pool.reserve("missing", "t1")

    def test_reserve_same_pair_twice_is_noop(self, pool):
        pool.add_agent(make_agent("a", capacity=3))
        pool.reserve("a", "t1")
        pool.reserve("a", "t1")
        assert pool.get_agent_capacity("a").current_load == 1

    def test_release_is_idempotent(self, pool):
        pool.add_agent(make_agent("a", capacity=2))
        pool.reserve("a", "t1")
        pool.reserve("a", "t2")

        pool.release("a", "t1")
        pool.release("a", "t1")

        assert pool.get_agent_capacity("a").current_load == 1
        assert pool.reserved_tasks("a") == {"t2"}

    def test_release_unknown_pair_is_ignored(self, pool):
        pool.add_agent(make_agent("a"))
        pool.release("a", "never-reserved")
        pool.release("missing", "t1")
        assert pool.total_load() == 0

    def test_offline_agent_accepts_no_work(self, pool):
        pool.add_agent(make_agent("a", capacity=2))
        pool.set_status("a", AgentStatus.OFFLINE)

        with pytest.raises(CapacityExceededError):
            pool.reserve("a", "t1")
        assert pool.available_agents() == []

    def test_concurrent_reservations_never_exceed_capacity(self, pool):
        pool.add_agent(make_agent("a", capacity=5))
        successes = []
        barrier = threading.Barrier(20)

        def worker(i):
            barrier.wait()
            try:
                pool.reserve("a", f"t{i}")
                successes.append(i)
            except CapacityExceededError:
                pass

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(successes) == 5
        assert pool.get_agent_capacity("a").current_load == 5
        assert pool.total_load() <= pool.total_capacity()


class TestStatus:
    """WORKING at capacity, IDLE below it"""

    def test_agent_becomes_working_at_capacity(self, pool, recorder):
        pool.add_agent(make_agent("a", capacity=2))

        pool.reserve("a", "t1")
        assert pool.get_agent("a").status == AgentStatus.IDLE
        assert [a.id for a in pool.available_agents()] == ["a"]

        pool.reserve("a", "t2")
        assert pool.get_agent("a").status == AgentStatus.WORKING
        assert pool.available_agents() == []

        pool.release("a", "t2")
        assert pool.get_agent("a").status == AgentStatus.IDLE

        changes = [
            (e.payload["from"], e.payload["to"])
            for e in recorder.of_type(EventType.AGENT_STATUS_CHANGED)
        ]
        assert changes == [("idle", "working"), ("working", "idle")]

    def test_error_status_survives_release(self, pool):
        pool.add_agent(make_agent("a", capacity=1))
        pool.reserve("a", "t1")
        pool.set_status("a", AgentStatus.ERROR)

        pool.release("a", "t1")

        assert pool.get_agent("a").status == AgentStatus.ERROR
        assert pool.get_agent("a").current_load == 0


class TestQueries:
    """Stats and capacity queries"""

    def test_agent_stats(self, pool):
        pool.add_agent(make_agent("idle"))
        pool.add_agent(make_agent("busy"))
        pool.add_agent(make_agent("down"))
        pool.reserve("busy", "t1")
        pool.set_status("down", AgentStatus.OFFLINE)

        stats = pool.get_agent_stats()

        assert stats.total == 3
        assert stats.idle == 1
        assert stats.working == 1
        assert stats.offline == 1
        assert stats.error == 0

    def test_agent_capacity(self, pool):
        pool.add_agent(make_agent("a", capacity=3))
        pool.reserve("a", "t1")

        capacity = pool.get_agent_capacity("a")

        assert capacity.current_load == 1
        assert capacity.max_capacity == 3
        assert capacity.is_available is True

    def test_agent_capacity_unknown_agent(self, pool):
        with pytest.raises(AgentNotFoundError):
            pool.get_agent_capacity("missing")
