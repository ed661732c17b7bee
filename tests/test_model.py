"""Tests for the observable model and the flush scheduler."""

import asyncio

import pytest

from formforge.model import Model
from formforge.scheduler import Scheduler


# =============================================================================
# Model
# =============================================================================


class TestModelMapping:
    def test_writes_go_to_caller_dict(self):
        data = {"name": "a"}
        model = Model(data)
        model["name"] = "b"
        model.write("age", 3)
        assert data == {"name": "b", "age": 3}

    def test_read_path(self):
        model = Model({"address": {"city": "Oslo"}})
        assert model.read("address.city") == "Oslo"
        assert model.read("address.zip") is None

    def test_mapping_protocol(self):
        model = Model({"a": 1, "b": 2})
        assert len(model) == 2
        assert list(model) == ["a", "b"]
        del model["a"]
        assert dict(model) == {"b": 2}


class TestWatchers:
    @pytest.mark.asyncio
    async def test_batched_writes_fire_once(self):
        model = Model({"name": "a"})
        seen = []
        model.watch("name", lambda new, old: seen.append((new, old)))

        model["name"] = "b"
        model["name"] = "c"
        await model.scheduler.next_tick()

        assert seen == [("c", "a")]

    @pytest.mark.asyncio
    async def test_notification_is_deferred(self):
        model = Model({"name": "a"})
        seen = []
        model.watch("name", lambda new, old: seen.append(new))

        model["name"] = "b"
        assert seen == []
        await asyncio.sleep(0)
        assert seen == ["b"]

    @pytest.mark.asyncio
    async def test_write_back_to_same_value_is_silent(self):
        model = Model({"name": "a"})
        seen = []
        model.watch("name", lambda new, old: seen.append(new))

        model["name"] = "b"
        model["name"] = "a"
        await model.scheduler.next_tick()

        assert seen == []

    @pytest.mark.asyncio
    async def test_only_changed_paths_fire(self):
        model = Model({"name": "a", "age": 1})
        seen = []
        model.watch("name", lambda new, old: seen.append("name"))
        model.watch("age", lambda new, old: seen.append("age"))

        model["age"] = 2
        await model.scheduler.next_tick()

        assert seen == ["age"]

    @pytest.mark.asyncio
    async def test_nested_path(self):
        model = Model({"address": {"city": "Oslo"}})
        seen = []
        model.watch("address.city", lambda new, old: seen.append((new, old)))

        model.write("address.city", "Bergen")
        await model.scheduler.next_tick()

        assert seen == [("Bergen", "Oslo")]

    @pytest.mark.asyncio
    async def test_direct_mutation_needs_touch(self):
        model = Model({"tags": []})
        seen = []
        model.watch("tags", lambda new, old: seen.append((list(new), old)))

        model["tags"].append("x")
        await model.scheduler.next_tick()
        assert seen == []

        model.touch("tags")
        await model.scheduler.next_tick()
        assert seen == [(["x"], [])]

    @pytest.mark.asyncio
    async def test_rearm_marks_value_seen(self):
        model = Model({"name": "a"})
        seen = []
        model.watch("name", lambda new, old: seen.append(new))

        model["name"] = "b"
        model.rearm("name")
        await model.scheduler.next_tick()

        assert seen == []

    @pytest.mark.asyncio
    async def test_unwatch(self):
        model = Model({"name": "a"})
        seen = []
        unwatch = model.watch("name", lambda new, old: seen.append(new))
        unwatch()
        unwatch()

        model["name"] = "b"
        await model.scheduler.next_tick()

        assert seen == []

    def test_writes_without_loop_wait_for_flush(self):
        model = Model({"name": "a"})
        seen = []
        model.watch("name", lambda new, old: seen.append(new))

        model["name"] = "b"
        assert model.scheduler.pending
        model.scheduler.flush()

        assert seen == ["b"]
        assert not model.scheduler.pending

    def test_write_before_loop_still_schedules_later_flushes(self):
        model = Model({"name": "a"})
        seen = []
        model.watch("name", lambda new, old: seen.append(new))
        model["name"] = "b"

        async def write_inside_loop():
            model["name"] = "c"
            for _ in range(5):
                await asyncio.sleep(0)

        asyncio.run(write_inside_loop())

        assert seen == ["c"]
        assert not model.scheduler.pending


# =============================================================================
# Scheduler
# =============================================================================


class TestScheduler:
    @pytest.mark.asyncio
    async def test_queue_dedupes_jobs(self):
        scheduler = Scheduler()
        calls = []

        def job():
            calls.append(1)

        scheduler.queue(job)
        scheduler.queue(job)
        await scheduler.next_tick()

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_jobs_queued_during_flush_run_in_same_flush(self):
        scheduler = Scheduler()
        order = []

        def second():
            order.append("second")

        def first():
            order.append("first")
            scheduler.queue(second)

        scheduler.queue(first)
        scheduler.flush()

        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_next_tick_waits_for_spawned_tasks(self):
        scheduler = Scheduler()
        done = []

        async def work():
            await asyncio.sleep(0.01)
            done.append(True)

        scheduler.spawn(work())
        assert scheduler.pending
        await scheduler.next_tick()

        assert done == [True]
        assert not scheduler.pending

    @pytest.mark.asyncio
    async def test_next_tick_follows_chained_work(self):
        scheduler = Scheduler()
        done = []

        async def inner():
            await asyncio.sleep(0)
            done.append("inner")

        async def outer():
            await asyncio.sleep(0)
            scheduler.queue(lambda: scheduler.spawn(inner()))

        scheduler.spawn(outer())
        await scheduler.next_tick()

        assert done == ["inner"]
