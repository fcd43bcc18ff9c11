import asyncio
import math
import pytest

from wokai.services.timer_registry import InvalidTimerDuration, TimerRegistry


@pytest.fixture
def registry():
    reg = TimerRegistry(auto_tick=False)
    yield reg
    reg.cleanup()


def test_boil_pasta_completes_once_after_sixty_seconds(registry):
    completed = []
    registry.on_complete(completed.append)

    timer_id = registry.create("Boil pasta", 1)
    assert registry.get(timer_id).remaining == 60

    for _ in range(59):
        registry.tick()
    assert registry.get(timer_id).remaining == 1
    assert completed == []

    registry.tick()
    timer = registry.get(timer_id)
    assert timer.remaining == 0
    assert timer.is_active is False
    assert len(completed) == 1
    assert completed[0].id == timer_id

    # Further evaluations never fire again
    for _ in range(5):
        registry.tick()
    assert len(completed) == 1
    assert registry.get(timer_id).remaining == 0


def test_create_rejects_non_positive_duration(registry):
    updates = []
    registry.on_update(updates.append)

    with pytest.raises(InvalidTimerDuration):
        registry.create("Nope", 0)
    with pytest.raises(InvalidTimerDuration):
        registry.create("Nope", -3)
    with pytest.raises(InvalidTimerDuration):
        registry.create("Too short", 0.001)

    assert registry.list_timers() == []
    assert updates == []


@pytest.mark.parametrize("minutes", [math.nan, math.inf, -math.inf, 1e308])
def test_create_rejects_non_finite_duration(registry, minutes):
    updates = []
    registry.on_update(updates.append)

    with pytest.raises(InvalidTimerDuration):
        registry.create("Forever", minutes)

    assert registry.list_timers() == []
    assert updates == []


def test_create_notifies_and_supports_fractional_minutes(registry):
    updates = []
    registry.on_update(updates.append)

    timer_id = registry.create("Rest", 0.5)

    assert len(updates) == 1
    assert [t.id for t in updates[0]] == [timer_id]
    assert updates[0][0].duration == 30
    assert updates[0][0].is_active and not updates[0][0].is_paused


def test_pause_preserves_remaining_and_other_timers_keep_counting(registry):
    sauce = registry.create("Sauce", 1)
    eggs = registry.create("Eggs", 2)

    for _ in range(15):
        registry.tick()
    assert registry.get(sauce).remaining == 45

    registry.pause(sauce)
    for _ in range(30):
        registry.tick()
    assert registry.get(sauce).remaining == 45
    assert registry.get(sauce).is_paused is True
    assert registry.get(eggs).remaining == 120 - 45

    registry.resume(sauce)
    assert registry.get(sauce).remaining == 45
    registry.tick()
    assert registry.get(sauce).remaining == 44


def test_remaining_never_increases_while_running(registry):
    timer_id = registry.create("Simmer", 0.25)
    seen = [registry.get(timer_id).remaining]
    for _ in range(20):
        registry.tick()
        seen.append(registry.get(timer_id).remaining)
    assert seen == sorted(seen, reverse=True)
    assert seen[-1] == 0


def test_pause_and_resume_are_idempotent_and_tolerate_unknown_ids(registry):
    updates = []
    timer_id = registry.create("Bake", 10)
    registry.on_update(updates.append)

    registry.pause(timer_id)
    registry.pause(timer_id)
    registry.resume(timer_id)
    registry.resume(timer_id)
    registry.pause("timer-missing")
    registry.resume("timer-missing")
    registry.cancel("timer-missing")

    assert len(updates) == 2
    assert registry.get(timer_id).remaining == 600


def test_pause_after_completion_is_noop(registry):
    timer_id = registry.create("Quick", 1 / 60)
    registry.tick()
    assert registry.get(timer_id).is_active is False

    registry.pause(timer_id)
    assert registry.get(timer_id).is_paused is False


def test_cancel_removes_timer_without_completion(registry):
    completed = []
    updates = []
    registry.on_complete(completed.append)
    timer_id = registry.create("Roast", 1 / 60)
    registry.on_update(updates.append)

    registry.cancel(timer_id)
    registry.tick()

    assert timer_id not in registry
    assert completed == []
    assert updates[0] == []


def test_unsubscribe_detaches_listener(registry):
    updates = []
    sub = registry.on_update(updates.append)
    registry.create("A", 1)
    sub.unsubscribe()
    registry.create("B", 1)
    assert len(updates) == 1


def test_failing_listener_does_not_stop_completion(registry):
    completed = []

    def boom(_timer):
        raise RuntimeError("speaker unplugged")

    registry.on_complete(boom)
    registry.on_complete(completed.append)
    registry.create("Chill", 1 / 60)
    registry.tick()

    assert len(completed) == 1


def test_cleanup_clears_everything(registry):
    registry.create("A", 1)
    registry.create("B", 2)
    registry.cleanup()
    assert registry.list_timers() == []


# --- Real ticking on the event loop ---

@pytest.mark.asyncio
async def test_background_ticking_completes_once():
    registry = TimerRegistry(tick_seconds=0.01)
    completed = []
    registry.on_complete(completed.append)

    timer_id = registry.create("Blanch", 0.05)  # 3 ticks
    await asyncio.sleep(0.2)

    timer = registry.get(timer_id)
    assert timer.remaining == 0
    assert timer.is_active is False
    assert len(completed) == 1
    registry.cleanup()


@pytest.mark.asyncio
async def test_background_cancel_never_completes():
    registry = TimerRegistry(tick_seconds=0.01)
    completed = []
    registry.on_complete(completed.append)

    timer_id = registry.create("Blanch", 0.05)
    await asyncio.sleep(0.015)
    registry.cancel(timer_id)
    await asyncio.sleep(0.1)

    assert completed == []
    assert registry.list_timers() == []
    registry.cleanup()


@pytest.mark.asyncio
async def test_background_pause_holds_remaining():
    registry = TimerRegistry(tick_seconds=0.01)
    timer_id = registry.create("Proof", 1)

    registry.pause(timer_id)
    held = registry.get(timer_id).remaining
    await asyncio.sleep(0.1)
    assert registry.get(timer_id).remaining == held

    registry.resume(timer_id)
    assert registry.get(timer_id).remaining == held
    await asyncio.sleep(0.05)
    assert registry.get(timer_id).remaining < held
    registry.cleanup()


@pytest.mark.asyncio
async def test_cleanup_cancels_tick_tasks():
    registry = TimerRegistry(tick_seconds=0.01)
    registry.create("A", 1)
    registry.create("B", 1)
    tasks = list(registry._tasks.values())

    registry.cleanup()
    await asyncio.sleep(0.01)

    assert all(t.cancelled() or t.done() for t in tasks)
