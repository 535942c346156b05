import asyncio
import threading

import pytest

from live_quiz.core.errors import InvalidTransition
from live_quiz.core.models import SessionStatus, Transition
from live_quiz.core.services.question_timer import (
    AutoAdvanceLoop,
    QuestionTimer,
    remaining_for,
    seconds_remaining,
    seconds_until,
)


@pytest.fixture
def timer(store, machine, clock) -> QuestionTimer:
    return QuestionTimer(store, machine, clock)


def test_seconds_remaining_rounds_up_and_never_goes_negative():
    assert seconds_remaining(0, 30, 0) == 30
    assert seconds_remaining(0, 30, 29_001) == 1
    assert seconds_remaining(0, 30, 30_000) == 0
    assert seconds_remaining(0, 30, 45_000) == 0
    assert seconds_until(10_500, 10_000) == 1


def test_remaining_for_untimed_phases(machine, pin, clock):
    assert remaining_for(machine.get_state(pin), clock.now) is None
    state = machine.apply_transition(pin, Transition.START)
    clock.advance(12.5)
    assert remaining_for(state, clock.now) == 18


def test_late_observer_sees_the_same_countdown(machine, pin, clock):
    machine.apply_transition(pin, Transition.START)
    clock.advance(10)

    # An observer subscribing now reads the persisted deadline rather than restarting.
    assert remaining_for(machine.get_state(pin), clock.now) == 20


def test_tick_does_nothing_before_deadline(timer, machine, pin, clock):
    machine.apply_transition(pin, Transition.START)
    clock.advance(29)

    assert timer.tick(pin) is None
    assert machine.get_state(pin).show_result is False


def test_tick_reveals_then_advances(timer, machine, pin, clock):
    machine.apply_transition(pin, Transition.START)
    clock.advance(30)
    assert timer.tick(pin) is Transition.REVEAL
    assert machine.get_state(pin).show_result is True

    clock.advance(19)
    assert timer.tick(pin) is None
    clock.advance(1)
    assert timer.tick(pin) is Transition.ADVANCE
    state = machine.get_state(pin)
    assert (state.current_question_index, state.show_result) == (1, False)


def test_tick_finishes_after_last_reveal(timer, machine, pin, clock):
    machine.apply_transition(pin, Transition.START)
    machine.apply_transition(pin, Transition.ADVANCE)
    machine.apply_transition(pin, Transition.REVEAL)
    clock.advance(20)

    assert timer.tick(pin) is Transition.ADVANCE
    assert machine.get_state(pin).status is SessionStatus.FINISHED
    clock.advance(100)
    assert timer.tick(pin) is None


def test_duplicate_actor_with_stale_view_does_not_double_advance(store, machine, pin, clock):
    first = QuestionTimer(store, machine, clock)
    machine.apply_transition(pin, Transition.START)
    machine.apply_transition(pin, Transition.REVEAL)
    clock.advance(20)
    stale = machine.get_state(pin).phase

    assert first.tick(pin) is Transition.ADVANCE
    # A second host that acted on the phase it saw earlier is turned away.
    with pytest.raises(InvalidTransition):
        machine.apply_transition(pin, Transition.ADVANCE, expected=stale)
    assert machine.get_state(pin).current_question_index == 1


def test_tick_all_covers_every_session(timer, repository, machine, questions, pin, clock):
    repository.create("222222", "Other", questions, "host", "h")
    machine.apply_transition(pin, Transition.START)
    machine.apply_transition("222222", Transition.START)
    clock.advance(31)

    assert timer.tick_all() == {pin: Transition.REVEAL, "222222": Transition.REVEAL}
    assert timer.tick("missing") is None


def test_auto_advance_loop_calls_tick_until_stopped():
    calls = []

    def tick():
        calls.append(1)
        return {}

    async def scenario():
        loop = AutoAdvanceLoop(tick, interval=0.01)
        loop.start()
        await asyncio.sleep(0.05)
        assert loop.running
        await loop.stop()
        assert not loop.running

    asyncio.run(scenario())
    assert len(calls) >= 2


def test_auto_advance_loop_survives_a_failing_tick():
    calls = []

    def tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("store hiccup")
        return {"123456": Transition.REVEAL}

    async def scenario():
        loop = AutoAdvanceLoop(tick, interval=0.01)
        loop.start()
        await asyncio.sleep(0.05)
        await loop.stop()

    asyncio.run(scenario())
    assert len(calls) >= 2


def test_auto_advance_loop_ticks_off_the_event_loop_thread():
    tick_threads = []

    def tick():
        tick_threads.append(threading.get_ident())
        return {}

    async def scenario():
        loop = AutoAdvanceLoop(tick, interval=0.01)
        loop.start()
        await asyncio.sleep(0.05)
        await loop.stop()
        return threading.get_ident()

    loop_thread = asyncio.run(scenario())
    assert tick_threads
    assert loop_thread not in tick_threads
