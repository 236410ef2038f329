from __future__ import annotations

import asyncio
from typing import List

import pytest

from envpick.multistep import (
    FlowBack,
    FlowCancel,
    FlowResume,
    InputFlowAction,
    MultiStepInput,
    MultiStepInputFactory,
    QuickPickParameters,
)
from envpick.prompts import QuickPickItem


@pytest.mark.asyncio
async def test_forward_transitions_grow_the_stack(shell) -> None:
    runner = MultiStepInput(shell)
    depths: List[int] = []

    async def step_c(input, state):
        depths.append(input.depth)
        return None

    async def step_b(input, state):
        depths.append(input.depth)
        return step_c

    async def step_a(input, state):
        depths.append(input.depth)
        return step_b

    await runner.run(step_a, {})

    assert depths == [1, 2, 3]
    assert runner.depth == 0


@pytest.mark.asyncio
async def test_back_reenters_previous_step_not_next(shell) -> None:
    runner = MultiStepInput(shell)
    trace: List[str] = []
    stacks = []

    async def step_c(input, state):
        trace.append("C")
        return None

    async def step_b(input, state):
        trace.append("B")
        if trace.count("B") == 1:
            raise FlowBack()
        return None

    async def step_a(input, state):
        trace.append("A")
        stacks.append(input.steps)
        return step_b

    await runner.run(step_a, {})

    assert trace == ["A", "B", "A", "B"]
    assert stacks[1] == (step_a,)


@pytest.mark.asyncio
async def test_back_from_first_step_terminates(shell) -> None:
    runner = MultiStepInput(shell)
    calls: List[str] = []

    async def only(input, state):
        calls.append("only")
        raise FlowBack()

    await runner.run(only, {})

    assert calls == ["only"]


@pytest.mark.asyncio
async def test_resume_reenters_the_same_step(shell) -> None:
    runner = MultiStepInput(shell)
    depths: List[int] = []

    async def first(input, state):
        return flaky

    async def flaky(input, state):
        depths.append(input.depth)
        if len(depths) == 1:
            raise FlowResume()
        return None

    await runner.run(first, {})

    assert depths == [2, 2]


@pytest.mark.asyncio
async def test_cancel_stops_flow_and_disposes_prompt_once(shell) -> None:
    runner = MultiStepInput(shell)
    calls: List[str] = []
    item = QuickPickItem("one")

    async def step_c(input, state):
        calls.append("C")
        return None

    async def step_b(input, state):
        calls.append("B")
        raise FlowCancel()

    async def step_a(input, state):
        calls.append("A")
        await input.show_quick_pick(QuickPickParameters(items=[item], placeholder="pick"))
        return step_b

    task = asyncio.ensure_future(runner.run(step_a, {}))
    picker = await shell.next_prompt()
    picker.select(item)
    await task

    assert calls == ["A", "B"]
    assert picker.dispose_count == 1
    assert runner.current is None


@pytest.mark.asyncio
async def test_step_failure_propagates_after_disposing_prompt(shell) -> None:
    runner = MultiStepInput(shell)
    item = QuickPickItem("one")

    async def broken(input, state):
        raise ValueError("boom")

    async def step_a(input, state):
        await input.show_quick_pick(QuickPickParameters(items=[item], placeholder="pick"))
        return broken

    task = asyncio.ensure_future(runner.run(step_a, {}))
    picker = await shell.next_prompt()
    picker.select(item)

    with pytest.raises(ValueError, match="boom"):
        await task
    assert picker.disposed
    assert runner.depth == 0


@pytest.mark.asyncio
async def test_cancelling_the_run_disposes_the_open_prompt(shell) -> None:
    runner = MultiStepInput(shell)

    async def waiting(input, state):
        await input.show_quick_pick(QuickPickParameters(items=[QuickPickItem("one")], placeholder="pick"))
        return None

    task = asyncio.ensure_future(runner.run(waiting, {}))
    picker = await shell.next_prompt()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert picker.dispose_count == 1
    assert runner.depth == 0

    async def done(input, state):
        return None

    await runner.run(done, {})


@pytest.mark.asyncio
async def test_bare_flow_action_is_a_failure(shell) -> None:
    async def odd(input, state):
        raise InputFlowAction()

    with pytest.raises(InputFlowAction):
        await MultiStepInput(shell).run(odd, {})


@pytest.mark.asyncio
async def test_shared_state_keeps_identity_and_updates(shell) -> None:
    state = {"answers": []}
    seen = []

    async def second(input, current):
        seen.append(current)
        current["answers"].append("second")
        return None

    async def first(input, current):
        seen.append(current)
        current["answers"].append("first")
        return second

    await MultiStepInput(shell).run(first, state)

    assert all(item is state for item in seen)
    assert state["answers"] == ["first", "second"]


@pytest.mark.asyncio
async def test_active_prompt_is_busy_while_next_step_runs(shell) -> None:
    runner = MultiStepInput(shell)
    item = QuickPickItem("one")
    observed = []

    async def step_b(input, state):
        observed.append((input.current.enabled, input.current.busy))
        return None

    async def step_a(input, state):
        await input.show_quick_pick(QuickPickParameters(items=[item], placeholder="pick"))
        return step_b

    task = asyncio.ensure_future(runner.run(step_a, {}))
    picker = await shell.next_prompt()
    picker.select(item)
    await task

    assert observed == [(False, True)]
    assert picker.dispose_count == 1


@pytest.mark.asyncio
async def test_run_rejects_reentry_on_same_instance(shell) -> None:
    runner = MultiStepInput(shell)
    gate = asyncio.Event()

    async def waiting(input, state):
        await gate.wait()
        return None

    task = asyncio.ensure_future(runner.run(waiting, {}))
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError):
        await runner.run(waiting, {})
    gate.set()
    await task


@pytest.mark.asyncio
async def test_factory_runs_are_independent(shell) -> None:
    factory = MultiStepInputFactory(shell)
    depths = {}

    def make_chain(name, length):
        async def step(input, state):
            state.append(name)
            depths[name] = input.depth
            return step if len(state) < length else None

        return step

    left_state: List[str] = []
    right_state: List[str] = []
    await asyncio.gather(
        factory.create().run(make_chain("left", 2), left_state),
        factory.create().run(make_chain("right", 3), right_state),
    )

    assert left_state == ["left", "left"]
    assert right_state == ["right", "right", "right"]
    assert depths == {"left": 2, "right": 3}
