from __future__ import annotations

import asyncio
import logging

import pytest

from bootstage.contracts.exceptions import OrchestrationError
from bootstage.engine.orchestrator import Orchestrator, RunState
from bootstage.engine.scheduler import FrameScheduler
from bootstage.progress import LoadProgress
from bootstage.scene.scene import Scene
from bootstage.scene.template import Template
from tests.fakes.progress import RecordingProgress
from tests.fakes.scheduler import CountingScheduler
from tests.fakes.steps import FailingStep, GateStep, Marker, Misconfigured, RecordingStep, camera, spin_until, step


def make_orchestrator(
    journal: list[str],
    declarations: list[object],
    *,
    progress: list[RecordingProgress] | None = None,
    **kwargs: object,
) -> Orchestrator:
    created = progress if progress is not None else []

    def _factory() -> RecordingProgress:
        controller = RecordingProgress(journal)
        created.append(controller)
        return controller

    kwargs.setdefault("scheduler", CountingScheduler())
    return Orchestrator(
        "test",
        declarations=declarations,  # type: ignore[arg-type]
        progress_factory=_factory,
        animated_progress=False,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_run_reaches_ready_and_fires_readiness_once(journal: list[str]) -> None:
    created: list[RecordingProgress] = []
    orchestrator = make_orchestrator(journal, [step(journal, "a"), step(journal, "b")], progress=created)
    heard: list[RunState] = []
    orchestrator.ready.subscribe(lambda: heard.append(orchestrator.state))

    await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert heard == [RunState.READY]
    assert orchestrator.ready.fire_count == 1
    assert len(orchestrator.ready) == 0
    assert orchestrator.session is not None and orchestrator.session.completed
    assert created[0].events[0] == "show"
    assert created[0].events[-2:] == ["hide", "close"]
    assert created[0].values[-1] == 1.0
    assert orchestrator.progress is None


@pytest.mark.asyncio
async def test_readiness_fires_after_progress_is_released(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a")])
    orchestrator.ready.subscribe(lambda: journal.append("ready"))

    await orchestrator.run()

    assert journal[-3:] == ["hide", "close", "ready"]


@pytest.mark.asyncio
async def test_steps_receive_run_context(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a")])

    await orchestrator.run()

    component = orchestrator.ledger.entries[0].get_component(RecordingStep)
    assert component is not None and component.context is not None
    assert component.context.orchestrator is orchestrator
    assert component.context.generation == orchestrator.generation
    assert component.context.ready is orchestrator.ready
    assert component.context.stage == "test"


@pytest.mark.asyncio
async def test_empty_and_step_less_slots_still_finish_the_stage(
    journal: list[str], caplog: pytest.LogCaptureFixture
) -> None:
    created: list[RecordingProgress] = []
    orchestrator = make_orchestrator(journal, [step(journal, "x"), None, Template.of(Marker, name="Y")], progress=created)
    heard: list[int] = []
    orchestrator.ready.subscribe(lambda: heard.append(orchestrator.generation))

    with caplog.at_level(logging.WARNING):
        await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert created[0].values == pytest.approx([0.0, 1 / 3, 2 / 3, 1.0])
    assert journal.count("setup:x") == 1
    assert heard == [orchestrator.generation]
    assert orchestrator.ready.fire_count == 1
    assert len(orchestrator.ledger) == 2
    assert orchestrator.session is not None
    main = orchestrator.session.reports["main"]
    assert len(main.skipped) == 2
    assert "Step 1 declaration is empty" in caplog.text
    assert "'Y' has no AsyncStep component" in caplog.text
    assert orchestrator.session.failures == []


@pytest.mark.asyncio
async def test_missing_progress_factory_is_a_warning(journal: list[str], caplog: pytest.LogCaptureFixture) -> None:
    orchestrator = Orchestrator("bare", declarations=[step(journal, "a")], scheduler=CountingScheduler())

    with caplog.at_level(logging.WARNING):
        await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert "has no progress controller configured" in caplog.text


@pytest.mark.asyncio
async def test_async_step_progress_controller_is_set_up_and_closed(journal: list[str]) -> None:
    controllers: list[LoadProgress] = []

    def _factory() -> LoadProgress:
        controller = LoadProgress(seconds_per_unit=0, fade_duration=0)
        controllers.append(controller)
        return controller

    orchestrator = Orchestrator(
        "load",
        declarations=[step(journal, "a")],
        scheduler=CountingScheduler(),
        progress_factory=_factory,
    )

    await orchestrator.run()

    assert controllers[0].target == 1.0
    assert controllers[0].closed is True
    assert controllers[0].visible is False


@pytest.mark.asyncio
async def test_bootstrap_singletons_are_created_once_per_scene(journal: list[str]) -> None:
    scene = Scene()
    first = make_orchestrator(journal, [], bootstrap=[camera], scene=scene)
    second = make_orchestrator(journal, [], bootstrap=[camera, None], scene=scene)

    await first.run()
    await second.run()

    assert [instance.tag for instance in scene].count("camera") == 1
    assert len(first.ledger) == 0
    assert second.session is not None
    assert "Bootstrap 1 declaration is empty" in second.session.reports["basics"].skipped[0]


@pytest.mark.asyncio
async def test_bootstrap_failure_does_not_block_later_singletons(
    journal: list[str], caplog: pytest.LogCaptureFixture
) -> None:
    scene = Scene()
    orchestrator = make_orchestrator(
        journal, [step(journal, "a")], bootstrap=[Template.of(Misconfigured, name="Fuse"), camera], scene=scene
    )

    with caplog.at_level(logging.ERROR):
        await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert scene.find_by_tag("camera") is not None
    assert journal.count("setup:a") == 1
    assert orchestrator.session is not None
    assert orchestrator.session.errors == []
    basics = orchestrator.session.reports["basics"]
    assert basics.completed == 2
    assert [(failure.index, failure.unit, failure.during) for failure in basics.failures] == [(0, "Fuse", "spawn")]
    assert "bootstrap 0 'Fuse' failed to spawn" in caplog.text


class ShyProgress(RecordingProgress):
    def show(self, animated: bool = True) -> None:
        raise RuntimeError("terminal unavailable")


@pytest.mark.asyncio
async def test_broken_progress_controller_is_dropped_and_the_stage_still_boots(journal: list[str]) -> None:
    shy = ShyProgress(journal)
    scene = Scene()
    orchestrator = Orchestrator(
        "shy",
        declarations=[step(journal, "a")],
        bootstrap=[camera],
        scene=scene,
        scheduler=CountingScheduler(),
        progress_factory=lambda: shy,
    )

    await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert shy.closed is True
    assert shy.values == []
    assert scene.find_by_tag("camera") is not None
    assert orchestrator.session is not None
    assert [failure.during for failure in orchestrator.session.failures] == ["progress"]


@pytest.mark.asyncio
async def test_progress_factory_error_is_contained(journal: list[str]) -> None:
    def _factory() -> RecordingProgress:
        raise OSError("no console")

    orchestrator = Orchestrator(
        "headless", declarations=[step(journal, "a")], scheduler=CountingScheduler(), progress_factory=_factory
    )

    await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert journal == ["setup:a"]
    assert orchestrator.session is not None
    assert orchestrator.session.errors == []
    assert str(orchestrator.session.failures[0].error) == "no console"


@pytest.mark.asyncio
async def test_failing_step_does_not_stop_readiness(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "bad", FailingStep), step(journal, "b")])

    await orchestrator.run()

    assert orchestrator.state is RunState.READY
    assert orchestrator.session is not None
    assert len(orchestrator.session.failures) == 1
    assert "setup:b" in journal


@pytest.mark.asyncio
async def test_restart_cancels_run_in_flight_exactly_once(journal: list[str]) -> None:
    gate = asyncio.Event()
    orchestrator = make_orchestrator(journal, [step(journal, "gate", GateStep, gate=gate)])

    first = orchestrator.begin()
    await spin_until(lambda: "setup:gate" in journal)
    first_generation = orchestrator.generation

    second = orchestrator.begin()
    await first
    assert first.exception() is None
    assert journal.count("cancelled:gate") == 1

    gate.set()
    await second

    assert orchestrator.generation == first_generation + 1
    assert orchestrator.state is RunState.READY
    assert orchestrator.ready.fire_count == 1
    assert journal.count("released:gate") == 1


@pytest.mark.asyncio
async def test_close_mid_run_suppresses_readiness(journal: list[str]) -> None:
    created: list[RecordingProgress] = []
    gate = asyncio.Event()
    orchestrator = make_orchestrator(journal, [step(journal, "gate", GateStep, gate=gate)], progress=created)

    task = orchestrator.begin()
    await spin_until(lambda: "setup:gate" in journal)
    await orchestrator.close()

    assert task.done()
    assert orchestrator.ready.fire_count == 0
    assert orchestrator.state is RunState.IDLE
    assert orchestrator.session is not None and orchestrator.session.cancelled
    assert created[0].closed is True
    assert 1.0 not in created[0].values


@pytest.mark.asyncio
async def test_entry_points_fail_after_close(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [])
    await orchestrator.close()

    assert orchestrator.closed is True
    with pytest.raises(OrchestrationError, match="closed"):
        orchestrator.begin()
    with pytest.raises(OrchestrationError):
        orchestrator.begin_deconstruction()


@pytest.mark.asyncio
async def test_deconstruct_destroys_in_reverse_creation_order(
    journal: list[str], caplog: pytest.LogCaptureFixture
) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a"), step(journal, "b"), step(journal, "c")])
    await orchestrator.run()
    spawned = orchestrator.ledger.entries

    with caplog.at_level(logging.WARNING):
        await orchestrator.deconstruct()

    assert [entry for entry in journal if entry.startswith("destroy:")] == ["destroy:c", "destroy:b", "destroy:a"]
    assert len(orchestrator.ledger) == 0
    assert not any(instance in orchestrator.scene for instance in spawned)
    assert orchestrator.state is RunState.IDLE
    assert "no follow-on stage" in caplog.text


@pytest.mark.asyncio
async def test_deconstruct_skips_already_destroyed_instances(
    journal: list[str], caplog: pytest.LogCaptureFixture
) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a"), step(journal, "b")])
    await orchestrator.run()
    orchestrator.scene.destroy(orchestrator.ledger.entries[0])

    with caplog.at_level(logging.WARNING):
        await orchestrator.deconstruct()

    assert journal.count("destroy:a") == 1
    assert "already destroyed" in caplog.text


@pytest.mark.asyncio
async def test_deconstruct_yields_between_destructions(journal: list[str]) -> None:
    scheduler = CountingScheduler()
    orchestrator = make_orchestrator(journal, [step(journal, "a"), step(journal, "b")], scheduler=scheduler)
    await orchestrator.run()
    before = scheduler.ticks

    await orchestrator.deconstruct()

    # one leading tick, one per instance, one after clearing
    assert scheduler.ticks - before == 4


@pytest.mark.asyncio
async def test_deconstruct_hands_off_to_follow_on(journal: list[str]) -> None:
    scene = Scene()
    follow_on = make_orchestrator(journal, [step(journal, "next")], scene=scene)
    orchestrator = make_orchestrator(journal, [step(journal, "first")], scene=scene, follow_on=follow_on)
    await orchestrator.run()

    await orchestrator.deconstruct()

    assert orchestrator.state is RunState.HANDED_OFF
    assert follow_on.task is not None
    await follow_on.task
    assert follow_on.state is RunState.READY
    assert journal.index("destroy:first") < journal.index("setup:next")


@pytest.mark.asyncio
async def test_hand_off_passes_the_cancellation_token(journal: list[str]) -> None:
    gate = asyncio.Event()
    follow_on = make_orchestrator(journal, [step(journal, "gate", GateStep, gate=gate)])
    orchestrator = make_orchestrator(journal, [], follow_on=follow_on)
    await orchestrator.run()
    await orchestrator.deconstruct()
    await spin_until(lambda: "setup:gate" in journal)

    await orchestrator.close()
    assert follow_on.task is not None
    await follow_on.task

    assert journal.count("cancelled:gate") == 1
    assert follow_on.state is RunState.IDLE
    assert follow_on.ready.fire_count == 0


@pytest.mark.asyncio
async def test_deconstruct_while_running_cancels_the_run(
    journal: list[str], caplog: pytest.LogCaptureFixture
) -> None:
    gate = asyncio.Event()
    orchestrator = make_orchestrator(journal, [step(journal, "gate", GateStep, gate=gate)])
    run = orchestrator.begin()
    await spin_until(lambda: "setup:gate" in journal)

    with caplog.at_level(logging.WARNING):
        await orchestrator.deconstruct()
    await run

    assert journal.count("cancelled:gate") == 1
    assert "destroy:gate" in journal
    assert orchestrator.ready.fire_count == 0
    assert "deconstruction requested while running-main" in caplog.text


@pytest.mark.asyncio
async def test_begin_play_fires_only_once(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [])
    calls: list[str] = []
    orchestrator.play.subscribe(lambda: calls.append("play"))

    assert orchestrator.begin_play() is True
    assert orchestrator.begin_play() is False
    assert calls == ["play"]


@pytest.mark.asyncio
async def test_configure_takes_effect_on_next_run(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a")])
    await orchestrator.run()

    orchestrator.configure([step(journal, "b")])
    await orchestrator.run()

    assert [entry for entry in journal if entry.startswith("setup:")] == ["setup:a", "setup:b"]
    assert len(orchestrator.ledger) == 2
    assert orchestrator.ready.fire_count == 2


@pytest.mark.asyncio
async def test_wait_ready_resolves_on_readiness(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a")])
    waiter = asyncio.create_task(orchestrator.wait_ready())
    await asyncio.sleep(0)

    orchestrator.begin()
    await asyncio.wait_for(waiter, timeout=1)

    assert orchestrator.state is RunState.READY


@pytest.mark.asyncio
async def test_frame_scheduler_drives_progress(journal: list[str]) -> None:
    scheduler = FrameScheduler()
    orchestrator = make_orchestrator(journal, [step(journal, "a")], scheduler=scheduler)

    task = orchestrator.begin()
    await asyncio.sleep(0)
    assert orchestrator.state is RunState.IDLE

    for _ in range(50):
        if task.done():
            break
        scheduler.advance()
        await asyncio.sleep(0)

    await task
    assert orchestrator.state is RunState.READY


@pytest.mark.asyncio
async def test_close_can_destroy_spawned_instances(journal: list[str]) -> None:
    orchestrator = make_orchestrator(journal, [step(journal, "a"), step(journal, "b")])
    await orchestrator.run()

    async with orchestrator:
        pass
    await orchestrator.close(destroy_instances=True)

    assert "destroy:a" not in journal
    other = make_orchestrator(journal, [step(journal, "c"), step(journal, "d")])
    await other.run()
    await other.close(destroy_instances=True)
    assert [entry for entry in journal if entry.startswith("destroy:")] == ["destroy:d", "destroy:c"]
