from __future__ import annotations

import asyncio

import pytest
from fakes import FakePlatform, FakeServiceWorkerContainer, FakeWorker

from pypwa.config import LifecycleConfig
from pypwa.exceptions import RegistrationFailureError
from pypwa.models.snapshot import CapabilityStatus, UpdateOutcome, UpdatePhase
from pypwa.state.events import EventKind, LifecycleEvent
from pypwa.trackers.update import UpdateTracker


async def _started(
    container: FakeServiceWorkerContainer | None,
    events: list[LifecycleEvent],
    config: LifecycleConfig | None = None,
) -> tuple[UpdateTracker, FakePlatform]:
    platform = FakePlatform(service_worker=container)
    tracker = UpdateTracker(platform, config or LifecycleConfig(), on_change=events.append)
    tracker.start(asyncio.get_running_loop())
    await asyncio.sleep(0)
    return tracker, platform


def _controlled() -> FakeServiceWorkerContainer:
    return FakeServiceWorkerContainer(controller=FakeWorker("activated"))


@pytest.mark.asyncio
async def test_absent_worker_api_is_unsupported() -> None:
    tracker, _ = await _started(None, [])

    assert tracker.phase == UpdatePhase.UNSUPPORTED
    assert tracker.capability == CapabilityStatus.ABSENT
    assert await tracker.apply_update() == UpdateOutcome.UNAVAILABLE


@pytest.mark.asyncio
async def test_registration_uses_configured_script_and_scope() -> None:
    container = _controlled()
    config = LifecycleConfig(service_worker_url="/app/sw.js", service_worker_scope="/app/")
    tracker, _ = await _started(container, [], config)

    assert container.register_calls == [("/app/sw.js", "/app/")]
    assert tracker.phase == UpdatePhase.ACTIVE


@pytest.mark.asyncio
async def test_registration_disabled_by_config() -> None:
    container = _controlled()
    tracker, _ = await _started(container, [], LifecycleConfig(register_service_worker=False))

    assert container.register_calls == []
    assert tracker.capability == CapabilityStatus.ABSENT


@pytest.mark.asyncio
async def test_registration_failure_degrades_without_raising() -> None:
    events: list[LifecycleEvent] = []
    container = FakeServiceWorkerContainer(register_error=RuntimeError("TypeError: bad script"))
    tracker, _ = await _started(container, events)

    assert tracker.phase == UpdatePhase.FAILED
    assert tracker.capability == CapabilityStatus.FAILED
    assert tracker.is_update_available is False
    assert isinstance(tracker.registration_error, RegistrationFailureError)
    assert tracker.registration_error.script_url == "/sw.js"
    assert events[-1].kind == EventKind.REGISTRATION_FAILED


@pytest.mark.asyncio
async def test_update_ready_exactly_once_and_single_reload() -> None:
    events: list[LifecycleEvent] = []
    container = _controlled()
    tracker, platform = await _started(container, events)

    worker = FakeWorker("installing")
    container.begin_update(worker)
    assert tracker.phase == UpdatePhase.INSTALLING
    assert tracker.is_update_available is False

    container.finish_install(worker)
    assert tracker.phase == UpdatePhase.INSTALLED_WAITING
    assert tracker.is_update_available is True

    # Repeated statechange must not re-announce.
    worker.dispatch_event("statechange")
    assert [ev.kind for ev in events].count(EventKind.UPDATE_READY) == 1

    apply_task = asyncio.create_task(tracker.apply_update())
    await asyncio.sleep(0)
    assert tracker.phase == UpdatePhase.ACTIVATING
    assert worker.messages == [{"type": "SKIP_WAITING"}]

    container.take_control(worker)
    container.dispatch_event("controllerchange")

    assert await apply_task == UpdateOutcome.APPLIED
    await asyncio.sleep(0)
    assert platform.reloads == 1
    assert tracker.phase == UpdatePhase.ACTIVE
    assert tracker.is_update_available is True


@pytest.mark.asyncio
async def test_first_install_marks_offline_ready_not_update() -> None:
    events: list[LifecycleEvent] = []
    container = FakeServiceWorkerContainer(controller=None)
    tracker, platform = await _started(container, events)
    assert tracker.phase == UpdatePhase.IDLE

    worker = FakeWorker("installing")
    container.begin_update(worker)
    worker.set_state("installed")
    worker.set_state("activating")
    worker.set_state("activated")
    container.take_control(worker)  # clients.claim()
    await asyncio.sleep(0)

    assert tracker.is_offline_ready is True
    assert tracker.is_update_available is False
    assert tracker.phase == UpdatePhase.ACTIVE
    assert platform.reloads == 0
    assert EventKind.OFFLINE_READY in [ev.kind for ev in events]


@pytest.mark.asyncio
async def test_worker_waiting_from_previous_visit_is_an_update() -> None:
    container = _controlled()
    container.registration.waiting = FakeWorker("installed")
    tracker, _ = await _started(container, [])

    assert tracker.phase == UpdatePhase.INSTALLED_WAITING
    assert tracker.is_update_available is True


@pytest.mark.asyncio
async def test_controller_change_without_apply_does_not_reload() -> None:
    container = _controlled()
    tracker, platform = await _started(container, [])

    container.dispatch_event("controllerchange")
    await asyncio.sleep(0)

    assert platform.reloads == 0


@pytest.mark.asyncio
async def test_apply_update_without_waiting_worker_is_unavailable() -> None:
    tracker, _ = await _started(_controlled(), [])

    assert await tracker.apply_update() == UpdateOutcome.UNAVAILABLE


@pytest.mark.asyncio
async def test_post_message_failure_is_unavailable_and_keeps_update() -> None:
    container = _controlled()
    tracker, _ = await _started(container, [])
    worker = FakeWorker("installing", fail_messages=True)
    container.begin_update(worker)
    container.finish_install(worker)

    assert await tracker.apply_update() == UpdateOutcome.UNAVAILABLE
    assert tracker.phase == UpdatePhase.INSTALLED_WAITING
    assert tracker.is_update_available is True


@pytest.mark.asyncio
async def test_redundant_install_returns_to_active() -> None:
    container = _controlled()
    tracker, _ = await _started(container, [])
    worker = FakeWorker("installing")
    container.begin_update(worker)

    worker.set_state("redundant")

    assert tracker.phase == UpdatePhase.ACTIVE
    assert tracker.is_update_available is False
    assert worker.listener_count() == 0


@pytest.mark.asyncio
async def test_reload_disabled_by_config() -> None:
    container = _controlled()
    tracker, platform = await _started(container, [], LifecycleConfig(reload_on_update=False))
    worker = FakeWorker("installing")
    container.begin_update(worker)
    container.finish_install(worker)

    task = asyncio.create_task(tracker.apply_update())
    await asyncio.sleep(0)
    container.take_control(worker)

    assert await task == UpdateOutcome.APPLIED
    await asyncio.sleep(0)
    assert platform.reloads == 0


@pytest.mark.asyncio
async def test_stop_resolves_pending_apply_and_unregisters() -> None:
    container = _controlled()
    tracker, platform = await _started(container, [])
    worker = FakeWorker("installing")
    container.begin_update(worker)
    container.finish_install(worker)

    task = asyncio.create_task(tracker.apply_update())
    await asyncio.sleep(0)
    tracker.stop()

    assert await task == UpdateOutcome.UNAVAILABLE
    assert container.listener_count() == 0
    assert container.registration.listener_count() == 0
    assert worker.listener_count() == 0
    assert platform.reloads == 0


@pytest.mark.asyncio
async def test_stop_cancels_pending_registration() -> None:
    platform = FakePlatform(service_worker=_controlled())
    tracker = UpdateTracker(platform, LifecycleConfig(), on_change=lambda _ev: None)
    tracker.start(asyncio.get_running_loop())

    tracker.stop()
    await asyncio.sleep(0)

    assert tracker.phase == UpdatePhase.REGISTERING
    assert platform.service_worker.register_calls == []


@pytest.mark.asyncio
async def test_update_activated_by_another_page_reloads_once() -> None:
    events: list[LifecycleEvent] = []
    container = _controlled()
    tracker, platform = await _started(container, events)
    worker = FakeWorker("installing")
    container.begin_update(worker)
    container.finish_install(worker)

    # Another tab applied the update.
    worker.set_state("activating")
    worker.set_state("activated")
    assert tracker.phase == UpdatePhase.INSTALLED_WAITING
    container.take_control(worker)
    await asyncio.sleep(0)

    assert tracker.phase == UpdatePhase.ACTIVE
    assert tracker.is_update_available is True
    assert platform.reloads == 1
    assert events[-1].kind == EventKind.CONTROLLER_CHANGED
    assert events[-1].data["applied_elsewhere"] is True
    assert worker.messages == []

    outcome = await asyncio.wait_for(tracker.apply_update(), 1.0)
    assert outcome == UpdateOutcome.UNAVAILABLE

    container.dispatch_event("controllerchange")
    await asyncio.sleep(0)
    assert platform.reloads == 1


@pytest.mark.asyncio
async def test_newer_install_keeps_waiting_update_applicable() -> None:
    events: list[LifecycleEvent] = []
    container = _controlled()
    tracker, _ = await _started(container, events)
    first = FakeWorker("installing")
    container.begin_update(first)
    container.finish_install(first)
    phases: list[UpdatePhase] = []
    events.clear()

    second = FakeWorker("installing")
    container.begin_update(second)
    phases.append(tracker.phase)
    assert tracker.phase == UpdatePhase.INSTALLED_WAITING

    # The browser retires the older waiting worker before the newer one installs.
    first.set_state("redundant")
    phases.append(tracker.phase)
    assert tracker.phase == UpdatePhase.INSTALLING
    assert tracker.is_update_available is True
    assert UpdatePhase.ACTIVE not in phases

    container.finish_install(second)
    assert tracker.phase == UpdatePhase.INSTALLED_WAITING
    assert [ev.kind for ev in events].count(EventKind.UPDATE_READY) == 0

    task = asyncio.create_task(tracker.apply_update())
    await asyncio.sleep(0)
    assert second.messages == [{"type": "SKIP_WAITING"}]
    assert first.messages == []
    container.take_control(second)
    assert await task == UpdateOutcome.APPLIED


@pytest.mark.asyncio
async def test_redundant_second_install_leaves_waiting_update_in_place() -> None:
    container = _controlled()
    tracker, _ = await _started(container, [])
    first = FakeWorker("installing")
    container.begin_update(first)
    container.finish_install(first)

    second = FakeWorker("installing")
    container.begin_update(second)
    second.set_state("redundant")

    assert tracker.phase == UpdatePhase.INSTALLED_WAITING
    assert second.listener_count() == 0
