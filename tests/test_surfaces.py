from __future__ import annotations

import asyncio

import pytest
from fakes import FakeInstallPrompt, FakePlatform, FakeWorker, full_platform

from pypwa.config import LifecycleConfig
from pypwa.coordinator import LifecycleCoordinator
from pypwa.models.snapshot import InstallOutcome, LifecycleSnapshot, UpdateOutcome
from pypwa.surfaces import (
    BROWSER_INSTALL_HINT,
    IOS_INSTALL_HINT,
    FloatingInstallGate,
    InstallModalGate,
    OfflineReadyToast,
    UpdateBannerGate,
    _SurfaceGate,
    can_show_floating_button,
    can_show_install_modal,
    can_show_update_banner,
    manual_install_hint,
    open_surfaces,
    status_rows,
)


@pytest.mark.parametrize(
    ("permanent", "session", "modal", "floating"),
    [
        (False, False, True, False),
        (False, True, True, False),
        (True, False, False, True),
        (True, True, False, False),
    ],
)
def test_gating_predicates(permanent: bool, session: bool, modal: bool, floating: bool) -> None:
    snap = LifecycleSnapshot(is_installable=True, permanently_dismissed=permanent, session_dismissed=session)

    assert can_show_install_modal(snap) is modal
    assert can_show_floating_button(snap) is floating


def test_installed_app_shows_no_install_surface() -> None:
    snap = LifecycleSnapshot(is_installable=True, is_installed=True, permanently_dismissed=True)

    assert can_show_install_modal(snap) is False
    assert can_show_floating_button(snap) is False


def test_update_banner_predicate() -> None:
    assert can_show_update_banner(LifecycleSnapshot(is_update_available=True)) is True
    assert can_show_update_banner(LifecycleSnapshot()) is False


def test_manual_install_hint_by_platform() -> None:
    ios = FakePlatform(user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)")
    assert manual_install_hint(ios) == IOS_INSTALL_HINT
    assert manual_install_hint(FakePlatform()) == BROWSER_INSTALL_HINT


def test_status_rows_render_regardless_of_dismissal() -> None:
    rows = dict(status_rows(LifecycleSnapshot(is_offline=True, permanently_dismissed=True)))

    assert rows["Connection Status"] == "Offline"
    assert rows["App Installation"] == "Browser"
    assert rows["Display Mode"] == "browser"
    assert rows["Updates"] == "Up to date"


@pytest.mark.asyncio
async def test_modal_appears_after_delay(coordinator: LifecycleCoordinator, platform: FakePlatform) -> None:
    gate = InstallModalGate(coordinator, delay=0.01)
    platform.offer_install()

    assert gate.visible is False
    assert gate.pending is True
    await asyncio.sleep(0.03)
    assert gate.visible is True
    gate.close()


@pytest.mark.asyncio
async def test_modal_not_now_does_not_persist(coordinator: LifecycleCoordinator, platform: FakePlatform) -> None:
    gate = InstallModalGate(coordinator, delay=0)
    platform.offer_install()
    assert gate.visible is True

    gate.not_now()

    assert gate.visible is False
    assert coordinator.snapshot.permanently_dismissed is False
    gate.close()


@pytest.mark.asyncio
async def test_modal_dismiss_is_permanent_and_enables_floating_button(
    coordinator: LifecycleCoordinator,
    platform: FakePlatform,
) -> None:
    modal = InstallModalGate(coordinator, delay=0)
    floating = FloatingInstallGate(coordinator, delay=0.01)
    platform.offer_install()
    assert modal.visible is True
    assert floating.visible is False

    modal.dismiss()

    assert coordinator.snapshot.permanently_dismissed is True
    assert modal.visible is False
    await asyncio.sleep(0.03)
    assert floating.visible is True

    floating.dismiss()
    assert floating.visible is False
    assert coordinator.snapshot.session_dismissed is True
    assert platform.session_storage.items == {"pwa-floating-dismissed": "true"}
    modal.close()
    floating.close()


@pytest.mark.asyncio
async def test_modal_install_hides_and_reports_outcome(
    coordinator: LifecycleCoordinator,
    platform: FakePlatform,
) -> None:
    gate = InstallModalGate(coordinator, delay=0)
    platform.offer_install(FakeInstallPrompt("accepted"))

    assert await gate.install() == InstallOutcome.ACCEPTED
    assert gate.visible is False
    assert gate.manual_hint is None
    gate.close()


@pytest.mark.asyncio
async def test_fallback_install_shows_manual_hint(platform: FakePlatform) -> None:
    config = LifecycleConfig(install_grace_period=0.01, modal_delay=0)
    async with LifecycleCoordinator(platform, config) as coord:
        gate = InstallModalGate(coord)
        await asyncio.sleep(0.03)
        assert coord.snapshot.install_requires_manual_steps is True
        assert gate.visible is True

        assert await gate.install() == InstallOutcome.UNAVAILABLE
        assert gate.manual_hint == BROWSER_INSTALL_HINT
        gate.close()


@pytest.mark.asyncio
async def test_modal_timer_cancelled_when_state_changes(
    coordinator: LifecycleCoordinator,
    platform: FakePlatform,
) -> None:
    gate = InstallModalGate(coordinator, delay=0.01)
    platform.offer_install()
    assert gate.pending is True

    platform.app_installed()

    assert gate.pending is False
    await asyncio.sleep(0.03)
    assert gate.visible is False
    gate.close()


@pytest.mark.asyncio
async def test_close_cancels_pending_reveal(coordinator: LifecycleCoordinator, platform: FakePlatform) -> None:
    gate = InstallModalGate(coordinator, delay=0.01)
    platform.offer_install()

    gate.close()
    await asyncio.sleep(0.03)

    assert gate.visible is False
    assert gate.pending is False


@pytest.mark.asyncio
async def test_update_banner_close_is_per_view(coordinator: LifecycleCoordinator, platform: FakePlatform) -> None:
    container = platform.service_worker
    banner = UpdateBannerGate(coordinator)
    worker = FakeWorker("installing")
    container.begin_update(worker)
    container.finish_install(worker)
    assert banner.visible is True

    banner.close_for_view()
    assert banner.visible is False

    # Next page view of the same session: the banner is back.
    next_view = UpdateBannerGate(coordinator)
    assert next_view.visible is True

    task = asyncio.create_task(next_view.apply())
    await asyncio.sleep(0)
    container.take_control(worker)
    assert await task == UpdateOutcome.APPLIED
    assert next_view.visible is False
    banner.close()
    next_view.close()


@pytest.mark.asyncio
async def test_offline_ready_toast(config: LifecycleConfig) -> None:
    platform = full_platform()
    platform.service_worker.controller = None
    async with LifecycleCoordinator(platform, config) as coord:
        await asyncio.sleep(0)
        toast = OfflineReadyToast(coord)
        worker = FakeWorker("installing")
        platform.service_worker.begin_update(worker)
        worker.set_state("installed")
        assert toast.visible is True

        toast.acknowledge()
        assert toast.visible is False
        toast.close()


@pytest.mark.asyncio
async def test_open_surfaces_closes_all(coordinator: LifecycleCoordinator, platform: FakePlatform) -> None:
    gates, close_all = open_surfaces(coordinator)
    platform.offer_install()
    assert any(gate.pending for gate in gates)

    close_all()

    assert not any(gate.pending or gate.visible for gate in gates)


@pytest.mark.asyncio
async def test_modal_stays_hidden_after_dismissal_on_earlier_visit(config: LifecycleConfig) -> None:
    platform = full_platform()
    platform.local_storage.items["pwa-install-dismissed"] = "true"
    async with LifecycleCoordinator(platform, config) as coord:
        modal = InstallModalGate(coord, delay=0)
        floating = FloatingInstallGate(coord, delay=0)
        platform.offer_install()

        assert modal.visible is False
        assert modal.pending is False
        assert floating.visible is True
        modal.close()
        floating.close()


def test_surface_gate_requires_a_visibility_rule() -> None:
    with pytest.raises(TypeError):
        _SurfaceGate(None, delay=0)  # type: ignore[abstract,arg-type]
