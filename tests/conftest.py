from __future__ import annotations

import pytest

from kuber.speech.base import CaptureDevice


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeDevice(CaptureDevice):
    """Capture device driven by the test instead of a microphone."""

    def __init__(self, fail_on_start: int | None = None) -> None:
        super().__init__()
        self.starts = 0
        self.stops = 0
        self.aborts = 0
        self.capturing = False
        self._fail_on_start = fail_on_start

    def start(self) -> None:
        self.starts += 1
        if self._fail_on_start is not None and self.starts >= self._fail_on_start:
            raise RuntimeError("microphone busy")
        self.capturing = True

    def stop(self) -> None:
        self.stops += 1
        self.end()

    def abort(self) -> None:
        self.aborts += 1
        self.end()

    def hear(self, *segments: str) -> None:
        self.emit_result(list(segments))

    def end(self) -> None:
        self.capturing = False
        self.emit_end()

    def fail(self, exc: BaseException) -> None:
        self.capturing = False
        self.emit_error(exc)


class DeviceFactory:
    def __init__(self, device: FakeDevice | None = None) -> None:
        self.device = device or FakeDevice()
        self.calls = 0

    def __call__(self) -> FakeDevice:
        self.calls += 1
        return self.device


@pytest.fixture
def device_factory() -> DeviceFactory:
    return DeviceFactory()


@pytest.fixture
def make_device_factory():
    def build(fail_on_start: int | None = None) -> DeviceFactory:
        return DeviceFactory(FakeDevice(fail_on_start=fail_on_start))

    return build
