from __future__ import annotations

from typing import Iterator

import pytest

from simple_sane import state
from simple_sane.config import Config
from simple_sane.scanner import DeviceHandle, Sane
from simple_sane.ScannerModels import Status

from fakesane import FakeSane, make_options


@pytest.fixture(autouse=True)
def reset_state(monkeypatch, tmp_path) -> Iterator[None]:
    monkeypatch.setenv("SIMPLE_SANE_CONFIG", str(tmp_path / "missing.yml"))
    yield
    state.active = None
    state.busy_devices.clear()


@pytest.fixture
def config() -> Config:
    return Config(read_buffer_size=1024)


@pytest.fixture
def fake() -> FakeSane:
    return FakeSane(
        devices=[(b"test:0", b"Noname", b"frontend-tester", b"virtual device")],
        options=make_options(),
        reads=[(Status.GOOD, b"\x01" * 1024)] * 3 + [(Status.EOF, b"")],
    )


@pytest.fixture
def sane(fake: FakeSane, config: Config) -> Iterator[Sane]:
    with Sane.init_1_0(api=fake, config=config) as context:
        yield context


@pytest.fixture
def handle(sane: Sane) -> Iterator[DeviceHandle]:
    with sane.open(b"test:0") as device_handle:
        yield device_handle
