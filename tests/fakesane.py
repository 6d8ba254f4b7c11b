from __future__ import annotations

import ctypes
from dataclasses import dataclass, field

from simple_sane import abi
from simple_sane.ScannerModels import Action, ConstraintType, OptionCapability, OptionInfo, SaneType, Status, Unit


def word(value: int) -> bytes:
    return bytes(abi.SANE_Word(value))


@dataclass
class FakeOption:
    name: bytes | None
    type: SaneType
    size: int = 4
    value: bytes = b""
    title: bytes | None = b""
    desc: bytes | None = b""
    unit: Unit = Unit.NONE
    cap: int = 1
    constraint_type: ConstraintType = ConstraintType.NONE
    range: tuple[int, int, int] | None = None
    words: list[int] = field(default_factory=list)
    strings: list[bytes] = field(default_factory=list)
    set_info: OptionInfo = OptionInfo(0)
    set_status: Status = Status.GOOD
    pressed: int = 0

    def __post_init__(self) -> None:
        self.value = self.value.ljust(self.size, b"\0")


def make_options() -> list[FakeOption]:
    return [
        FakeOption(
            name=b"resolution",
            type=SaneType.INT,
            value=word(50),
            title=b"Scan resolution",
            unit=Unit.DPI,
            cap=int(OptionCapability.SOFT_SELECT | OptionCapability.SOFT_DETECT),
            constraint_type=ConstraintType.RANGE,
            range=(0, 100, 10),
        ),
        FakeOption(
            name=b"mode",
            type=SaneType.STRING,
            size=32,
            value=b"Gray",
            constraint_type=ConstraintType.STRING_LIST,
            strings=[b"Lineart", b"Gray", b"Color"],
        ),
        FakeOption(
            name=b"depth",
            type=SaneType.INT,
            value=word(8),
            constraint_type=ConstraintType.WORD_LIST,
            words=[1, 8, 16],
        ),
        FakeOption(
            name=b"preview",
            type=SaneType.BOOL,
            value=word(0),
            cap=int(OptionCapability.SOFT_SELECT | OptionCapability.AUTOMATIC),
        ),
        FakeOption(name=b"br-x", type=SaneType.FIXED, value=word(215 << 16), unit=Unit.MM),
        FakeOption(name=b"calibrate", type=SaneType.BUTTON, size=0, set_info=OptionInfo.RELOAD_OPTIONS),
        FakeOption(name=None, type=SaneType.GROUP, size=0, title=b"Geometry", desc=None, cap=0),
    ]


class FakeSane:
    """In-process stand-in for libsane that lays out real C structures."""

    STATUS_TEXT = {
        Status.GOOD: b"Success",
        Status.INVAL: b"Invalid argument",
        Status.DEVICE_BUSY: b"Device busy",
        Status.IO_ERROR: b"Error during device I/O",
        Status.NO_DOCS: b"Document feeder out of documents",
    }

    def __init__(
        self,
        devices: list[tuple[bytes, bytes, bytes, bytes]] | None = None,
        options: list[FakeOption] | None = None,
        reads: list[tuple[Status, bytes]] | None = None,
        parameters: abi.SANE_Parameters | None = None,
    ) -> None:
        self.devices = devices or []
        self.options = options or []
        self.reads = list(reads or [])
        self.parameters = parameters or abi.SANE_Parameters(0, 1, 1024, 1024, 3, 8)
        self.calls: list[tuple] = []
        self.init_status = Status.GOOD
        self.open_status = Status.GOOD
        self.start_status = Status.GOOD
        self.reported_version = abi.version_code(1, 0, 3)
        self.device_records: list[abi.SANE_Device] = []
        self._keepalive: list[object] = []
        self._descriptors = [self._count_descriptor()] + [self._descriptor(o) for o in self.options]

    def _count_descriptor(self) -> abi.SANE_Option_Descriptor:
        return abi.SANE_Option_Descriptor(
            name=b"",
            title=b"Number of options",
            desc=b"Read-only option that specifies how many options a specific device supports.",
            type=SaneType.INT,
            unit=Unit.NONE,
            size=4,
            cap=4,
            constraint_type=ConstraintType.NONE,
        )

    def _descriptor(self, option: FakeOption) -> abi.SANE_Option_Descriptor:
        constraint = abi.SANE_Constraint()
        if option.constraint_type == ConstraintType.RANGE:
            value_range = abi.SANE_Range(*option.range)
            self._keepalive.append(value_range)
            constraint.range = ctypes.pointer(value_range)
        elif option.constraint_type == ConstraintType.WORD_LIST:
            words = (abi.SANE_Word * (len(option.words) + 1))(len(option.words), *option.words)
            self._keepalive.append(words)
            constraint.word_list = ctypes.cast(words, ctypes.POINTER(abi.SANE_Word))
        elif option.constraint_type == ConstraintType.STRING_LIST:
            strings = (ctypes.c_char_p * (len(option.strings) + 1))(*option.strings)
            self._keepalive.append(strings)
            constraint.string_list = ctypes.cast(strings, ctypes.POINTER(ctypes.c_char_p))
        return abi.SANE_Option_Descriptor(
            name=option.name,
            title=option.title,
            desc=option.desc,
            type=option.type,
            unit=option.unit,
            size=option.size,
            cap=option.cap,
            constraint_type=option.constraint_type,
            constraint=constraint,
        )

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def sane_init(self, version_code, authorize) -> int:
        self.calls.append(("init", version_code[0], authorize))
        version_code[0] = self.reported_version
        return self.init_status

    def sane_exit(self) -> None:
        self.calls.append(("exit",))

    def sane_get_devices(self, device_list, local_only) -> int:
        self.calls.append(("get_devices", local_only))
        self.device_records = [abi.SANE_Device(*device) for device in self.devices]
        array = (ctypes.POINTER(abi.SANE_Device) * (len(self.device_records) + 1))(
            *[ctypes.pointer(record) for record in self.device_records]
        )
        self._keepalive.append(array)
        device_list[0] = ctypes.cast(array, ctypes.POINTER(ctypes.POINTER(abi.SANE_Device)))
        return Status.GOOD

    def sane_open(self, name, handle) -> int:
        self.calls.append(("open", name))
        if self.open_status != Status.GOOD:
            return self.open_status
        handle[0] = 0x5A4E
        return Status.GOOD

    def sane_close(self, handle) -> None:
        self.calls.append(("close",))

    def sane_get_option_descriptor(self, handle, option):
        if not 0 <= option < len(self._descriptors):
            return ctypes.POINTER(abi.SANE_Option_Descriptor)()
        return ctypes.pointer(self._descriptors[option])

    def sane_control_option(self, handle, option, action, value, info) -> int:
        self.calls.append(("control_option", option, Action(action)))
        if option == 0:
            ctypes.memmove(value, word(len(self._descriptors)), 4)
            return Status.GOOD
        fake = self.options[option - 1]
        if action == Action.GET_VALUE:
            ctypes.memmove(value, fake.value, fake.size)
            return Status.GOOD
        if fake.set_status != Status.GOOD:
            return fake.set_status
        if action == Action.SET_VALUE:
            if fake.type == SaneType.BUTTON:
                assert value is None
                fake.pressed += 1
            elif fake.type == SaneType.STRING:
                fake.value = ctypes.string_at(value).ljust(fake.size, b"\0")
            else:
                fake.value = self._snap(fake, abi.SANE_Word.from_buffer_copy(ctypes.string_at(value, 4)).value)
        if info:
            info[0] = fake.set_info
        return Status.GOOD

    @staticmethod
    def _snap(fake: FakeOption, number: int) -> bytes:
        if fake.range and fake.range[2]:
            low, high, quant = fake.range
            number = min(high, max(low, low + round((number - low) / quant) * quant))
        return word(number)

    def sane_get_parameters(self, handle, params) -> int:
        self.calls.append(("get_parameters",))
        params[0] = self.parameters
        return Status.GOOD

    def sane_start(self, handle) -> int:
        self.calls.append(("start",))
        return self.start_status

    def sane_read(self, handle, data, max_length, length) -> int:
        self.calls.append(("read", max_length))
        status, chunk = self.reads.pop(0)
        chunk = chunk[:max_length]
        ctypes.memmove(data, chunk, len(chunk))
        length[0] = len(chunk)
        return status

    def sane_cancel(self, handle) -> None:
        self.calls.append(("cancel",))

    def sane_strstatus(self, status) -> bytes:
        return self.STATUS_TEXT.get(Status(status), b"Unknown SANE status code")
