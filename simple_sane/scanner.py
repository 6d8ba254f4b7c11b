import ctypes
import logging
from functools import wraps

from simple_sane import abi, state
from simple_sane.config import Config, load_config
from simple_sane.errors import IncompleteScanError, SaneError
from simple_sane.ScannerModels import (
    Action,
    BoolValue,
    ConstraintType,
    Device,
    DeviceOption,
    DeviceOptionValue,
    FixedValue,
    Frame,
    IntValue,
    NoConstraint,
    OptionCapability,
    OptionInfo,
    Parameters,
    RangeConstraint,
    SaneScanner,
    SaneType,
    Status,
    StringListConstraint,
    StringValue,
    Unit,
    WordListConstraint,
)


class Sane:
    """A live initialisation of libsane.

    Only one may exist per process. Leaving the ``with`` block (or calling
    :meth:`exit`) closes the handles still open and calls ``sane_exit``.
    """

    def __init__(self, api: abi.SaneApi, version_code: int, config: Config):
        self._api = api
        self.version_code = version_code
        self.config = config
        self._handles: list[DeviceHandle] = []
        self._closed = False

    @classmethod
    def init(cls, version_code: int, api: abi.SaneApi|None = None, config: Config|None = None) -> "Sane":
        if config is None:
            config = load_config()
        with state.sane_lock:
            if state.active is not None:
                raise SaneError(Status.DEVICE_BUSY, message="SANE is already initialized in this process")
            if api is None:
                api = abi.load_library(config.library)
            logging.debug("initializing sane")
            version = abi.SANE_Int(version_code)
            status = api.sane_init(ctypes.pointer(version), None)
            if status != Status.GOOD:
                raise SaneError(status, api)
            sane = cls(api, version.value, config)
            state.active = sane
        return sane

    @classmethod
    def init_1_0(cls, api: abi.SaneApi|None = None, config: Config|None = None) -> "Sane":
        return cls.init(abi.version_code(1, 0, 0), api=api, config=config)

    @property
    def version(self) -> tuple[int, int, int]:
        code = self.version_code
        return abi.version_major(code), abi.version_minor(code), abi.version_build(code)

    def __enter__(self) -> "Sane":
        return self

    def __exit__(self, *exc_info):
        self.exit()

    def exit(self):
        if self._closed:
            return
        for handle in list(self._handles):
            handle.close()
        logging.debug("disconnecting sane")
        self._api.sane_exit()
        self._closed = True
        with state.sane_lock:
            if state.active is self:
                state.active = None

    def _check_open(self):
        if self._closed:
            raise ValueError("SANE context has already exited")

    def get_devices(self, local_only: bool = True) -> list[Device]:
        self._check_open()
        device_list = ctypes.POINTER(ctypes.POINTER(abi.SANE_Device))()
        status = self._api.sane_get_devices(
            ctypes.pointer(device_list), abi.SANE_TRUE if local_only else abi.SANE_FALSE
        )
        if status != Status.GOOD:
            raise SaneError(status, self._api)

        devices = []
        idx = 0
        while device_list and device_list[idx]:
            record = device_list[idx].contents
            device = Device(
                name=record.name or b"",
                vendor=record.vendor or b"",
                model=record.model or b"",
                type=record.type or b"",
            )
            device._sane = self
            devices.append(device)
            idx += 1
        logging.debug(f"Number of devices found: {len(devices)}.")
        return devices

    def open(self, device: Device|bytes) -> "DeviceHandle":
        self._check_open()
        name = device.name if isinstance(device, Device) else device
        with state.sane_lock:
            if name in state.busy_devices:
                raise SaneError(Status.DEVICE_BUSY, message=f"{name!r} is already open")
            handle = abi.SANE_Handle()
            status = self._api.sane_open(name, ctypes.pointer(handle))
            if status != Status.GOOD:
                raise SaneError(status, self._api)
            state.busy_devices.add(name)
        logging.debug(f"opened {name!r}")
        device_handle = DeviceHandle(self, name, handle)
        self._handles.append(device_handle)
        return device_handle

    def _release(self, device_handle: "DeviceHandle"):
        if device_handle in self._handles:
            self._handles.remove(device_handle)
        with state.sane_lock:
            state.busy_devices.discard(device_handle.name)


class DeviceHandle:
    """An open device and its scan session state.

    ``scanning`` is True between a successful :meth:`start_scan` and the
    end of stream reported by :meth:`read`.
    """

    def __init__(self, sane: Sane, name: bytes, handle: abi.SANE_Handle):
        self._sane = sane
        self._api = sane._api
        self.name = name
        self._handle = handle
        self.scanning = False

    def __enter__(self) -> "DeviceHandle":
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def closed(self) -> bool:
        return self._handle is None

    def close(self):
        if self._handle is None:
            return
        if self.scanning:
            self._api.sane_cancel(self._handle)
            self.scanning = False
        logging.debug(f"closing {self.name!r}")
        self._api.sane_close(self._handle)
        self._handle = None
        self._sane._release(self)

    def _check_open(self):
        if self._handle is None:
            raise ValueError(f"device handle {self.name!r} is closed")

    def _control_option(self, option_idx: int, action: Action, value, info=None):
        status = self._api.sane_control_option(self._handle, option_idx, action, value, info)
        if status != Status.GOOD:
            raise SaneError(status, self._api)

    def get_options(self) -> list[DeviceOption]:
        self._check_open()
        option_count = abi.SANE_Int(0)
        self._control_option(0, Action.GET_VALUE, ctypes.cast(ctypes.pointer(option_count), ctypes.c_void_p))
        logging.debug(f"Number of available options: {option_count.value}.")

        options = []
        for option_idx in range(1, option_count.value):
            descriptor = self._api.sane_get_option_descriptor(self._handle, option_idx)
            if not descriptor:
                raise SaneError(Status.INVAL, self._api)
            options.append(_decode_descriptor(option_idx, descriptor.contents))
        return options

    def option(self, name: bytes) -> DeviceOption:
        for opt in self.get_options():
            if opt.name == name:
                return opt
        raise KeyError(name)

    def get_option(self, opt: DeviceOption) -> DeviceOptionValue:
        self._check_open()
        if opt.type in (SaneType.BUTTON, SaneType.GROUP):
            raise TypeError(f"{opt.type.name} option {opt.name!r} doesn't represent a value")

        value = ctypes.create_string_buffer(opt.size)
        self._control_option(opt.option_idx, Action.GET_VALUE, ctypes.cast(value, ctypes.c_void_p))

        if opt.type == SaneType.BOOL:
            return BoolValue(value=abi.SANE_Word.from_buffer(value).value != abi.SANE_FALSE)
        if opt.type == SaneType.INT:
            return IntValue(value=abi.SANE_Word.from_buffer(value).value)
        if opt.type == SaneType.FIXED:
            return FixedValue(value=abi.SANE_Word.from_buffer(value).value)
        return StringValue(value=value.value)

    def set_option(self, opt: DeviceOption, value: DeviceOptionValue) -> OptionInfo:
        self._check_open()
        if value.type != opt.type:
            raise TypeError(f"{value.type.name} value doesn't match {opt.type.name} option {opt.name!r}")

        if opt.type == SaneType.GROUP:
            raise TypeError("Group option doesn't have a settable value.")
        elif opt.type == SaneType.BUTTON:
            value_ptr = None
        elif opt.type == SaneType.STRING:
            buffer = ctypes.create_string_buffer(value.value, max(opt.size, len(value.value) + 1))
            value_ptr = ctypes.cast(buffer, ctypes.c_void_p)
        else:
            word = abi.SANE_Word(int(value.value))
            value_ptr = ctypes.cast(ctypes.pointer(word), ctypes.c_void_p)

        info = abi.SANE_Int(0)
        self._control_option(opt.option_idx, Action.SET_VALUE, value_ptr, ctypes.pointer(info))
        return OptionInfo(info.value)

    def set_option_auto(self, opt: DeviceOption) -> OptionInfo:
        self._check_open()
        if not opt.cap & OptionCapability.AUTOMATIC:
            raise TypeError(f"option {opt.name!r} can't be set automatically")
        info = abi.SANE_Int(0)
        self._control_option(opt.option_idx, Action.SET_AUTO, None, ctypes.pointer(info))
        return OptionInfo(info.value)

    def get_parameters(self) -> Parameters:
        self._check_open()
        params = abi.SANE_Parameters()
        status = self._api.sane_get_parameters(self._handle, ctypes.pointer(params))
        if status != Status.GOOD:
            raise SaneError(status, self._api)
        return Parameters(
            format=Frame(params.format),
            last_frame=params.last_frame != abi.SANE_FALSE,
            bytes_per_line=params.bytes_per_line,
            pixels_per_line=params.pixels_per_line,
            lines=params.lines,
            depth=params.depth,
        )

    def start_scan(self) -> Parameters:
        self._check_open()
        status = self._api.sane_start(self._handle)
        if status != Status.GOOD:
            raise SaneError(status, self._api)
        parameters = self.get_parameters()
        logging.debug(f"scan started on {self.name!r}: {parameters}")
        self.scanning = True
        return parameters

    def read(self, buf: bytearray) -> int|None:
        """Read the next chunk of image data into ``buf``.

        Returns the number of bytes written (possibly 0), or None once the
        frame is complete or no scan is running.
        """
        if not self.scanning:
            return None
        self._check_open()
        length = abi.SANE_Int(0)
        data = (abi.SANE_Byte * len(buf)).from_buffer(buf)
        try:
            status = self._api.sane_read(self._handle, data, len(buf), ctypes.pointer(length))
        finally:
            del data

        if status == Status.GOOD:
            return length.value
        if status == Status.EOF:
            if length.value > 0:
                return length.value
            logging.debug(f"end of frame on {self.name!r}")
            self.scanning = False
            self._api.sane_cancel(self._handle)
            return None
        raise SaneError(status, self._api)

    def read_to_bytes(self) -> bytes:
        parameters = self.get_parameters()
        logging.debug(f"expecting {parameters.expected_size} bytes")

        image = bytearray()
        buf = bytearray(self._sane.config.read_buffer_size)
        while True:
            try:
                written = self.read(buf)
            except SaneError as err:
                raise IncompleteScanError(err.status, self._api, data=bytes(image)) from err
            if written is None:
                break
            image += memoryview(buf)[:written]
        return bytes(image)


def _decode_descriptor(option_idx: int, descriptor: abi.SANE_Option_Descriptor) -> DeviceOption:
    return DeviceOption(
        option_idx=option_idx,
        name=descriptor.name,
        title=descriptor.title,
        desc=descriptor.desc,
        type=SaneType(descriptor.type),
        unit=Unit(descriptor.unit),
        size=descriptor.size,
        cap=OptionCapability(descriptor.cap),
        constraint=_decode_constraint(descriptor),
    )


def _decode_constraint(descriptor: abi.SANE_Option_Descriptor):
    constraint_type = ConstraintType(descriptor.constraint_type)
    if constraint_type == ConstraintType.RANGE:
        value_range = descriptor.constraint.range.contents
        return RangeConstraint(min=value_range.min, max=value_range.max, quant=value_range.quant)
    if constraint_type == ConstraintType.WORD_LIST:
        word_list = descriptor.constraint.word_list
        # first word is the list length
        return WordListConstraint(words=tuple(word_list[1:word_list[0] + 1]))
    if constraint_type == ConstraintType.STRING_LIST:
        string_list = descriptor.constraint.string_list
        strings = []
        while string_list[len(strings)] is not None:
            strings.append(string_list[len(strings)])
        return StringListConstraint(strings=tuple(strings))
    return NoConstraint()


def using_sane(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        with Sane.init_1_0() as sane:
            return f(sane, *args, **kwargs)

    return wrapper


def list_scanners(sane: Sane) -> dict[bytes, SaneScanner]:
    devices = {}
    for device in sane.get_devices():
        try:
            with device.open() as scanner:
                options = scanner.get_options()
        except Exception as e:
            logging.error(f"{device.name!r}: {e}")
            continue
        devices[device.name] = SaneScanner(device=device, options=options)
    return devices
