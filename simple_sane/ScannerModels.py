from enum import IntEnum, IntFlag
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, PrivateAttr

from simple_sane import abi


class Status(IntEnum):
    GOOD = 0
    UNSUPPORTED = 1
    CANCELLED = 2
    DEVICE_BUSY = 3
    INVAL = 4
    EOF = 5
    JAMMED = 6
    NO_DOCS = 7
    COVER_OPEN = 8
    IO_ERROR = 9
    NO_MEM = 10
    ACCESS_DENIED = 11


class SaneType(IntEnum):
    BOOL = 0
    INT = 1
    FIXED = 2
    STRING = 3
    BUTTON = 4
    GROUP = 5


class Unit(IntEnum):
    NONE = 0
    PIXEL = 1
    BIT = 2
    MM = 3
    DPI = 4
    PERCENT = 5
    MICROSECOND = 6


class ConstraintType(IntEnum):
    NONE = 0
    RANGE = 1
    WORD_LIST = 2
    STRING_LIST = 3


class Action(IntEnum):
    GET_VALUE = 0
    SET_VALUE = 1
    SET_AUTO = 2


class Frame(IntEnum):
    GRAY = 0
    RGB = 1
    RED = 2
    GREEN = 3
    BLUE = 4


class OptionCapability(IntFlag):
    SOFT_SELECT = 1 << 0
    HARD_SELECT = 1 << 1
    SOFT_DETECT = 1 << 2
    EMULATED = 1 << 3
    AUTOMATIC = 1 << 4
    INACTIVE = 1 << 5
    ADVANCED = 1 << 6


class OptionInfo(IntFlag):
    INEXACT = 1 << 0
    RELOAD_OPTIONS = 1 << 1
    RELOAD_PARAMS = 1 << 2


class SaneModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class NoConstraint(SaneModel):
    type: Literal[ConstraintType.NONE] = ConstraintType.NONE


class RangeConstraint(SaneModel):
    type: Literal[ConstraintType.RANGE] = ConstraintType.RANGE
    min: int
    max: int
    quant: int = 0


class WordListConstraint(SaneModel):
    type: Literal[ConstraintType.WORD_LIST] = ConstraintType.WORD_LIST
    words: tuple[int, ...]


class StringListConstraint(SaneModel):
    type: Literal[ConstraintType.STRING_LIST] = ConstraintType.STRING_LIST
    strings: tuple[bytes, ...]


SaneWord = Annotated[int, Field(ge=-2**31, le=2**31 - 1)]


OptionConstraint = Annotated[
    Union[NoConstraint, RangeConstraint, WordListConstraint, StringListConstraint],
    Field(discriminator="type"),
]


class BoolValue(SaneModel):
    type: Literal[SaneType.BOOL] = SaneType.BOOL
    value: bool


class IntValue(SaneModel):
    type: Literal[SaneType.INT] = SaneType.INT
    value: SaneWord


class FixedValue(SaneModel):
    """A SANE_Fixed word; the low 16 bits hold the fraction."""

    type: Literal[SaneType.FIXED] = SaneType.FIXED
    value: SaneWord

    @classmethod
    def from_float(cls, value: float) -> "FixedValue":
        return cls(value=abi.fix(value))

    def to_float(self) -> float:
        return abi.unfix(self.value)


class StringValue(SaneModel):
    type: Literal[SaneType.STRING] = SaneType.STRING
    value: bytes


class ButtonValue(SaneModel):
    type: Literal[SaneType.BUTTON] = SaneType.BUTTON


class GroupValue(SaneModel):
    type: Literal[SaneType.GROUP] = SaneType.GROUP


DeviceOptionValue = Annotated[
    Union[BoolValue, IntValue, FixedValue, StringValue, ButtonValue, GroupValue],
    Field(discriminator="type"),
]


class Device(SaneModel):
    name: bytes
    vendor: bytes
    model: bytes
    type: bytes
    _sane = PrivateAttr(default=None)

    def open(self):
        if self._sane is None:
            raise ValueError(f"{self.name!r} was not enumerated by a SANE context")
        return self._sane.open(self)


class DeviceOption(SaneModel):
    option_idx: PositiveInt
    name: bytes|None
    title: bytes|None
    desc: bytes|None
    type: SaneType
    unit: Unit
    size: NonNegativeInt
    cap: OptionCapability
    constraint: OptionConstraint = NoConstraint()

    def is_active(self) -> bool:
        return not self.cap & OptionCapability.INACTIVE

    def is_settable(self) -> bool:
        return bool(self.cap & OptionCapability.SOFT_SELECT)


class Parameters(SaneModel):
    format: Frame
    last_frame: bool
    bytes_per_line: int
    pixels_per_line: int
    lines: int
    depth: int

    @property
    def expected_size(self) -> int|None:
        # lines is -1 for hand-held scanners
        if self.lines < 0:
            return None
        return self.bytes_per_line * self.lines


class SaneScanner(SaneModel):
    device: Device
    options: list[DeviceOption]
