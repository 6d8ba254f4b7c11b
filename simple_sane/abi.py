import ctypes
import ctypes.util
import logging
from ctypes import POINTER, Structure, Union, c_char_p, c_int, c_ubyte, c_void_p
from typing import Protocol

SANE_Word = c_int
SANE_Int = SANE_Word
SANE_Bool = SANE_Word
SANE_Fixed = SANE_Word
SANE_Byte = c_ubyte
SANE_String_Const = c_char_p
SANE_Handle = c_void_p
SANE_Status = c_int
SANE_Value_Type = c_int
SANE_Unit = c_int
SANE_Constraint_Type = c_int
SANE_Action = c_int
SANE_Frame = c_int

SANE_FALSE = 0
SANE_TRUE = 1

SANE_FIXED_SCALE_SHIFT = 16


class SANE_Device(Structure):
    _fields_ = [
        ("name", SANE_String_Const),
        ("vendor", SANE_String_Const),
        ("model", SANE_String_Const),
        ("type", SANE_String_Const),
    ]


class SANE_Range(Structure):
    _fields_ = [
        ("min", SANE_Word),
        ("max", SANE_Word),
        ("quant", SANE_Word),
    ]


class SANE_Constraint(Union):
    _fields_ = [
        ("string_list", POINTER(SANE_String_Const)),
        ("word_list", POINTER(SANE_Word)),
        ("range", POINTER(SANE_Range)),
    ]


class SANE_Option_Descriptor(Structure):
    _fields_ = [
        ("name", SANE_String_Const),
        ("title", SANE_String_Const),
        ("desc", SANE_String_Const),
        ("type", SANE_Value_Type),
        ("unit", SANE_Unit),
        ("size", SANE_Int),
        ("cap", SANE_Int),
        ("constraint_type", SANE_Constraint_Type),
        ("constraint", SANE_Constraint),
    ]


class SANE_Parameters(Structure):
    _fields_ = [
        ("format", SANE_Frame),
        ("last_frame", SANE_Bool),
        ("bytes_per_line", SANE_Int),
        ("pixels_per_line", SANE_Int),
        ("lines", SANE_Int),
        ("depth", SANE_Int),
    ]


# name: (restype, argtypes)
PROTOTYPES = {
    "sane_init": (SANE_Status, [POINTER(SANE_Int), c_void_p]),
    "sane_exit": (None, []),
    "sane_get_devices": (SANE_Status, [POINTER(POINTER(POINTER(SANE_Device))), SANE_Bool]),
    "sane_open": (SANE_Status, [SANE_String_Const, POINTER(SANE_Handle)]),
    "sane_close": (None, [SANE_Handle]),
    "sane_get_option_descriptor": (POINTER(SANE_Option_Descriptor), [SANE_Handle, SANE_Int]),
    "sane_control_option": (SANE_Status, [SANE_Handle, SANE_Int, SANE_Action, c_void_p, POINTER(SANE_Int)]),
    "sane_get_parameters": (SANE_Status, [SANE_Handle, POINTER(SANE_Parameters)]),
    "sane_start": (SANE_Status, [SANE_Handle]),
    "sane_read": (SANE_Status, [SANE_Handle, POINTER(SANE_Byte), SANE_Int, POINTER(SANE_Int)]),
    "sane_cancel": (None, [SANE_Handle]),
    "sane_strstatus": (SANE_String_Const, [SANE_Status]),
}


class SaneApi(Protocol):
    """The subset of libsane the wrapper calls.

    A ``ctypes.CDLL`` returned by :func:`load_library` satisfies it; tests
    provide a fake with the same call signatures.
    """

    def sane_init(self, version_code, authorize) -> int:
        ...

    def sane_exit(self) -> None:
        ...

    def sane_get_devices(self, device_list, local_only: int) -> int:
        ...

    def sane_open(self, name: bytes, handle) -> int:
        ...

    def sane_close(self, handle) -> None:
        ...

    def sane_get_option_descriptor(self, handle, option: int):
        ...

    def sane_control_option(self, handle, option: int, action: int, value, info) -> int:
        ...

    def sane_get_parameters(self, handle, params) -> int:
        ...

    def sane_start(self, handle) -> int:
        ...

    def sane_read(self, handle, data, max_length: int, length) -> int:
        ...

    def sane_cancel(self, handle) -> None:
        ...

    def sane_strstatus(self, status: int) -> bytes|None:
        ...


def load_library(library: str|None = None) -> ctypes.CDLL:
    if library is None:
        library = ctypes.util.find_library("sane")
    if library is None:
        raise OSError("libsane not found, set 'library' in the config file")
    logging.debug(f"loading {library}")
    lib = ctypes.CDLL(library)
    for name, (restype, argtypes) in PROTOTYPES.items():
        function = getattr(lib, name)
        function.restype = restype
        function.argtypes = argtypes
    return lib


def version_code(major: int, minor: int, build: int) -> int:
    return (major & 0xff) << 24 | (minor & 0xff) << 16 | build & 0xffff


def version_major(code: int) -> int:
    return (code >> 24) & 0xff


def version_minor(code: int) -> int:
    return (code >> 16) & 0xff


def version_build(code: int) -> int:
    return code & 0xffff


def fix(value: float) -> int:
    return int(value * (1 << SANE_FIXED_SCALE_SHIFT))


def unfix(word: int) -> float:
    return word / (1 << SANE_FIXED_SCALE_SHIFT)
