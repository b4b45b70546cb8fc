"""Keyboard input injection.

Keys are sent as hardware scan codes so that games reading DirectInput see
them. ``SendInputInjector`` is the Windows implementation; anything with
``key_down``/``key_up`` methods can stand in for it.
"""

from __future__ import annotations

import ctypes
import sys
from typing import Protocol

INPUT_KEYBOARD = 1
KEYEVENTF_KEYUP = 0x0002
KEYEVENTF_SCANCODE = 0x0008


class KeyInjector(Protocol):
    def key_down(self, scan_code: int) -> None: ...

    def key_up(self, scan_code: int) -> None: ...


class KeyMapper(Protocol):
    def scan_code(self, key: str) -> int: ...


# Scan code set 1, US layout.
SCAN_CODES: dict[str, int] = {
    "ESC": 0x01,
    "1": 0x02, "2": 0x03, "3": 0x04, "4": 0x05, "5": 0x06,
    "6": 0x07, "7": 0x08, "8": 0x09, "9": 0x0A, "0": 0x0B,
    "-": 0x0C, "=": 0x0D,
    "BKSP": 0x0E,
    "TAB": 0x0F,
    "Q": 0x10, "W": 0x11, "E": 0x12, "R": 0x13, "T": 0x14,
    "Y": 0x15, "U": 0x16, "I": 0x17, "O": 0x18, "P": 0x19,
    "[": 0x1A, "]": 0x1B,
    "ENTER": 0x1C,
    "LCTRL": 0x1D,
    "A": 0x1E, "S": 0x1F, "D": 0x20, "F": 0x21, "G": 0x22,
    "H": 0x23, "J": 0x24, "K": 0x25, "L": 0x26,
    ";": 0x27, "'": 0x28, "`": 0x29,
    "LSHIFT": 0x2A,
    "\\": 0x2B,
    "Z": 0x2C, "X": 0x2D, "C": 0x2E, "V": 0x2F, "B": 0x30,
    "N": 0x31, "M": 0x32,
    ",": 0x33, ".": 0x34, "/": 0x35,
    "RSHIFT": 0x36,
    "LALT": 0x38,
    " ": 0x39, "SPACE": 0x39,
    "CAPS": 0x3A,
    "F1": 0x3B, "F2": 0x3C, "F3": 0x3D, "F4": 0x3E, "F5": 0x3F,
    "F6": 0x40, "F7": 0x41, "F8": 0x42, "F9": 0x43, "F10": 0x44,
    "F11": 0x57, "F12": 0x58,
    "UP": 0xC8, "LEFT": 0xCB, "RIGHT": 0xCD, "DOWN": 0xD0,
}


class StaticKeyMapper:
    """Resolves key names and characters from the built-in scan code table."""

    def __init__(self, table: dict[str, int] | None = None):
        self.table = table or SCAN_CODES

    def scan_code(self, key: str) -> int:
        code = self.table.get(key) if key == " " else self.table.get(key.upper())
        if code is None:
            raise KeyError(f"No scan code for key {key!r}")
        return code


class KEYBDINPUT(ctypes.Structure):
    _fields_ = [
        ("wVk", ctypes.c_ushort),
        ("wScan", ctypes.c_ushort),
        ("dwFlags", ctypes.c_ulong),
        ("time", ctypes.c_ulong),
        ("dwExtraInfo", ctypes.POINTER(ctypes.c_ulong)),
    ]


class MOUSEINPUT(ctypes.Structure):
    _fields_ = [
        ("dx", ctypes.c_long),
        ("dy", ctypes.c_long),
        ("mouseData", ctypes.c_ulong),
        ("dwFlags", ctypes.c_ulong),
        ("time", ctypes.c_ulong),
        ("dwExtraInfo", ctypes.POINTER(ctypes.c_ulong)),
    ]


class HARDWAREINPUT(ctypes.Structure):
    _fields_ = [
        ("uMsg", ctypes.c_ulong),
        ("wParamL", ctypes.c_short),
        ("wParamH", ctypes.c_ushort),
    ]


class _InputUnion(ctypes.Union):
    _fields_ = [("ki", KEYBDINPUT), ("mi", MOUSEINPUT), ("hi", HARDWAREINPUT)]


class INPUT(ctypes.Structure):
    _fields_ = [("type", ctypes.c_ulong), ("ii", _InputUnion)]


def keyboard_input(scan_code: int, key_up: bool = False) -> INPUT:
    """Build a fresh scan-code INPUT. Key-up events get their own descriptor."""
    flags = KEYEVENTF_SCANCODE | (KEYEVENTF_KEYUP if key_up else 0)
    event = INPUT(type=INPUT_KEYBOARD)
    event.ii.ki = KEYBDINPUT(0, scan_code, flags, 0, None)
    return event


class SendInputInjector:
    """Injects key events with user32.SendInput (Windows only)."""

    def __init__(self):
        if sys.platform != "win32":
            raise OSError("SendInput key injection is only available on Windows")
        self._send_input = ctypes.windll.user32.SendInput  # type: ignore[attr-defined]

    def _send(self, event: INPUT) -> None:
        self._send_input(1, ctypes.pointer(event), ctypes.sizeof(event))

    def key_down(self, scan_code: int) -> None:
        self._send(keyboard_input(scan_code))

    def key_up(self, scan_code: int) -> None:
        self._send(keyboard_input(scan_code, key_up=True))


class WindowsKeyMapper:
    """Asks Windows for the scan code of a character on the active layout.

    Named keys (``"ENTER"``, ``"F1"`` ...) fall back to the static table.
    """

    def __init__(self):
        if sys.platform != "win32":
            raise OSError("Keyboard layout lookup is only available on Windows")
        user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._vk_key_scan = user32.VkKeyScanA
        self._map_virtual_key = user32.MapVirtualKeyA
        self._fallback = StaticKeyMapper()

    def scan_code(self, key: str) -> int:
        if len(key) != 1:
            return self._fallback.scan_code(key)
        vk = self._vk_key_scan(ctypes.c_char(key.encode("ascii"))) & 0xFF
        if vk == 0xFF:
            raise KeyError(f"No virtual key for {key!r} on this layout")
        return self._map_virtual_key(vk, 0)


def default_key_mapper() -> KeyMapper:
    if sys.platform == "win32":
        return WindowsKeyMapper()
    return StaticKeyMapper()
