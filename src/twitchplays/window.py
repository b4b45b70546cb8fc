"""Bring the target game's window to the foreground (Windows, best effort)."""

from __future__ import annotations

import ctypes
import logging
import sys

import psutil


def find_process_ids(name: str) -> list[int]:
    """PIDs whose executable name matches ``name`` (case-insensitive, .exe optional)."""
    wanted = name.lower().removesuffix(".exe")
    pids = []
    for proc in psutil.process_iter(["pid", "name"]):
        proc_name = (proc.info.get("name") or "").lower().removesuffix(".exe")
        if proc_name == wanted:
            pids.append(proc.info["pid"])
    return pids


def _main_window(pid: int) -> int | None:
    user32 = ctypes.windll.user32  # type: ignore[attr-defined]
    found: list[int] = []

    @ctypes.WINFUNCTYPE(ctypes.c_bool, ctypes.c_void_p, ctypes.c_void_p)  # type: ignore[attr-defined]
    def callback(hwnd, _lparam):
        owner = ctypes.c_ulong()
        user32.GetWindowThreadProcessId(hwnd, ctypes.byref(owner))
        if owner.value == pid and user32.IsWindowVisible(hwnd):
            found.append(hwnd)
            return False
        return True

    user32.EnumWindows(callback, 0)
    return found[0] if found else None


def focus_process_window(name: str, logger: logging.Logger | None = None) -> bool:
    """Try to focus a window owned by process ``name``. Never raises."""
    log = logger or logging.getLogger(__name__)
    try:
        pids = find_process_ids(name)
        if not pids:
            log.warning("Process %s not found; send focus to the game manually", name)
            return False
        if sys.platform != "win32":
            log.debug("Window focusing is only supported on Windows")
            return False
        hwnd = _main_window(pids[0])
        if hwnd is None:
            log.warning("Process %s has no visible window", name)
            return False
        ctypes.windll.user32.SetForegroundWindow(hwnd)  # type: ignore[attr-defined]
        log.info("Focused %s", name)
        return True
    except (psutil.Error, OSError) as e:
        log.warning("Could not focus %s: %s", name, e)
        return False
