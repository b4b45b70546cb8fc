# Command table: chat tokens and the key presses they trigger.
#
# The table is plain data; key names are turned into scan codes once, when
# the table is built, and the codes are stored on each CommandAction.

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from twitchplays.input import KeyMapper

DEFAULT_HOLD_MS = 100

Key = str | int


@dataclass(frozen=True)
class CommandSpec:
    """Unresolved table entry: key names or raw scan codes."""

    keys: tuple[Key, ...]
    hold_ms: int = DEFAULT_HOLD_MS
    is_combo: bool = False


@dataclass(frozen=True)
class CommandAction:
    """Resolved key presses for one chat command."""

    scan_codes: tuple[int, ...]
    hold_ms: int = DEFAULT_HOLD_MS
    is_combo: bool = False


# Dark Souls (PTDE) bindings. Integers are raw scan codes for keys that have
# no printable character.
DARK_SOULS_COMMANDS: Mapping[str, CommandSpec] = {
    # m = move: forward, back, left, right
    "mf": CommandSpec(("W",), hold_ms=1000),
    "mb": CommandSpec(("S",), hold_ms=1000),
    "ml": CommandSpec(("A",), hold_ms=1000),
    "mr": CommandSpec(("D",), hold_ms=1000),
    # c = camera
    "cu": CommandSpec(("I",)),
    "cd": CommandSpec(("K",)),
    "cl": CommandSpec(("J",)),
    "cr": CommandSpec(("L",)),
    # lock on/off
    "l": CommandSpec(("O",)),
    # use item
    "u": CommandSpec(("E",)),
    # two-hand toggle (left alt)
    "y": CommandSpec((56,)),
    # attacks; l1 = left shift, l2 = tab
    "r1": CommandSpec(("H",)),
    "r2": CommandSpec(("U",)),
    "l1": CommandSpec((42,)),
    "l2": CommandSpec((15,)),
    # rolls: direction, then space
    "rl": CommandSpec(("A", " ")),
    "rr": CommandSpec(("D", " ")),
    "rf": CommandSpec(("W", " ")),
    "rb": CommandSpec(("S", " ")),
    # interact, then confirm with enter
    "x": CommandSpec(("Q", 28)),
    # d-pad: switch items and weapons
    "dl": CommandSpec(("C",)),
    "dr": CommandSpec(("V",)),
    "du": CommandSpec(("R",)),
    "dd": CommandSpec(("F",)),
}


def resolve(spec: CommandSpec, mapper: KeyMapper) -> CommandAction:
    codes = tuple(k if isinstance(k, int) else mapper.scan_code(k) for k in spec.keys)
    return CommandAction(scan_codes=codes, hold_ms=spec.hold_ms, is_combo=spec.is_combo)


def build_command_table(
    mapper: KeyMapper,
    specs: Mapping[str, CommandSpec] = DARK_SOULS_COMMANDS,
) -> Mapping[str, CommandAction]:
    """Resolve every entry once. Tokens are stored lowercase."""
    return MappingProxyType({token.lower(): resolve(spec, mapper) for token, spec in specs.items()})
