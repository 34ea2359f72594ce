from __future__ import annotations
import os


_TRUTHY = {"1", "true", "yes", "on"}

# Defaults
_DEFAULT_MAX_FRAMES = 10_000
# Each nested send from a primitive runs a child VM on the host stack
_DEFAULT_MAX_REENTRY = 64


def flag_from_env(var: str, default: bool = False) -> bool:
    raw = os.environ.get(var)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def int_from_env(var: str, default: int) -> int:
    raw = os.environ.get(var)
    if not raw:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def get_max_frames() -> int:
    """Upper bound on the number of live call frames (across nested sends)."""
    return int_from_env('KESTREL_MAX_FRAMES', _DEFAULT_MAX_FRAMES)


def get_max_reentry() -> int:
    """Upper bound on primitives re-entering dispatch while an outer send is still running."""
    return int_from_env('KESTREL_MAX_REENTRY', _DEFAULT_MAX_REENTRY)


def trace_enabled() -> bool:
    return flag_from_env('KESTREL_TRACE')


def disasm_enabled() -> bool:
    return flag_from_env('KESTREL_DISASM')


def cython_codec_enabled() -> bool:
    return flag_from_env('KESTREL_CY_CODEC')
