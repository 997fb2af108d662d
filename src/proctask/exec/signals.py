from __future__ import annotations

import signal

DEFAULT_TERM_SIGNAL = signal.SIGTERM

SignalLike = signal.Signals | int | str


def resolve_signal(value: SignalLike) -> signal.Signals:
    """
    Normalize a signal given as enum, number or name.

    Names are case-insensitive and the ``SIG`` prefix is optional, so
    ``"abrt"``, ``"ABRT"`` and ``"SIGABRT"`` all resolve to ``SIGABRT``.
    """
    if isinstance(value, signal.Signals):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid signal: {value!r}")
    if isinstance(value, int):
        try:
            return signal.Signals(value)
        except ValueError as exc:
            raise ValueError(f"unknown signal number: {value}") from exc
    if isinstance(value, str):
        name = value.strip().upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        try:
            return signal.Signals[name]
        except KeyError as exc:
            raise ValueError(f"unknown signal name: {value}") from exc
    raise ValueError(f"invalid signal: {value!r}")


def signal_name(value: int | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, signal.Signals):
        return value.name
    try:
        return signal.Signals(value).name
    except ValueError:
        return f"SIG{value}"
