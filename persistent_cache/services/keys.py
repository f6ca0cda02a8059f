"""Argument key derivation.

Keys are persisted, so they must come out the same in every process. Each
argument is written as ``slot:type:length:rendering``; the length prefix keeps
a ``|`` or ``:`` inside a rendering from running into the next argument, and
the leading argument count separates ``f()`` from ``f(())``.

Values that render the same are the same key. Two distinct instances with
equal fields share cached results.
"""

from typing import Any, Mapping, Optional, Sequence

SEPARATOR = "|"


def _type_tag(value: Any) -> str:
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _render(value: Any) -> str:
    """Canonical text for a value, independent of hash seed and memory layout."""
    if isinstance(value, dict):
        items = sorted((_render(k), _render(v)) for k, v in value.items())
        return "{" + ", ".join(f"{k}: {v}" for k, v in items) + "}"
    if isinstance(value, (set, frozenset)):
        return "{" + ", ".join(sorted(_render(v) for v in value)) + "}"
    if isinstance(value, list):
        return "[" + ", ".join(_render(v) for v in value) + "]"
    if isinstance(value, tuple) and type(value) is tuple:
        return "(" + ", ".join(_render(v) for v in value) + ",)"
    if type(value).__repr__ is object.__repr__ and _has_fields(value):
        # Default repr embeds id(); use the fields instead
        return f"{type(value).__qualname__}({_render(_fields(value))})"
    return repr(value)


def _has_fields(value: Any) -> bool:
    return hasattr(value, "__dict__") or any("__slots__" in cls.__dict__ for cls in type(value).__mro__)


def _fields(value: Any) -> dict:
    """Instance attributes from __dict__ and from __slots__ along the MRO."""
    fields = dict(getattr(value, "__dict__", {}))
    for cls in type(value).__mro__:
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in ("__dict__", "__weakref__") or slot in fields:
                continue
            name = slot
            if slot.startswith("__") and not slot.endswith("__"):
                name = f"_{cls.__name__.lstrip('_')}{slot}"
            try:
                fields[slot] = getattr(value, name)
            except AttributeError:
                # Unset slot
                continue
    return fields


def _entry(slot: str, value: Any) -> str:
    text = _render(value)
    return f"{slot}:{_type_tag(value)}:{len(text)}:{text}"


def derive_key(args: Sequence[Any], kwargs: Optional[Mapping[str, Any]] = None) -> str:
    """Map call arguments to a stable string key.

    Args:
        args: Positional arguments in call order
        kwargs: Keyword arguments; order does not matter

    Returns:
        Deterministic key, e.g. ``2|0:int:1:2|1:int:1:3`` for ``(2, 3)``
    """
    kwargs = kwargs or {}
    parts = [str(len(args) + len(kwargs))]
    parts.extend(_entry(str(index), value) for index, value in enumerate(args))
    parts.extend(_entry(f"{name}=", kwargs[name]) for name in sorted(kwargs))
    return SEPARATOR.join(parts)
