"""Memoization wrappers backed by the persistent cache engine.

Usage:
    >>> from persistent_cache import memoize, cached, invalidate_cache
    >>>
    >>> def square(x: int) -> int:
    ...     return x * x
    >>> fast_square = memoize(5, square)
    >>>
    >>> @cached(ttl=timedelta(hours=1))
    ... def fetch_rates(currency: str) -> dict[str, float]:
    ...     ...
    >>>
    >>> invalidate_cache(fetch_rates)

The engine is looked up on every call, not at wrap time, so wrapping at import
time never touches the database. Concurrent misses on the same key each run
the function and each write a row; they are not coalesced.
"""

import asyncio
import functools
import inspect
import typing
from datetime import timedelta
from typing import Any, Callable, Optional, ParamSpec, TypeVar, Union

from persistent_cache.core.container import get_cache_engine
from persistent_cache.core.logging import get_logger
from persistent_cache.services.keys import derive_key

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")
A = TypeVar("A")
B = TypeVar("B")
C = TypeVar("C")
D = TypeVar("D")
E = TypeVar("E")
F = TypeVar("F")
G = TypeVar("G")
H = TypeVar("H")
I = TypeVar("I")  # noqa: E741

TTL = Union[int, float, timedelta]

FUNCTION_ID_ATTR = "cache_function_id"


# =============================================================================
# FUNCTION IDENTITY
# =============================================================================

def function_id(fn: Callable[..., Any], name: Optional[str] = None) -> str:
    """Resolve the identifier cache entries are stored under.

    An explicit ``name`` wins. A memoized wrapper reports the identifier it was
    built with. Otherwise ``module.qualname``, which survives restarts but not
    renames or moves.
    """
    if name:
        return name

    existing = getattr(fn, FUNCTION_ID_ATTR, None)
    if existing:
        return existing

    target = fn.func if isinstance(fn, functools.partial) else fn
    module = getattr(target, "__module__", None) or "__main__"
    qualname = getattr(target, "__qualname__", None) or type(target).__qualname__
    return f"{module}.{qualname}"


def _ttl_seconds(ttl: TTL) -> float:
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if seconds < 0:
        raise ValueError(f"TTL must not be negative, got {ttl!r}")
    return seconds


def _return_type(fn: Callable[..., Any]) -> Any:
    try:
        hints = typing.get_type_hints(inspect.unwrap(fn))
    except Exception:
        return Any
    return hints.get("return", Any)


def _signature(fn: Callable[..., Any]) -> Optional[inspect.Signature]:
    try:
        return inspect.signature(fn)
    except (TypeError, ValueError):
        return None


# =============================================================================
# GENERIC WRAPPER
# =============================================================================

def memoize(ttl: TTL, fn: Callable[P, R], *, name: Optional[str] = None) -> Callable[P, R]:
    """Wrap ``fn`` so results are served from the persistent cache.

    Args:
        ttl: Entry lifetime, seconds or timedelta
        fn: Function to memoize; coroutine functions are supported
        name: Stable identifier; defaults to ``module.qualname``

    Returns:
        Function with the same signature as ``fn``
    """
    ttl_seconds = _ttl_seconds(ttl)
    func_name = function_id(fn, name)
    result_type = _return_type(fn)
    signature = _signature(fn)

    if not name and ("<lambda>" in func_name or "<locals>" in func_name):
        logger.warning("Function identifier may collide, pass name= to pin it", function=func_name)

    def build_key(args, kwargs) -> str:
        if signature is not None:
            try:
                bound = signature.bind(*args, **kwargs)
            except TypeError:
                # Let the real call raise the error
                return derive_key(args, kwargs)
            bound.apply_defaults()
            return derive_key(bound.args, bound.kwargs)
        return derive_key(args, kwargs)

    if inspect.iscoroutinefunction(fn):
        @functools.wraps(fn)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            key = build_key(args, kwargs)
            engine = await asyncio.to_thread(get_cache_engine)
            item, found = await asyncio.to_thread(engine.get, func_name, key, ttl_seconds, result_type)

            if found:
                logger.debug("Cache hit", function=func_name, key=key)
                return item

            logger.debug("Cache miss", function=func_name, key=key)
            result = await fn(*args, **kwargs)
            await asyncio.to_thread(engine.set, func_name, key, result, result_type)
            return result

        wrapper = async_wrapper
    else:
        @functools.wraps(fn)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            key = build_key(args, kwargs)
            engine = get_cache_engine()
            item, found = engine.get(func_name, key, ttl_seconds, result_type)

            if found:
                logger.debug("Cache hit", function=func_name, key=key)
                return item

            logger.debug("Cache miss", function=func_name, key=key)
            result = fn(*args, **kwargs)
            engine.set(func_name, key, result, result_type)
            return result

        wrapper = sync_wrapper

    setattr(wrapper, FUNCTION_ID_ATTR, func_name)
    wrapper.cache_clear = lambda: invalidate_cache(wrapper)
    return wrapper


def cached(ttl: TTL, *, name: Optional[str] = None) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator form of :func:`memoize`.

    Example:
        >>> @cached(ttl=3600)
        ... def lookup_user(user_id: str) -> dict:
        ...     return api.get_user(user_id)
    """
    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        return memoize(ttl, fn, name=name)

    return decorator


def invalidate_cache(fn: Callable[..., Any], *, name: Optional[str] = None) -> int:
    """Delete every cached entry for ``fn`` (wrapped or original). Returns count."""
    func_name = function_id(fn, name)
    return get_cache_engine().invalidate(func_name)


# =============================================================================
# ARITY-SPECIFIC WRAPPERS
# =============================================================================

def _memoize_arity(ttl: TTL, fn: Callable[..., Any], arity: int,
                   name: Optional[str]) -> Callable[..., Any]:
    signature = _signature(fn)
    if signature is not None:
        try:
            signature.bind(*range(arity))
        except TypeError:
            raise TypeError(
                f"memoize{arity} expects a function of {arity} positional "
                f"argument(s), got {function_id(fn)}{signature}"
            ) from None
    return memoize(ttl, fn, name=name)


def memoize0(ttl: TTL, fn: Callable[[], R], *, name: Optional[str] = None) -> Callable[[], R]:
    return _memoize_arity(ttl, fn, 0, name)


def memoize1(ttl: TTL, fn: Callable[[A], R], *, name: Optional[str] = None) -> Callable[[A], R]:
    return _memoize_arity(ttl, fn, 1, name)


def memoize2(ttl: TTL, fn: Callable[[A, B], R], *,
             name: Optional[str] = None) -> Callable[[A, B], R]:
    return _memoize_arity(ttl, fn, 2, name)


def memoize3(ttl: TTL, fn: Callable[[A, B, C], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C], R]:
    return _memoize_arity(ttl, fn, 3, name)


def memoize4(ttl: TTL, fn: Callable[[A, B, C, D], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C, D], R]:
    return _memoize_arity(ttl, fn, 4, name)


def memoize5(ttl: TTL, fn: Callable[[A, B, C, D, E], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C, D, E], R]:
    return _memoize_arity(ttl, fn, 5, name)


def memoize6(ttl: TTL, fn: Callable[[A, B, C, D, E, F], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C, D, E, F], R]:
    return _memoize_arity(ttl, fn, 6, name)


def memoize7(ttl: TTL, fn: Callable[[A, B, C, D, E, F, G], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C, D, E, F, G], R]:
    return _memoize_arity(ttl, fn, 7, name)


def memoize8(ttl: TTL, fn: Callable[[A, B, C, D, E, F, G, H], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C, D, E, F, G, H], R]:
    return _memoize_arity(ttl, fn, 8, name)


def memoize9(ttl: TTL, fn: Callable[[A, B, C, D, E, F, G, H, I], R], *,
             name: Optional[str] = None) -> Callable[[A, B, C, D, E, F, G, H, I], R]:
    return _memoize_arity(ttl, fn, 9, name)


def memoize_n(ttl: TTL, fn: Callable[..., R], *, name: Optional[str] = None) -> Callable[..., R]:
    """Variadic form: any number of positional and keyword arguments."""
    return memoize(ttl, fn, name=name)
