"""Codecs turning typed results into stored payloads and back.

JsonCodec validates against the wrapped function's return annotation, so an
annotated ``tuple[int, int]`` comes back as a tuple and a pydantic model comes
back as a model. A value that would not come back equal and of the same type
(an unannotated tuple, a dict with int keys) is refused at encode time and
simply not cached. PickleCodec handles arbitrary picklable objects.
"""

import pickle
import types
from typing import Any, Dict, Protocol

from pydantic import TypeAdapter

from persistent_cache.core.exceptions import CodecError


class Codec(Protocol):
    """Encode/decode pair over typed values."""

    name: str

    def encode(self, value: Any, result_type: Any = Any) -> bytes:
        ...

    def decode(self, data: bytes, result_type: Any = Any) -> Any:
        ...


class JsonCodec:
    """JSON payloads via pydantic TypeAdapter."""

    name = "json"

    def __init__(self):
        self._adapters: Dict[Any, TypeAdapter] = {}

    def _adapter(self, result_type: Any) -> TypeAdapter:
        try:
            adapter = self._adapters.get(result_type)
        except TypeError:
            # Unhashable annotation, build one per call
            return TypeAdapter(result_type)
        if adapter is None:
            adapter = TypeAdapter(result_type)
            self._adapters[result_type] = adapter
        return adapter

    def encode(self, value: Any, result_type: Any = Any) -> bytes:
        try:
            adapter = self._adapter(result_type)
            payload = adapter.dump_json(value)
            restored = adapter.validate_json(payload)
            lossless = restored == value and type(restored) is type(value)
        except Exception as e:
            raise CodecError(f"Cannot encode {type(value).__name__}: {e}") from e

        # A hit must return what the miss returned: tuples, sets and
        # int-keyed dicts do not survive untyped JSON.
        if not lossless:
            raise CodecError(
                f"{type(value).__name__} does not round-trip through JSON as {result_type!r}"
            )
        return payload

    def decode(self, data: bytes, result_type: Any = Any) -> Any:
        try:
            return self._adapter(result_type).validate_json(data)
        except Exception as e:
            raise CodecError(f"Cannot decode payload as {result_type!r}: {e}") from e


class PickleCodec:
    """Pickle payloads for objects JSON cannot represent."""

    name = "pickle"

    def encode(self, value: Any, result_type: Any = Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except Exception as e:
            raise CodecError(f"Cannot pickle {type(value).__name__}: {e}") from e

    def decode(self, data: bytes, result_type: Any = Any) -> Any:
        try:
            value = pickle.loads(data)
        except Exception as e:
            raise CodecError(f"Cannot unpickle payload: {e}") from e

        if _is_concrete_class(result_type) and value is not None and not _isinstance(value, result_type):
            raise CodecError(
                f"Payload holds {type(value).__name__}, expected {result_type.__name__}"
            )
        return value


def _is_concrete_class(tp: Any) -> bool:
    # typing.Any is a class since 3.11; list[int] passes isinstance(tp, type) on some interpreters
    if tp is Any or tp is object:
        return False
    return isinstance(tp, type) and not isinstance(tp, types.GenericAlias)


def _isinstance(value: Any, tp: Any) -> bool:
    try:
        return isinstance(value, tp)
    except TypeError as e:
        raise CodecError(f"Cannot check payload against {tp!r}: {e}") from e


_CODECS = {
    JsonCodec.name: JsonCodec,
    PickleCodec.name: PickleCodec,
}


def create_codec(name: str) -> Codec:
    """Build the codec registered under ``name``."""
    try:
        return _CODECS[name]()
    except KeyError:
        raise ValueError(f"Unknown codec: {name!r} (expected one of {sorted(_CODECS)})") from None
