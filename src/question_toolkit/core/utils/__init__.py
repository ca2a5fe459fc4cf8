"""Wire dictionary <-> record conversion."""

from .serialization import record_from_wire, serialize_record

__all__ = ["record_from_wire", "serialize_record"]
