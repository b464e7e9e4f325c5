"""JSON encoding and schema-checked decoding of persisted records.

Persisted documents are derived caches or durable records written by earlier
runs. A document that fails to parse or validate is logged and treated as
absent so that one corrupt file never aborts a batch.
"""

from __future__ import annotations

import typing as typ

import msgspec

from cadence.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from cadence.storage.protocol import ObjectStore

logger = get_logger(__name__)


def encode_record(record: msgspec.Struct) -> str:
    """Encode ``record`` as indented UTF-8 JSON text."""
    return msgspec.json.format(msgspec.json.encode(record), indent=2).decode("utf-8")


def decode_record[RecordT: msgspec.Struct](
    text: str, record_type: type[RecordT], *, key: str
) -> RecordT | None:
    """Decode ``text`` into ``record_type``, returning ``None`` when invalid.

    Parameters
    ----------
    text
        Raw JSON document.
    record_type
        Struct type the document must conform to.
    key
        Object key the document was read from, for the warning log line.

    Returns
    -------
    RecordT | None
        The decoded record, or ``None`` when the document is malformed or
        does not match the schema.

    """
    try:
        return msgspec.json.decode(text, type=record_type)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        log_warning(
            logger,
            "Ignoring unreadable %s at %s: %s",
            record_type.__name__,
            key,
            exc,
        )
        return None


async def load_record[RecordT: msgspec.Struct](
    store: ObjectStore, key: str, record_type: type[RecordT]
) -> RecordT | None:
    """Read and decode the record at ``key``; ``None`` when absent or invalid."""
    text = await store.get(key)
    if text is None:
        return None
    return decode_record(text, record_type, key=key)
