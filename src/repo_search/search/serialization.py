"""Compact binary serialization of the inverted index.

Blob layout::

    magic    4 bytes   b"RSIX"
    version  1 byte    FORMAT_VERSION
    length   4 bytes   big-endian size of the compressed payload
    payload  zlib-compressed orjson document

The payload holds the schema, the documents in insertion order and the
per-field postings as ``term -> [[doc_index, position, ...], ...]``. The
global index is not stored; it is rebuilt from the field postings on load,
which keeps the global/field invariants true by construction.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
import struct
from typing import Any
import zlib

import orjson

from repo_search.domain.model import Repository
from repo_search.errors import DeserializationError
from repo_search.search.index import IndexedDocument, IndexState
from repo_search.search.schema import Schema


logger = logging.getLogger(__name__)

MAGIC = b"RSIX"
FORMAT_VERSION = 1
_HEADER = struct.Struct(">4sBI")


def serialize_index(state: IndexState) -> bytes:
    """Encode ``state`` into a self-describing blob."""

    doc_slots = {doc_id: slot for slot, doc_id in enumerate(state.documents)}
    documents = [
        {
            "repository": indexed.repository.to_dict(),
            "offsets": indexed.field_offsets,
            "surfaces": sorted(indexed.surfaces),
        }
        for indexed in state.documents.values()
    ]
    fields: dict[str, dict[str, list[list[int]]]] = {}
    for field_name, sub_index in state.field_index.items():
        fields[field_name] = {
            term: [[doc_slots[posting.doc_id], *posting.positions] for posting in postings]
            for term, postings in sub_index.items()
        }
    payload = {"schema": state.schema.to_dict(), "documents": documents, "fields": fields}
    compressed = zlib.compress(orjson.dumps(payload))
    return _HEADER.pack(MAGIC, FORMAT_VERSION, len(compressed)) + compressed


def deserialize_index(blob: bytes) -> IndexState:
    """Decode a blob produced by ``serialize_index``.

    Raises:
        DeserializationError: on any framing, compression, JSON or shape
            problem, including postings that reference unknown documents.
    """

    if not isinstance(blob, bytes | bytearray | memoryview):
        raise DeserializationError("Serialized index must be bytes", details={"type": type(blob).__name__})
    data = bytes(blob)
    if len(data) < _HEADER.size:
        raise DeserializationError("Serialized index is truncated", details={"size": len(data)})
    magic, version, length = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise DeserializationError("Not a serialized repository index", details={"magic": magic.hex()})
    if version != FORMAT_VERSION:
        raise DeserializationError(
            "Unsupported index format version", details={"version": version, "supported": FORMAT_VERSION}
        )
    body = data[_HEADER.size :]
    if len(body) != length:
        raise DeserializationError(
            "Serialized index length mismatch", details={"expected": length, "actual": len(body)}
        )
    try:
        payload = orjson.loads(zlib.decompress(body))
    except zlib.error as exc:
        raise DeserializationError("Serialized index payload is not valid zlib data") from exc
    except orjson.JSONDecodeError as exc:
        raise DeserializationError("Serialized index payload is not valid JSON") from exc
    if not isinstance(payload, Mapping):
        raise DeserializationError("Serialized index payload must be an object")
    try:
        return _build_state(payload)
    except DeserializationError:
        raise
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise DeserializationError("Serialized index payload has an invalid shape", details={"error": str(exc)}) from exc


def _build_state(payload: Mapping[str, Any]) -> IndexState:
    schema = Schema.from_dict(payload["schema"])
    text_fields = set(schema.text_field_names)

    documents: list[IndexedDocument] = []
    for entry in payload["documents"]:
        repository = Repository.from_mapping(entry["repository"])
        offsets = {str(name): int(value) for name, value in dict(entry.get("offsets", {})).items()}
        documents.append(
            IndexedDocument(
                doc_id=repository.id,
                repository=repository,
                field_offsets=offsets,
                surfaces=frozenset(str(surface) for surface in entry.get("surfaces", [])),
            )
        )

    for field_name, terms in dict(payload["fields"]).items():
        if field_name not in text_fields:
            raise DeserializationError("Postings for a field missing from the schema", details={"field": field_name})
        for term, rows in dict(terms).items():
            if not rows:
                raise DeserializationError("Empty posting list", details={"field": field_name, "term": term})
            for row in rows:
                slot, *positions = row
                if not isinstance(slot, int) or not 0 <= slot < len(documents) or not positions:
                    raise DeserializationError(
                        "Posting references an unknown document",
                        details={"field": field_name, "term": term, "slot": slot},
                    )
                if any(not isinstance(position, int) or position < 0 for position in positions):
                    raise DeserializationError("Invalid posting positions", details={"field": field_name, "term": term})
                documents[slot].field_terms.setdefault(field_name, {})[term] = sorted(positions)

    state = IndexState(schema=schema)
    for indexed in documents:
        if indexed.doc_id in state.documents:
            raise DeserializationError("Duplicate document id", details={"doc_id": indexed.doc_id})
        state.insert(indexed)
    logger.debug("Decoded index blob: %d documents", len(state.documents))
    return state
