"""Registry <-> JSON-compatible records."""

from __future__ import annotations

import logging
import numbers
from typing import Any, Dict, Iterable, List, Optional, Union

from facewatch.errors import CorruptStateError
from facewatch.recognition.registry import IdentityRegistry
from facewatch.types import Embedding, Identity

LOGGER = logging.getLogger("facewatch.recognition.codec")


def serialize(registry: Union[IdentityRegistry, Iterable[Identity]]) -> List[Dict[str, Any]]:
    """Flatten identities into ``{name, embeddings, references}`` records."""
    identities = registry.list() if isinstance(registry, IdentityRegistry) else tuple(registry)
    return [
        {
            "name": identity.name,
            "embeddings": [embedding.tolist() for embedding in identity.embeddings],
            "references": list(identity.references),
        }
        for identity in identities
    ]


def deserialize(records: Any, dimension: Optional[int] = None) -> IdentityRegistry:
    """Rebuild a registry; any inconsistency raises CorruptStateError."""
    if not isinstance(records, list):
        raise CorruptStateError(f"Expected a list of identity records, got {type(records).__name__}")

    identities: List[Identity] = []
    seen = set()
    for idx, record in enumerate(records):
        if not isinstance(record, dict):
            raise CorruptStateError(f"Record {idx} is not an object")
        try:
            name = record["name"]
            raw_embeddings = record["embeddings"]
            references = record["references"]
        except KeyError as exc:
            raise CorruptStateError(f"Record {idx} is missing key {exc.args[0]!r}") from None
        if not isinstance(name, str) or not name.strip():
            raise CorruptStateError(f"Record {idx} has an invalid name: {name!r}")
        if name in seen:
            raise CorruptStateError(f"Duplicate identity {name!r}")
        if not isinstance(raw_embeddings, list) or not isinstance(references, list):
            raise CorruptStateError(f"Identity {name!r}: embeddings and references must be lists")
        if not raw_embeddings:
            raise CorruptStateError(f"Identity {name!r} has no embeddings")
        if len(raw_embeddings) != len(references):
            raise CorruptStateError(
                f"Identity {name!r} has {len(raw_embeddings)} embeddings but {len(references)} references"
            )

        embeddings = []
        for sample_idx, raw in enumerate(raw_embeddings):
            embedding = _parse_embedding(raw, f"{name}[{sample_idx}]")
            if dimension is None:
                dimension = len(embedding)
            elif len(embedding) != dimension:
                raise CorruptStateError(
                    f"Embedding {name}[{sample_idx}] has length {len(embedding)}, expected {dimension}"
                )
            embeddings.append(embedding)

        identities.append(Identity(name=name, embeddings=tuple(embeddings), references=tuple(references)))
        seen.add(name)

    registry = IdentityRegistry.from_identities(identities, dimension=dimension)
    LOGGER.debug("Decoded %d identities (dimension=%s)", len(identities), dimension)
    return registry


def _parse_embedding(raw: Any, where: str) -> Embedding:
    """Accept a plain list or an index-keyed object (typed arrays dumped as JSON objects)."""
    if isinstance(raw, dict):
        try:
            ordered = sorted(raw.items(), key=lambda item: int(item[0]))
        except (TypeError, ValueError):
            raise CorruptStateError(f"Embedding {where} has non-numeric keys") from None
        raw = [value for _, value in ordered]
    if not isinstance(raw, list) or not raw:
        raise CorruptStateError(f"Embedding {where} must be a non-empty list of numbers")
    if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in raw):
        raise CorruptStateError(f"Embedding {where} contains non-numeric values")
    try:
        return Embedding(raw)
    except ValueError as exc:
        raise CorruptStateError(f"Embedding {where}: {exc}") from exc
