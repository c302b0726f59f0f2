"""Operator display metadata: name parsing, colour assignment and the entity cache."""

from __future__ import annotations

import json
import logging
import re
import zlib
from typing import Any, Iterable, Optional, Sequence

from .config import RaceConfig
from .data.query import Query
from .data.registry import Entity, EntityRegistry
from .data.source import DataSource
from .errors import DiscoveryError, MetadataParseError, QueryError

logger = logging.getLogger(__name__)

FORBIDDEN_KEYS = frozenset({"__proto__", "constructor", "prototype"})
IPFS_GATEWAY = "https://ipfs.io/ipfs/"

_CID_V0 = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$")
_CID_V1 = re.compile(r"^b[a-z2-7]{58,}$")


def default_name(entity_id: str) -> str:
    return f"Operator {entity_id[:6]}"


def is_valid_ipfs_cid(cid: Any) -> bool:
    return isinstance(cid, str) and bool(_CID_V0.match(cid) or _CID_V1.match(cid))


def _load_metadata(payload: Optional[str]) -> dict:
    if payload is None or payload == "":
        raise MetadataParseError("empty metadata")
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise MetadataParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MetadataParseError(f"expected an object, got {type(data).__name__}")
    bad = FORBIDDEN_KEYS.intersection(data)
    if bad:
        raise MetadataParseError(f"forbidden keys {sorted(bad)}")
    return data


def parse_metadata(payload: Optional[str], entity_id: str) -> dict[str, Optional[str]]:
    """Best-effort name/description/image_url from an untrusted JSON string.

    Never raises; malformed input yields the abbreviated-id fallback name.
    """
    try:
        data = _load_metadata(payload)
    except MetadataParseError as exc:
        logger.debug(f"metadata for {entity_id}: {exc}")
        return {"name": default_name(entity_id), "description": None, "image_url": None}

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        name = default_name(entity_id)
    description = data.get("description")
    if not isinstance(description, str) or not description:
        description = None
    cid = data.get("imageIpfsCid")
    image_url = f"{IPFS_GATEWAY}{cid}" if is_valid_ipfs_cid(cid) else None
    return {"name": name, "description": description, "image_url": image_url}


def color_token(entity_id: str, palette: Sequence[str]) -> str:
    """Deterministic palette entry from the last two hex chars of the id."""
    try:
        idx = int(entity_id[-2:], 16)
    except ValueError:
        idx = zlib.crc32(entity_id.lower().encode("utf-8"))
    return palette[idx % len(palette)]


def _chunks(ids: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(ids), size):
        yield ids[i : i + size]


def resolve_metadata(
    source: DataSource, entity_ids: Sequence[str], config: RaceConfig
) -> EntityRegistry:
    """Fetch metadata in chunks and build the entity registry.

    Ids the service does not return stay out of the registry.
    """
    entities: list[Entity] = []
    for chunk in _chunks(list(entity_ids), config.metadata_chunk_size):
        q = Query(table="operators", columns=["metadata"], entities=chunk, limit=1000)
        try:
            df = source.fetch(q)
        except QueryError as exc:
            raise DiscoveryError(f"Fetching operator details failed: {exc}") from exc

        for row in df.itertuples(index=False):
            entity_id = str(row.entity_id).lower()
            meta = parse_metadata(row.metadata, entity_id)
            entities.append(
                Entity(
                    id=entity_id,
                    name=meta["name"],
                    color_token=color_token(entity_id, config.palette),
                    description=meta["description"],
                    image_url=meta["image_url"],
                )
            )

    registry = EntityRegistry.build(entities)
    logger.debug(f"resolved metadata for {len(registry)}/{len(entity_ids)} operators")
    return registry
