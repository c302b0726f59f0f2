from typing import Any, Dict, Mapping, Optional
import json
import logging

import pandas as pd
import requests

from .query import Query
from .schema import SCHEMAS, TableSchema
from ..errors import QueryError

logger = logging.getLogger(__name__)


def _literal(value: Any) -> str:
    # GraphQL string/list literals are valid JSON
    return json.dumps(value)


def _selection(schema: TableSchema, columns) -> str:
    fields = []
    for c in columns:
        if c not in schema.columns:
            raise ValueError(f"Unknown column {c!r} for table {schema.name}")
        fields.append(schema.columns[c])
    if schema.time_column and schema.time_column in schema.columns:
        remote_time = schema.columns[schema.time_column]
        if remote_time not in fields:
            fields.insert(0, remote_time)
    # nest the entity id path, e.g. operator { id }
    path = list(schema.entity_path)
    ent = path[-1]
    for p in reversed(path[:-1]):
        ent = f"{p} {{ {ent} }}"
    fields.append(ent)
    return " ".join(fields)


def render_query(alias: str, q: Query, schema: TableSchema) -> str:
    """Render one aliased GraphQL selection for a Query."""
    args = []
    if q.limit is not None:
        args.append(f"first: {int(q.limit)}")
    if q.order_by is not None:
        remote = schema.columns.get(q.order_by, q.order_by)
        args.append(f"orderBy: {remote}")
        args.append(f"orderDirection: {q.order_direction}")

    where = []
    if schema.time_column:
        if q.start is not None:
            where.append(f"date_gte: {_literal(str(q.start))}")
        if q.end is not None:
            where.append(f"date_lt: {_literal(str(q.end))}")
        if q.after is not None:
            where.append(f"date_gt: {_literal(str(q.after))}")
    if q.entities is not None:
        where.append(f"{schema.entity_filter}: {_literal(list(q.entities))}")
    if where:
        args.append("where: { " + ", ".join(where) + " }")

    arg_str = f"({', '.join(args)})" if args else ""
    return f"{alias}: {schema.remote_name}{arg_str} {{ {_selection(schema, q.columns)} }}"


def _dig(row: Mapping[str, Any], path) -> Optional[Any]:
    cur: Any = row
    for p in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(p)
    return cur


def rows_to_frame(rows, q: Query, schema: TableSchema) -> pd.DataFrame:
    cols = ["entity_id"]
    if schema.time_column:
        cols.append(schema.time_column)
    cols += [c for c in q.columns if c not in cols]

    out = []
    for row in rows or []:
        rec = {"entity_id": _dig(row, schema.entity_path)}
        for c in cols[1:]:
            rec[c] = row.get(schema.columns[c])
        out.append(rec)
    df = pd.DataFrame(out, columns=cols)
    if schema.time_column and not df.empty:
        df[schema.time_column] = pd.to_numeric(df[schema.time_column]).astype("int64")
    if not df.empty:
        df["entity_id"] = df["entity_id"].astype(str).str.lower()
    return df


class SubgraphDataSource:
    """
    Data source reading operator buckets from a GraphQL indexing service.

    Every call is a single POST; batches are sent as aliased selections of one
    query document.
    """

    name: str = "subgraph"

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        if not url:
            raise ValueError("SubgraphDataSource requires a GraphQL endpoint url")
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._headers = {"Content-Type": "application/json", **(headers or {})}

    @classmethod
    def from_config(cls, config, session: Optional[requests.Session] = None):
        return cls(
            config.graph_url,
            timeout=config.request_timeout_s,
            session=session,
            headers=config.extra_headers,
        )

    def schemas(self) -> Dict[str, TableSchema]:
        return dict(SCHEMAS)

    def _post(self, document: str) -> Dict[str, Any]:
        try:
            resp = self._session.post(
                self.url,
                data=json.dumps({"query": document}),
                headers=self._headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise QueryError(f"Request to {self.name} failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise QueryError("Malformed response payload")
        errors = payload.get("errors")
        if errors:
            # normally a list of {"message": ...}; some gateways send a bare object or string
            first = errors[0] if isinstance(errors, list) else errors
            msg = first.get("message") if isinstance(first, dict) else str(first)
            raise QueryError(msg or "Unknown query error")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise QueryError("Response carries no data")
        return data

    def fetch_batch(self, queries: Mapping[str, Query]) -> Dict[str, pd.DataFrame]:
        parts = []
        for alias, q in queries.items():
            if q.table not in SCHEMAS:
                raise ValueError(f"Unknown table: {q.table}")
            parts.append(render_query(alias, q, SCHEMAS[q.table]))
        document = "query { " + " ".join(parts) + " }"
        logger.debug(f"{self.name}: posting {len(parts)} selections")

        data = self._post(document)
        out = {}
        for alias, q in queries.items():
            if alias not in data:
                raise QueryError(f"Response is missing selection {alias!r}")
            out[alias] = rows_to_frame(data[alias], q, SCHEMAS[q.table])
        return out

    def fetch(self, q: Query) -> pd.DataFrame:
        return self.fetch_batch({"q": q})["q"]
