import json

import numpy as np
import pandas as pd

from stakerace.data.query import Query
from stakerace.data.schema import SCHEMAS


class DummySource:
    """In-memory operator buckets with random-walk stake and growing earnings."""

    name = "dummy"

    def __init__(self, start: int, days: int = 120, operators: int = 12, seed: int = 123):
        rng = np.random.default_rng(seed)
        ids = [f"0x{rng.integers(0, 2**63):040x}" for _ in range(operators)]
        rows = []
        for i, entity_id in enumerate(ids):
            stake = 1e6 * (1 + i) * 1e18
            earned = 0.0
            for d in range(days):
                # sparse: roughly one report every three days
                if rng.random() > 0.35:
                    continue
                stake = max(stake * (1 + rng.normal(0, 0.08)), 0.0)
                earned += abs(rng.normal(0, 1e3)) * 1e18
                rows.append(
                    {
                        "date": start + d * 86400,
                        "entity_id": entity_id,
                        "stake": f"{stake:.0f}",
                        "earnings": f"{earned:.0f}",
                    }
                )
        self._buckets = pd.DataFrame(rows).sort_values("date", kind="mergesort")
        names = ["Node %d" % i for i in range(operators)]
        names[-1] = "Old testnet node"
        self._operators = pd.DataFrame(
            {
                "entity_id": ids,
                "stake": self._buckets.groupby("entity_id")["stake"].last().reindex(ids).fillna("0").tolist(),
                "metadata": [json.dumps({"name": n}) for n in names],
            }
        ).reset_index(drop=True)

    def schemas(self):
        return dict(SCHEMAS)

    def fetch(self, q: Query) -> pd.DataFrame:
        df = self._buckets if q.table == "daily_buckets" else self._operators
        out = df.copy()
        if q.entities is not None:
            out = out[out["entity_id"].isin(q.entities)]
        if "date" in out.columns:
            if q.start is not None:
                out = out[out["date"] >= q.start]
            if q.end is not None:
                out = out[out["date"] < q.end]
            if q.after is not None:
                out = out[out["date"] > q.after]
        if q.order_by is not None:
            key = pd.to_numeric(out[q.order_by])
            out = out.loc[key.sort_values(ascending=q.order_direction == "asc").index]
        if q.limit is not None:
            out = out.head(q.limit)
        keep = ["entity_id"] + (["date"] if "date" in out.columns else [])
        keep += [c for c in q.columns if c not in keep]
        return out[keep].reset_index(drop=True)

    def fetch_batch(self, queries):
        return {alias: self.fetch(q) for alias, q in queries.items()}
