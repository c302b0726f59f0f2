import json

import pandas as pd
import pytest

from stakerace.config import RaceConfig
from stakerace.data.query import Query
from stakerace.data.schema import SCHEMAS
from stakerace.errors import QueryError

DAY = 86400
START = RaceConfig().start_date

A = "0x00000000000000000000000000000000000000a1"
B = "0x00000000000000000000000000000000000000b2"
C = "0x00000000000000000000000000000000000000c3"
D = "0x00000000000000000000000000000000000000d4"


def day(n: int) -> int:
    return START + n * DAY


class DummySource:
    """In-memory DataSource with one bucket table and one operator table."""

    name = "dummy"

    def __init__(self, buckets: pd.DataFrame, operators: pd.DataFrame):
        self._buckets = buckets.copy()
        self._operators = operators.copy()
        self.calls = []
        self.batches = []
        # table name (or "batch") -> call number (1-based) that raises
        self.fail = {}

    def schemas(self):
        return dict(SCHEMAS)

    def _maybe_fail(self, key: str) -> None:
        n = sum(1 for c in self.calls if c.table == key) if key != "batch" else len(self.batches)
        if self.fail.get(key) == n:
            raise QueryError(f"{key} call {n} failed")

    def _select(self, q: Query) -> pd.DataFrame:
        if q.table == "daily_buckets":
            df = self._buckets
        elif q.table == "operators":
            df = self._operators
        else:
            raise KeyError(q.table)
        df = df.copy()

        if q.entities is not None:
            df = df[df["entity_id"].isin(q.entities)]
        if "date" in df.columns:
            if q.start is not None:
                df = df[df["date"] >= q.start]
            if q.end is not None:
                df = df[df["date"] < q.end]
            if q.after is not None:
                df = df[df["date"] > q.after]
        if q.order_by is not None:
            key = pd.to_numeric(df[q.order_by], errors="coerce")
            order = key.sort_values(
                ascending=q.order_direction == "asc", kind="mergesort"
            ).index
            df = df.loc[order]
        if q.limit is not None:
            df = df.head(q.limit)

        keep = ["entity_id"] + (["date"] if "date" in df.columns else [])
        keep += [c for c in q.columns if c not in keep]
        return df[keep].reset_index(drop=True)

    def fetch(self, q: Query) -> pd.DataFrame:
        self.calls.append(q)
        self._maybe_fail(q.table)
        return self._select(q)

    def fetch_batch(self, queries):
        self.batches.append(dict(queries))
        self._maybe_fail("batch")
        return {alias: self._select(q) for alias, q in queries.items()}


class _Handle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Fake clock: callbacks fire only when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay_s, callback):
        h = _Handle(self.now + delay_s, callback)
        self.handles.append(h)
        return h

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target + 1e-9]
            if not due:
                break
            h = min(due, key=lambda x: x.when)
            self.now = h.when
            h.fired = True
            h.callback()
        self.now = target

    def run_until_idle(self, max_steps: int = 10_000) -> None:
        for _ in range(max_steps):
            if not self.pending:
                return
            h = min(self.pending, key=lambda x: x.when)
            self.advance(h.when - self.now)
        raise RuntimeError("scheduler did not go idle")


def _meta(name):
    return json.dumps({"name": name})


@pytest.fixture
def buckets():
    rows = [
        # D is only visible on the first checkpoint day
        {"date": day(0), "entity_id": D, "stake": "999", "earnings": "9"},
        # A leads early, B overtakes when A drops on day 3
        {"date": day(1), "entity_id": A, "stake": "100", "earnings": "1"},
        {"date": day(1), "entity_id": B, "stake": "50", "earnings": "5"},
        {"date": day(2), "entity_id": C, "stake": "80", "earnings": None},
        {"date": day(3), "entity_id": A, "stake": "10", "earnings": "2"},
        {"date": day(4), "entity_id": B, "stake": "60", "earnings": ""},
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def operators():
    rows = [
        {"entity_id": A, "stake": "10", "metadata": _meta("Alpha")},
        {"entity_id": B, "stake": "60", "metadata": _meta("Bravo")},
        {"entity_id": C, "stake": "80", "metadata": _meta("Old Charlie")},
        # D has no metadata row and is never ranked
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def source(buckets, operators):
    return DummySource(buckets, operators)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def config():
    return RaceConfig(display_count=50, page_size=1000)
