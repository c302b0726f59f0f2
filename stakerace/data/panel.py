from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
import pandas as pd

DATE = "date"
ENTITY = "entity_id"
METRICS = ("stake", "earnings")
COLUMNS = [DATE, ENTITY, *METRICS]


@dataclass(frozen=True)
class Observation:
    entity_id: str
    date: int
    stake: Optional[str] = None
    earnings: Optional[str] = None


def _clean_value(v) -> Optional[str]:
    if v is None or (not isinstance(v, str) and pd.isna(v)):
        return None
    v = str(v)
    return v if v else None


def _clean_metric(s: pd.Series) -> pd.Series:
    # decimal strings stay strings; "", NaN and NA mean "not reported".
    # built as object dtype so pandas does not re-infer a string dtype with NaN
    return pd.Series([_clean_value(v) for v in s.tolist()], index=s.index, dtype=object)


@dataclass
class ObservationPanel:
    """Flat observation sequence: one row per (date, entity_id), ordered by date.

    Dates are epoch seconds at UTC midnight. Metric columns hold decimal strings
    or None when the row did not report that metric.
    """

    df: pd.DataFrame

    @staticmethod
    def from_long(
        df: pd.DataFrame, time_col: str = DATE, entity_col: str = ENTITY
    ) -> "ObservationPanel":
        if time_col not in df.columns or entity_col not in df.columns:
            raise ValueError(f"Expected columns {time_col} and {entity_col}.")
        out = df.rename(columns={time_col: DATE, entity_col: ENTITY}).copy()
        for m in METRICS:
            if m not in out.columns:
                out[m] = None
        out = out[COLUMNS].copy()

        out[DATE] = pd.to_numeric(out[DATE]).astype("int64")
        out[ENTITY] = out[ENTITY].astype(str).str.lower()
        for m in METRICS:
            out[m] = _clean_metric(out[m])
        return ObservationPanel(out.reset_index(drop=True)).ensure_sorted()

    @staticmethod
    def from_records(records: Iterable[Observation]) -> "ObservationPanel":
        rows = [
            {DATE: r.date, ENTITY: r.entity_id, "stake": r.stake, "earnings": r.earnings}
            for r in records
        ]
        return ObservationPanel.from_long(pd.DataFrame(rows, columns=COLUMNS))

    @staticmethod
    def empty() -> "ObservationPanel":
        return ObservationPanel.from_long(pd.DataFrame(columns=COLUMNS))

    @staticmethod
    def concat(panels: Sequence["ObservationPanel"]) -> "ObservationPanel":
        if not panels:
            return ObservationPanel.empty()
        df = pd.concat([p.df for p in panels], ignore_index=True)
        return ObservationPanel(df).ensure_sorted()

    def __len__(self) -> int:
        return len(self.df)

    def dates(self) -> list[int]:
        return sorted(self.df[DATE].unique().tolist())

    def max_date(self) -> Optional[int]:
        if self.df.empty:
            return None
        return int(self.df[DATE].max())

    def ensure_sorted(self) -> "ObservationPanel":
        # stable so rows of the same date keep their fetch order
        df = self.df.sort_values(DATE, kind="mergesort").reset_index(drop=True)
        return ObservationPanel(df)
