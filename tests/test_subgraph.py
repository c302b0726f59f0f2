import json

import pytest
import requests

from stakerace.data.query import Query
from stakerace.data.schema import DAILY_BUCKETS, OPERATORS
from stakerace.data.subgraph import SubgraphDataSource, render_query
from stakerace.errors import QueryError

from conftest import A, B


class FakeResponse:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.posted = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.posted.append(json.loads(data))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_render_history_query():
    q = Query(
        table="daily_buckets",
        columns=["stake", "earnings"],
        entities=[A.upper().replace("0X", "0x")],
        after=100,
        order_by="date",
        limit=1000,
    )
    text = render_query("h", q, DAILY_BUCKETS)
    assert text.startswith("h: operatorDailyBuckets(first: 1000, orderBy: date")
    assert f'operator_in: ["{A}"]' in text
    assert 'date_gt: "100"' in text
    assert "valueWithoutEarnings cumulativeEarningsWei operator { id }" in text


def test_render_operator_query_has_no_date_filter():
    q = Query(table="operators", columns=["stake"], order_by="stake",
              order_direction="desc", limit=75)
    text = render_query("currentTop", q, OPERATORS)
    assert text == (
        "currentTop: operators(first: 75, orderBy: valueWithoutEarnings, "
        "orderDirection: desc) { valueWithoutEarnings id }"
    )


def test_fetch_batch_parses_rows():
    payload = {
        "data": {
            "t0": [
                {"date": "200", "valueWithoutEarnings": "5", "operator": {"id": A}},
            ],
            "currentTop": [{"id": B.upper().replace("0X", "0x"), "valueWithoutEarnings": "9"}],
        }
    }
    session = FakeSession(FakeResponse(payload))
    src = SubgraphDataSource("http://graph.local", session=session)
    out = src.fetch_batch(
        {
            "t0": Query(table="daily_buckets", columns=["stake"], start=200, end=300),
            "currentTop": Query(table="operators", columns=["stake"]),
        }
    )
    assert out["t0"].to_dict("records") == [{"entity_id": A, "date": 200, "stake": "5"}]
    assert out["currentTop"]["entity_id"].tolist() == [B]
    assert session.posted[0]["query"].startswith("query { t0: operatorDailyBuckets(")


def test_error_payload_raises_query_error():
    session = FakeSession(FakeResponse({"errors": [{"message": "indexer down"}]}))
    src = SubgraphDataSource("http://graph.local", session=session)
    with pytest.raises(QueryError, match="indexer down"):
        src.fetch(Query(table="operators", columns=["stake"]))


@pytest.mark.parametrize(
    "errors, expected",
    [
        ({"message": "bad gateway key"}, "bad gateway key"),
        ("subgraph not found", "subgraph not found"),
        ([], None),
    ],
)
def test_error_payload_shapes(errors, expected):
    payload = {"errors": errors, "data": {"q": []}}
    src = SubgraphDataSource("http://graph.local", session=FakeSession(FakeResponse(payload)))
    q = Query(table="operators", columns=["stake"])
    if expected is None:
        assert src.fetch(q).empty
    else:
        with pytest.raises(QueryError, match=expected):
            src.fetch(q)


def test_transport_failure_raises_query_error():
    session = FakeSession(requests.ConnectionError("refused"))
    src = SubgraphDataSource("http://graph.local", session=session)
    with pytest.raises(QueryError):
        src.fetch(Query(table="operators", columns=["stake"]))


def test_http_status_raises_query_error():
    session = FakeSession(FakeResponse({}, status=502))
    src = SubgraphDataSource("http://graph.local", session=session)
    with pytest.raises(QueryError, match="502"):
        src.fetch(Query(table="operators", columns=["stake"]))


def test_requires_url():
    with pytest.raises(ValueError):
        SubgraphDataSource("")


def test_from_config():
    from stakerace.config import RaceConfig

    cfg = RaceConfig(graph_url="http://graph.local", request_timeout_s=5.0,
                     extra_headers={"Authorization": "Bearer t"})
    src = SubgraphDataSource.from_config(cfg, session=FakeSession(FakeResponse({})))
    assert src.url == "http://graph.local"
    assert src.timeout == 5.0
    assert src._headers["Authorization"] == "Bearer t"
