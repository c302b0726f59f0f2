import pandas as pd
import pytest

from stakerace.config import GATEWAY_URL, RaceConfig


def test_defaults():
    cfg = RaceConfig()
    assert cfg.start_date == int(pd.Timestamp("2023-11-25", tz="UTC").timestamp())
    assert cfg.snapshot_interval_s == 15 * 86400
    assert (cfg.display_count, cfg.discovery_top_n, cfg.page_size) == (50, 75, 1000)
    assert (cfg.normal_speed_ms, cfg.fast_speed_ms) == (100, 30)
    assert len(cfg.palette) == 18


def test_from_env_prefers_explicit_url(monkeypatch):
    monkeypatch.setenv("STAKERACE_GRAPH_URL", "http://graph.local")
    monkeypatch.setenv("STAKERACE_GRAPH_API_KEY", "key")
    monkeypatch.setenv("STAKERACE_SUBGRAPH_ID", "sub")
    assert RaceConfig.from_env().graph_url == "http://graph.local"


def test_from_env_builds_gateway_url(monkeypatch):
    monkeypatch.delenv("STAKERACE_GRAPH_URL", raising=False)
    monkeypatch.setenv("STAKERACE_GRAPH_API_KEY", "key")
    monkeypatch.setenv("STAKERACE_SUBGRAPH_ID", "sub")
    monkeypatch.setenv("STAKERACE_START_DATE", "2024-01-01")
    cfg = RaceConfig.from_env(display_count=10)
    assert cfg.graph_url == GATEWAY_URL.format(api_key="key", subgraph_id="sub")
    assert cfg.start_date == int(pd.Timestamp("2024-01-01", tz="UTC").timestamp())
    assert cfg.display_count == 10


def test_invalid_values_rejected():
    with pytest.raises(ValueError):
        RaceConfig(display_count=0)
    with pytest.raises(ValueError):
        RaceConfig(palette=())


def _clear_env(monkeypatch, *names):
    # set then delete so monkeypatch removes whatever load_dotenv writes
    for name in names:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch):
    _clear_env(monkeypatch, "STAKERACE_GRAPH_URL", "STAKERACE_GRAPH_API_KEY",
               "STAKERACE_SUBGRAPH_ID", "STAKERACE_START_DATE")
    env_file = tmp_path / ".env"
    env_file.write_text(
        "STAKERACE_GRAPH_API_KEY=filekey\n"
        "STAKERACE_SUBGRAPH_ID=filesub\n"
        "STAKERACE_START_DATE=2024-02-01\n"
    )
    cfg = RaceConfig.from_env(dotenv_path=str(env_file))
    assert cfg.graph_url == GATEWAY_URL.format(api_key="filekey", subgraph_id="filesub")
    assert cfg.start_date == int(pd.Timestamp("2024-02-01", tz="UTC").timestamp())


def test_process_env_wins_over_dotenv_file(tmp_path, monkeypatch):
    _clear_env(monkeypatch, "STAKERACE_START_DATE")
    monkeypatch.setenv("STAKERACE_GRAPH_URL", "http://graph.local")
    env_file = tmp_path / ".env"
    env_file.write_text("STAKERACE_GRAPH_URL=http://from-file\n")
    assert RaceConfig.from_env(dotenv_path=str(env_file)).graph_url == "http://graph.local"
