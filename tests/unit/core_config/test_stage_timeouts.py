import importlib

import core_config.constants as const


def test_stage_timeouts_are_seconds():
    assert const.timeout_for_stage("relations") == const.TIMEOUT_RELATIONS_MS / 1000.0
    assert const.timeout_for_stage("writer") == const.TIMEOUT_WRITER_MS / 1000.0
    assert const.timeout_for_stage("content") == const.TIMEOUT_CONTENT_MS / 1000.0
    assert const.timeout_for_stage("publish") == const.TIMEOUT_PUBLISH_MS / 1000.0
    assert const.timeout_for_stage("health") == const.TIMEOUT_HEALTH_MS / 1000.0


def test_unknown_stage_falls_back_to_writer_budget():
    assert const.timeout_for_stage("nope") == const.TIMEOUT_WRITER_MS / 1000.0


def test_env_override(monkeypatch):
    monkeypatch.setenv("TIMEOUT_CONTENT_MS", "1234")
    try:
        mod = importlib.reload(const)
        assert mod.timeout_for_stage("content") == 1.234
    finally:
        monkeypatch.delenv("TIMEOUT_CONTENT_MS")
        importlib.reload(const)
