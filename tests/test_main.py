import pytest

from sqlrecovery import __main__ as entry
from sqlrecovery.core.config import Settings
from sqlrecovery.core.exceptions import ConfigurationException


def test_main_logs_failures_and_returns(
    monkeypatch: pytest.MonkeyPatch, tmp_path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    calls = []

    async def failing_run(settings: Settings):
        calls.append(settings)
        raise ConfigurationException("no subscription", details={"field": "subscription_id"})

    monkeypatch.setattr(entry, "get_settings", lambda: Settings())
    monkeypatch.setattr(entry, "run", failing_run)

    entry.main()

    assert len(calls) == 1
    out = capsys.readouterr().out
    assert "Recovery run failed" in out
    assert "error_id=ERR-" in out
    assert "error_type=ConfigurationException" in out
    assert "subscription_id" in out


def test_run_closes_clients(monkeypatch: pytest.MonkeyPatch) -> None:
    import asyncio

    from sqlrecovery.orchestrator import RunOutcome

    closed = []

    class _Clients:
        async def close(self) -> None:
            closed.append(True)

    async def fake_build(cfg):
        return _Clients()

    class _Orchestrator:
        def __init__(self, client, config, *, location):
            self.location = location

        async def run(self):
            return RunOutcome.COMPLETED

    monkeypatch.setattr(entry, "build_clients", fake_build)
    monkeypatch.setattr(entry, "AzureResourceClient", lambda clients: object())
    monkeypatch.setattr(entry, "RecoveryOrchestrator", _Orchestrator)

    outcome = asyncio.run(entry.run(Settings()))

    assert outcome is RunOutcome.COMPLETED
    assert closed == [True]


def test_main_logs_unexpected_failures(
    monkeypatch: pytest.MonkeyPatch, tmp_path, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)

    async def failing_run(settings: Settings):
        raise RuntimeError("transport closed")

    monkeypatch.setattr(entry, "get_settings", lambda: Settings())
    monkeypatch.setattr(entry, "run", failing_run)

    entry.main()

    out = capsys.readouterr().out
    assert "Recovery run failed" in out
    assert "transport closed" in out
