import subprocess

import pytest

import helmactions.services.tiller as tiller_module
from helmactions.errors import ProvisioningError
from helmactions.services.tiller import TillerHandle, TillerService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeProcess:
    def __init__(self, exit_after_terminate=True, returncode=None):
        self.returncode = returncode
        self.exit_after_terminate = exit_after_terminate
        self.terminate_calls = 0
        self.kill_calls = 0

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminate_calls += 1
        if self.exit_after_terminate:
            self.returncode = -15

    def kill(self):
        self.kill_calls += 1
        self.returncode = -9

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired("tiller", timeout)
        return self.returncode


class FakeRunner:
    def __init__(self, process):
        self.process = process
        self.spawned = []

    def spawn(self, cmd, env=None):
        self.spawned.append((cmd, env))
        return self.process


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(tiller_module.time, "sleep", lambda *_args, **_kwargs: None)


def _handle(process, requests_module, retries=3):
    return TillerHandle(
        process,
        main_port=40001,
        health_port=40002,
        logger=DummyLogger(),
        requests_module=requests_module,
        readiness_retries=retries,
        readiness_interval=0.0,
    )


def test_start_spawns_tiller_on_loopback_ports():
    runner = FakeRunner(FakeProcess())
    service = TillerService(
        command_runner=runner,
        logger=DummyLogger(),
        console=DummyConsole(),
        tiller_bin="/opt/bin/tiller",
        history_max=3,
    )

    handle = service.start(40001, 40002, "wordpress-ns", "/tmp/helm-x/.kubeconfig", base_env={"PATH": "/usr/bin"})

    cmd, env = runner.spawned[0]
    assert cmd == [
        "/opt/bin/tiller",
        "--listen",
        "127.0.0.1:40001",
        "--probe-listen",
        "127.0.0.1:40002",
    ]
    assert env == {
        "PATH": "/usr/bin",
        "KUBECONFIG": "/tmp/helm-x/.kubeconfig",
        "TILLER_NAMESPACE": "wordpress-ns",
        "TILLER_HISTORY_MAX": "3",
    }
    assert handle.address == "127.0.0.1:40001"


def test_handle_stops_process_exactly_once():
    process = FakeProcess()
    handle = _handle(process, FakeRequestsModule([]))

    with handle:
        pass
    handle.stop()

    assert handle.stop_count == 1
    assert process.terminate_calls == 1


def test_handle_stops_process_when_scope_raises():
    process = FakeProcess()

    with pytest.raises(RuntimeError):
        with _handle(process, FakeRequestsModule([])):
            raise RuntimeError("helm failed")

    assert process.terminate_calls == 1


def test_handle_kills_process_that_ignores_terminate():
    process = FakeProcess(exit_after_terminate=False)
    handle = _handle(process, FakeRequestsModule([]))
    handle.stop_grace_seconds = 0.01

    handle.stop()

    assert process.kill_calls == 1


def test_handle_skips_signal_when_process_already_exited():
    process = FakeProcess(returncode=1)
    handle = _handle(process, FakeRequestsModule([]))

    handle.stop()

    assert handle.stop_count == 1
    assert process.terminate_calls == 0


def test_wait_until_ready_polls_readiness_endpoint():
    requests_module = FakeRequestsModule([FakeRequestsModule.RequestException("refused"), 503, 200])
    handle = _handle(process=FakeProcess(), requests_module=requests_module)

    handle.wait_until_ready()

    assert requests_module.urls == ["http://127.0.0.1:40002/readiness"] * 3


def test_wait_until_ready_fails_when_process_exits():
    handle = _handle(FakeProcess(returncode=2), FakeRequestsModule([200]))

    with pytest.raises(ProvisioningError, match="exited with code 2"):
        handle.wait_until_ready()


def test_wait_until_ready_fails_after_retries():
    requests_module = FakeRequestsModule([503, 503])
    handle = _handle(FakeProcess(), requests_module, retries=2)

    with pytest.raises(ProvisioningError, match="did not become ready"):
        handle.wait_until_ready()


def test_wait_until_ready_does_not_sleep_after_last_attempt(monkeypatch):
    sleeps = []
    monkeypatch.setattr(tiller_module.time, "sleep", lambda seconds: sleeps.append(seconds))
    handle = _handle(FakeProcess(), FakeRequestsModule([503, 503, 503]), retries=3)

    with pytest.raises(ProvisioningError):
        handle.wait_until_ready()

    assert len(sleeps) == 2
