import threading
import time
import urllib.request
from http import HTTPStatus
from urllib.error import HTTPError

import pytest

from appscaler.controller import REQUEUE_AFTER, Deployment, InMemoryClient, Result
from appscaler.manager import Manager, ManagerOptions, main, parse_args
from appscaler.types import AppScaler, AppScalerSpec, NamespacedName


def _failing():
    raise RuntimeError("down")


def _client_with(replicas=3, targets=("web",), existing=("web",)):
    client = InMemoryClient()
    client.add_appscaler(AppScaler(
        name="test-resource",
        namespace="default",
        spec=AppScalerSpec(
            replicas=replicas,
            deployments=[NamespacedName(name=t, namespace="default") for t in targets],
        ),
    ))
    for name in existing:
        client.add_deployment(Deployment(name=name, namespace="default", replicas=1))
    return client


def test_parse_args_defaults():
    opts = parse_args([])
    assert opts.metrics_bind_address == "0"
    assert opts.health_probe_bind_address == ":8081"
    assert opts.leader_elect is False
    assert opts.metrics_secure is True
    assert opts.enable_http2 is False
    assert opts.development is True


def test_parse_args_flags():
    opts = parse_args([
        "--metrics-bind-address=:8443",
        "-health-probe-bind-address", ":9090",
        "-leader-elect",
        "--metrics-secure=false",
        "--enable-http2=true",
    ])
    assert opts.metrics_bind_address == ":8443"
    assert opts.health_probe_bind_address == ":9090"
    assert opts.leader_elect is True
    assert opts.metrics_secure is False
    assert opts.enable_http2 is True


@pytest.mark.parametrize("argv", [["--metrics-secure=maybe"], ["--unknown-flag"]])
def test_parse_args_rejects_bad_flags(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)


def test_logging_level_rejects_unknown():
    with pytest.raises(ValueError):
        ManagerOptions(log_level="chatty").logging_level()


def test_health_checks():
    manager = Manager(InMemoryClient())
    assert manager.healthz() is True
    manager.add_healthz_check("ping", lambda: None)
    assert manager.healthz() is True
    manager.add_readyz_check("broken", _failing)
    assert manager.readyz() is False
    assert manager.healthz() is True


def test_duplicate_check_name_rejected():
    manager = Manager(InMemoryClient())
    manager.add_healthz_check("healthz", lambda: None)
    with pytest.raises(ValueError):
        manager.add_healthz_check("healthz", lambda: None)


def test_run_once_scales_deployments():
    client = _client_with(replicas=4, targets=("web", "api"), existing=("web", "api"))
    results = Manager(client).run_once()
    key = NamespacedName(name="test-resource", namespace="default")
    assert results == {key: Result(requeue_after=REQUEUE_AFTER)}
    for name in ("web", "api"):
        assert client.get_deployment(NamespacedName(name, "default")).replicas == 4


def test_run_once_requeues_on_error():
    client = _client_with(targets=("missing",), existing=())
    results = Manager(client).run_once()
    key = NamespacedName(name="test-resource", namespace="default")
    assert results[key].requeue is True


def test_run_once_without_scalers():
    assert Manager(InMemoryClient()).run_once() == {}


def test_start_returns_when_already_stopped():
    client = _client_with(replicas=5)
    manager = Manager(client, ManagerOptions(health_probe_bind_address="0"))
    stop = threading.Event()
    stop.set()
    manager.start(stop)
    assert client.get_deployment(NamespacedName("web", "default")).replicas == 1


def test_start_serves_probes_and_reconciles():
    client = _client_with(replicas=6)
    manager = Manager(client, ManagerOptions(
        health_probe_bind_address="127.0.0.1:0", poll_interval=0.02,
    ))
    manager.add_healthz_check("healthz", lambda: None)
    manager.add_readyz_check("broken", _failing)
    stop = threading.Event()
    thread = threading.Thread(target=manager.start, args=(stop,), daemon=True)
    thread.start()
    try:
        deadline = time.monotonic() + 5
        while manager.probe_address is None and time.monotonic() < deadline:
            time.sleep(0.01)
        host, port = manager.probe_address
        with urllib.request.urlopen(f"http://{host}:{port}/healthz", timeout=5) as resp:
            assert resp.status == HTTPStatus.OK
        with pytest.raises(HTTPError) as info:
            urllib.request.urlopen(f"http://{host}:{port}/readyz", timeout=5)
        assert info.value.code == HTTPStatus.INTERNAL_SERVER_ERROR
        info.value.close()

        key = NamespacedName("web", "default")
        while client.get_deployment(key).replicas != 6 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert client.get_deployment(key).replicas == 6
    finally:
        stop.set()
        thread.join(timeout=5)
    assert not thread.is_alive()
    assert manager.probe_address is None


def test_start_rejects_bad_bind_address():
    manager = Manager(InMemoryClient(), ManagerOptions(health_probe_bind_address="nowhere"))
    with pytest.raises(ValueError):
        manager.start(threading.Event())


def test_main_fails_on_bad_bind_address():
    assert main(["--health-probe-bind-address=nowhere"]) == 1