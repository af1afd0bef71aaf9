"""Command-line entry point and the manager that runs the AppScaler reconciler."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
import time
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Sequence

from appscaler.controller import AppScalerReconciler, InMemoryClient, KubeClient, Request, Result
from appscaler.types import NamespacedName

setup_log = logging.getLogger("appscaler.setup")

LEADER_ELECTION_ID = "8e9da410.operator.wissam.com"

Check = Callable[[], object]

_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warn": logging.WARNING,
           "warning": logging.WARNING, "error": logging.ERROR, "panic": logging.CRITICAL}


@dataclass
class ManagerOptions:
    """Settings the manager runs with, mostly taken from the command line."""

    metrics_bind_address: str = "0"
    health_probe_bind_address: str = ":8081"
    leader_elect: bool = False
    metrics_secure: bool = True
    enable_http2: bool = False
    development: bool = True
    log_level: str | None = None
    leader_election_id: str = LEADER_ELECTION_ID
    poll_interval: float = 1.0
    retry_interval: float = 1.0

    def logging_level(self) -> int:
        """Return the ``logging`` level these options ask for."""
        if self.log_level is None:
            return logging.DEBUG if self.development else logging.INFO
        level = self.log_level.lower()
        if level in _LEVELS:
            return _LEVELS[level]
        if level.isdigit() and int(level) > 0:
            return logging.DEBUG
        raise ValueError(f"invalid log level {self.log_level!r}")


def _parse_bool(text: str) -> bool:
    if text in {"1", "t", "T", "true", "TRUE", "True"}:
        return True
    if text in {"0", "f", "F", "false", "FALSE", "False"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _parse_log_level(text: str) -> str:
    try:
        ManagerOptions(log_level=text).logging_level()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None
    return text


def parse_args(argv: Sequence[str] | None = None) -> ManagerOptions:
    """Parse command-line flags into ManagerOptions; exits on bad flags."""
    parser = argparse.ArgumentParser(prog="appscaler", allow_abbrev=False,
                                     description="Run the AppScaler controller manager.")

    def flag(name: str, help_text: str, **kwargs) -> None:
        parser.add_argument(f"--{name}", f"-{name}", dest=name.replace("-", "_"),
                            help=help_text, **kwargs)

    def bool_flag(name: str, default: bool, help_text: str) -> None:
        flag(name, help_text, nargs="?", const=True, default=default,
             type=_parse_bool, metavar="BOOL")

    flag("metrics-bind-address", "The address the metrics endpoint binds to; 0 disables it.",
         default="0")
    flag("health-probe-bind-address", "The address the probe endpoint binds to.",
         default=":8081")
    bool_flag("leader-elect", False, "Enable leader election for controller manager.")
    bool_flag("metrics-secure", True, "Serve the metrics endpoint via HTTPS.")
    bool_flag("enable-http2", False, "Enable HTTP/2 for the metrics and webhook servers.")
    bool_flag("zap-devel", True, "Development mode defaults: debug log level.")
    flag("zap-log-level", "Log level: debug, info, warn, error, panic or a positive verbosity.",
         default=None, type=_parse_log_level)
    ns = parser.parse_args(argv)
    return ManagerOptions(
        metrics_bind_address=ns.metrics_bind_address,
        health_probe_bind_address=ns.health_probe_bind_address,
        leader_elect=ns.leader_elect,
        metrics_secure=ns.metrics_secure,
        enable_http2=ns.enable_http2,
        development=ns.zap_devel,
        log_level=ns.zap_log_level,
    )


def _parse_bind_address(address: str) -> tuple[str, int] | None:
    """Split ``host:port``; ``"0"`` or an empty address disables the server."""
    if address in ("", "0"):
        return None
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit() or int(port) > 65535:
        raise ValueError(f"invalid bind address {address!r}")
    return host.strip("[]"), int(port)


def _ping() -> bool:
    return True


class Manager:
    """Runs the reconciler over every AppScaler and serves health probes."""

    def __init__(self, client: KubeClient, options: ManagerOptions | None = None) -> None:
        self.client = client
        self.options = options or ManagerOptions()
        self.reconciler = AppScalerReconciler(client=client)
        self.probe_address: tuple[str, int] | None = None
        self._checks: dict[str, dict[str, Check]] = {"healthz": {}, "readyz": {}}

    def _add_check(self, kind: str, name: str, check: Check) -> None:
        if name in self._checks[kind]:
            raise ValueError(f"checker {name} already exists")
        self._checks[kind][name] = check

    def _run_checks(self, kind: str) -> bool:
        healthy = True
        for name, check in self._checks[kind].items():
            try:
                check()
            except Exception:
                setup_log.warning("%s check %s failed", kind, name, exc_info=True)
                healthy = False
        return healthy

    def add_healthz_check(self, name: str, check: Check) -> None:
        """Register a liveness check; a check fails by raising."""
        self._add_check("healthz", name, check)

    def add_readyz_check(self, name: str, check: Check) -> None:
        """Register a readiness check; a check fails by raising."""
        self._add_check("readyz", name, check)

    def healthz(self) -> bool:
        """Return whether every liveness check passes."""
        return self._run_checks("healthz")

    def readyz(self) -> bool:
        """Return whether every readiness check passes."""
        return self._run_checks("readyz")

    def _reconcile_key(self, key: NamespacedName) -> Result:
        try:
            return self.reconciler.reconcile(Request(name=key.name, namespace=key.namespace))
        except Exception:
            setup_log.exception("Reconciler error for %s", key)
            return Result(requeue=True)

    def run_once(self) -> dict[NamespacedName, Result]:
        """Reconcile every AppScaler once; a failed reconcile yields a requeue."""
        return {s.key: self._reconcile_key(s.key) for s in self.client.list_appscalers()}

    def _serve_probes(self, address: tuple[str, int]) -> ThreadingHTTPServer:
        probes = {"/healthz": self.healthz, "/readyz": self.readyz}

        class ProbeHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:  # noqa: N802
                probe = probes.get(self.path.split("?", 1)[0].rstrip("/"))
                if probe is None:
                    self.send_error(HTTPStatus.NOT_FOUND)
                    return
                ok = probe()
                body = b"ok" if ok else b"check failed"
                self.send_response(HTTPStatus.OK if ok else HTTPStatus.INTERNAL_SERVER_ERROR)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format: str, *args) -> None:  # noqa: A002
                setup_log.debug("probe: " + format, *args)

        server = ThreadingHTTPServer(address, ProbeHandler)
        self.probe_address = server.server_address[:2]
        threading.Thread(target=server.serve_forever, name="probe-server", daemon=True).start()
        return server

    def start(self, stop_event: threading.Event | None = None) -> None:
        """Run until ``stop_event`` is set, reconciling each AppScaler when due."""
        stop_event = stop_event or threading.Event()
        probe_address = _parse_bind_address(self.options.health_probe_bind_address)
        server = self._serve_probes(probe_address) if probe_address else None
        due: dict[NamespacedName, float] = {}
        try:
            while not stop_event.is_set():
                now = time.monotonic()
                keys = {s.key for s in self.client.list_appscalers()}
                due = {k: t for k, t in due.items() if k in keys}
                for key in keys:
                    if due.setdefault(key, now) > now:
                        continue
                    result = self._reconcile_key(key)
                    if result.requeue_after > 0:
                        due[key] = now + result.requeue_after
                    elif result.requeue:
                        due[key] = now + self.options.retry_interval
                    else:
                        del due[key]
                stop_event.wait(self.options.poll_interval)
        finally:
            if server is not None:
                server.shutdown()
                server.server_close()
                self.probe_address = None


def main(argv: Sequence[str] | None = None) -> int:
    """Start the manager and run it until interrupted."""
    options = parse_args(argv)
    logging.basicConfig(level=options.logging_level(),
                        format="%(asctime)s %(levelname)s %(name)s %(message)s")

    manager = Manager(InMemoryClient(), options)
    manager.add_healthz_check("healthz", _ping)
    manager.add_readyz_check("readyz", _ping)

    stop_event = threading.Event()
    previous = {sig: signal.signal(sig, lambda signum, frame: stop_event.set())
                for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        setup_log.info("starting manager")
        manager.start(stop_event)
    except (OSError, ValueError):
        setup_log.exception("problem running manager")
        return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0