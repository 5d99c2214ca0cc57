"""Transient Tiller backend supervision for helmactions."""

import subprocess
import time
from typing import List, Optional

import requests

from helmactions.constants import (
    LOOPBACK_HOST,
    READINESS_INTERVAL,
    READINESS_RETRIES,
    STOP_GRACE_SECONDS,
    TILLER_BIN,
    TILLER_HISTORY_MAX,
)
from helmactions.errors import ProvisioningError
from helmactions.errors_catalog import actionable_error


class TillerHandle:
    """Scoped lifetime of one running backend process.

    Leaving the ``with`` block stops the process. ``stop`` only acts on its
    first call.
    """

    def __init__(
        self,
        process,
        main_port: int,
        health_port: int,
        logger,
        requests_module=requests,
        readiness_retries: int = READINESS_RETRIES,
        readiness_interval: float = READINESS_INTERVAL,
        stop_grace_seconds: float = STOP_GRACE_SECONDS,
    ):
        self.process = process
        self.main_port = main_port
        self.health_port = health_port
        self.logger = logger
        self.requests = requests_module
        self.readiness_retries = readiness_retries
        self.readiness_interval = readiness_interval
        self.stop_grace_seconds = stop_grace_seconds
        self.stop_count = 0

    @property
    def address(self) -> str:
        return f"{LOOPBACK_HOST}:{self.main_port}"

    @property
    def readiness_url(self) -> str:
        return f"http://{LOOPBACK_HOST}:{self.health_port}/readiness"

    @property
    def stopped(self) -> bool:
        return self.stop_count > 0

    def wait_until_ready(self):
        attempts = max(1, self.readiness_retries)
        for attempt in range(1, attempts + 1):
            returncode = self.process.poll()
            if returncode is not None:
                raise ProvisioningError(
                    f"Transient backend exited with code {returncode} before becoming ready."
                )

            try:
                response = self.requests.get(self.readiness_url, timeout=self.readiness_interval or 1.0)
                if response.status_code == 200:
                    self.logger.debug("Transient backend is ready on %s", self.address)
                    return
            except self.requests.RequestException as exc:
                self.logger.debug("Backend readiness probe failed: %s", exc)

            if attempt < attempts:
                time.sleep(self.readiness_interval)

        raise ProvisioningError(actionable_error("backend_not_ready", port=str(self.main_port)))

    def stop(self):
        if self.stopped:
            return
        self.stop_count += 1

        if self.process.poll() is not None:
            self.logger.debug("Transient backend already exited with code %s", self.process.returncode)
            return

        self.logger.debug("Stopping transient backend on %s", self.address)
        self.process.terminate()
        try:
            self.process.wait(timeout=self.stop_grace_seconds)
        except subprocess.TimeoutExpired:
            self.logger.warning("Transient backend did not stop in time; killing it.")
            self.process.kill()
            self.process.wait()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False


class TillerService:
    """Starts Tiller bound to loopback ports for a single action."""

    def __init__(
        self,
        command_runner,
        logger,
        console,
        tiller_bin: str = TILLER_BIN,
        history_max: int = TILLER_HISTORY_MAX,
        requests_module=requests,
        readiness_retries: int = READINESS_RETRIES,
        readiness_interval: float = READINESS_INTERVAL,
    ):
        self.command_runner = command_runner
        self.logger = logger
        self.console = console
        self.tiller_bin = tiller_bin
        self.history_max = history_max
        self.requests = requests_module
        self.readiness_retries = readiness_retries
        self.readiness_interval = readiness_interval

    def build_command(self, main_port: int, health_port: int) -> List[str]:
        return [
            self.tiller_bin,
            "--listen",
            f"{LOOPBACK_HOST}:{main_port}",
            "--probe-listen",
            f"{LOOPBACK_HOST}:{health_port}",
        ]

    def build_env(self, namespace: str, credential_path: str, base_env: Optional[dict] = None) -> dict:
        env = dict(base_env or {})
        env.update(
            {
                "KUBECONFIG": credential_path,
                "TILLER_NAMESPACE": namespace,
                "TILLER_HISTORY_MAX": str(self.history_max),
            }
        )
        return env

    def start(
        self,
        main_port: int,
        health_port: int,
        namespace: str,
        credential_path: str,
        base_env: Optional[dict] = None,
    ) -> TillerHandle:
        self.console.print(f"[blue]Starting transient backend on port {main_port}...[/blue]")
        process = self.command_runner.spawn(
            self.build_command(main_port, health_port),
            env=self.build_env(namespace, credential_path, base_env),
        )
        self.logger.info("Transient backend started (main=%s, health=%s)", main_port, health_port)
        return TillerHandle(
            process,
            main_port=main_port,
            health_port=health_port,
            logger=self.logger,
            requests_module=self.requests,
            readiness_retries=self.readiness_retries,
            readiness_interval=self.readiness_interval,
        )
