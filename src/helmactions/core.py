import logging
import os
from contextlib import ExitStack
from typing import Any, Dict, List, Optional, Tuple

import requests
from rich.console import Console

from .constants import (
    HELM_BIN,
    HELM_HOST_ENV,
    PASSTHROUGH_ENV,
    READINESS_INTERVAL,
    READINESS_RETRIES,
    TILLER_BIN,
    TILLER_HISTORY_MAX,
)
from .errors import ActionLookupError
from .errors_catalog import actionable_error
from .models import ActionKind, ActionRequest, AppResource, Cluster
from .services.charts import ChartService, parse_external_id
from .services.command_runner import CommandRunner
from .services.credentials import CredentialService
from .services.filesystem import FileSystemService
from .services.ports import PortAllocator
from .services.tiller import TillerHandle, TillerService

console = Console()
logger = logging.getLogger("helmactions")


class ActionOrchestrator:
    """Runs upgrade and rollback actions for deployed catalog apps.

    Every call to ``execute`` owns its workspace, ports and backend process.
    They are released in reverse order of acquisition when the call returns
    or raises, so the backend is always stopped before its kubeconfig is
    removed.
    """

    def __init__(
        self,
        app_store,
        cluster_lookup,
        template_lookup,
        kubeconfig_getter,
        helm_bin: str = HELM_BIN,
        tiller_bin: str = TILLER_BIN,
        tiller_history_max: int = TILLER_HISTORY_MAX,
        readiness_retries: int = READINESS_RETRIES,
        readiness_interval: float = READINESS_INTERVAL,
        temp_root: Optional[str] = None,
        command_runner: Optional[CommandRunner] = None,
        port_allocator: Optional[PortAllocator] = None,
        requests_module=requests,
    ):
        self.app_store = app_store
        self.cluster_lookup = cluster_lookup
        self.helm_bin = helm_bin

        self.filesystem_service = FileSystemService(logger=logger, console=console, temp_root=temp_root)
        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.port_allocator = port_allocator or PortAllocator()
        self.credential_service = CredentialService(kubeconfig_getter=kubeconfig_getter, logger=logger)
        self.chart_service = ChartService(
            template_lookup=template_lookup,
            filesystem_service=self.filesystem_service,
            logger=logger,
        )
        self.tiller_service = TillerService(
            command_runner=self.command_runner,
            logger=logger,
            console=console,
            tiller_bin=tiller_bin,
            history_max=tiller_history_max,
            requests_module=requests_module,
            readiness_retries=readiness_retries,
            readiness_interval=readiness_interval,
        )

    def _run_step(self, name: str, callback, *args, **kwargs):
        logger.debug("Step started: %s", name)
        try:
            result = callback(*args, **kwargs)
        except Exception as exc:
            logger.error("Step '%s' failed: %s", name, exc)
            raise
        logger.debug("Step finished: %s", name)
        return result

    @staticmethod
    def _passthrough_env() -> Dict[str, str]:
        return {key: os.environ[key] for key in PASSTHROUGH_ENV if key in os.environ}

    def resolve_target(self, resource_id: str) -> Tuple[AppResource, Cluster]:
        app = self.app_store.get_app(resource_id)
        if app is None:
            raise ActionLookupError(actionable_error("app_not_found", app_id=resource_id))

        cluster = self.cluster_lookup.get_cluster(app.cluster_id)
        if cluster is None:
            raise ActionLookupError(
                actionable_error("cluster_not_found", cluster_id=app.cluster_id, app_id=resource_id)
            )
        return app, cluster

    def build_helm_env(self, tiller: TillerHandle, credential_path: str) -> Dict[str, str]:
        env = self._passthrough_env()
        env["KUBECONFIG"] = credential_path
        env[HELM_HOST_ENV] = tiller.address
        return env

    def build_upgrade_command(self, release_name: str, chart_dir: str) -> List[str]:
        return [self.helm_bin, "upgrade", "--namespace", release_name, release_name, chart_dir]

    def build_rollback_command(self, release_name: str, revision: str) -> List[str]:
        return [self.helm_bin, "rollback", release_name, revision]

    def update_state(self, app_id: str, data: Dict[str, Any]) -> AppResource:
        logger.info("Updating application %s with %s", app_id, data)
        return self.app_store.update_app(app_id, data)

    def execute(self, request: ActionRequest, auth_token: Optional[str] = None) -> AppResource:
        logger.info("Running %s on application %s", request.kind.value, request.resource_id)
        app, cluster = self._run_step("resolve_target", self.resolve_target, request.resource_id)

        with ExitStack() as stack:
            workspace = stack.enter_context(self.filesystem_service.scoped_workspace())
            credential_path = self._run_step(
                "provision_credentials",
                self.credential_service.provision,
                cluster,
                auth_token,
                workspace,
            )
            main_port, health_port = self._run_step("allocate_ports", self.port_allocator.allocate)
            tiller = stack.enter_context(
                self._run_step(
                    "start_backend",
                    self.tiller_service.start,
                    main_port,
                    health_port,
                    app.install_namespace,
                    credential_path,
                    base_env=self._passthrough_env(),
                )
            )

            if request.kind is ActionKind.UPGRADE:
                result = self._upgrade(request, app, workspace, tiller, credential_path)
            else:
                result = self._rollback(request, app, tiller, credential_path)

        console.print(f"[green]{request.kind.value.capitalize()} of {app.name} finished.[/green]")
        return result

    def _upgrade(
        self,
        request: ActionRequest,
        app: AppResource,
        workspace: str,
        tiller: TillerHandle,
        credential_path: str,
    ) -> AppResource:
        # Written before helm runs and not reverted if it fails.
        update_data = {"externalId": request.external_id}
        self._run_step("record_external_id", self.update_state, request.resource_id, update_data)

        version_id = self._run_step("parse_external_id", parse_external_id, request.external_id)
        chart_dir = self._run_step(
            "materialize_chart",
            self.chart_service.materialize,
            version_id,
            workspace,
        )

        self._run_step("wait_for_backend", tiller.wait_until_ready)
        console.print(f"[blue]Upgrading release {app.name} to {version_id}...[/blue]")
        self._run_step(
            "helm_upgrade",
            self.command_runner.run,
            self.build_upgrade_command(app.name, chart_dir),
            env=self.build_helm_env(tiller, credential_path),
        )

        return self._run_step("confirm_external_id", self.update_state, request.resource_id, update_data)

    def _rollback(
        self,
        request: ActionRequest,
        app: AppResource,
        tiller: TillerHandle,
        credential_path: str,
    ) -> AppResource:
        self._run_step("wait_for_backend", tiller.wait_until_ready)
        console.print(f"[blue]Rolling back release {app.name} to revision {request.revision}...[/blue]")
        self._run_step(
            "helm_rollback",
            self.command_runner.run,
            self.build_rollback_command(app.name, request.revision),
            env=self.build_helm_env(tiller, credential_path),
        )

        # Rewriting the name forces a resync of the app.
        return self._run_step(
            "mark_resync",
            self.update_state,
            request.resource_id,
            {"name": request.resource_id},
        )
