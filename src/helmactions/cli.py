import json
import logging
import os

import click
from rich.logging import RichHandler

from .constants import HELM_BIN, READINESS_INTERVAL, READINESS_RETRIES, TILLER_BIN, TILLER_HISTORY_MAX
from .core import ActionOrchestrator, console
from .errors import ActionError
from .models import ActionRequest
from .services.config_loader import ConfigLoader
from .services.management_api import ManagementApiClient


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.group()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .helmactions.yml if present.",
)
@click.option("--server-url", required=False, help="Base URL of the management API")
@click.option(
    "--token",
    required=False,
    envvar="HELMACTIONS_TOKEN",
    help="API token used for lookups, updates and kubeconfig generation.",
)
@click.option("--project", required=False, help="Project id owning the application (e.g. c-abc12:p-xyz34)")
@click.option(
    "--insecure",
    is_flag=True,
    default=None,
    help="Skip TLS verification when talking to the management API.",
)
@click.option("--helm-bin", required=False, help="Path to the helm executable (default: helm)")
@click.option("--tiller-bin", required=False, help="Path to the tiller executable (default: tiller)")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.pass_context
def main(ctx, config, server_url, token, project, insecure, helm_bin, tiller_bin, verbose, log_file):
    """Run upgrade and rollback actions on deployed catalog apps."""
    logger = logging.getLogger("helmactions")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".helmactions.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ActionError as exc:
        raise click.ClickException(str(exc)) from exc

    verify_ssl = bool(_resolve_option(None, config_values, "verify_ssl", default=True))
    if insecure:
        verify_ssl = False

    settings = {
        "server_url": _resolve_option(server_url, config_values, "server_url"),
        "token": _resolve_option(token, config_values, "token"),
        "project": _resolve_option(project, config_values, "project"),
        "verify_ssl": verify_ssl,
        "helm_bin": _resolve_option(helm_bin, config_values, "helm_bin", default=HELM_BIN),
        "tiller_bin": _resolve_option(tiller_bin, config_values, "tiller_bin", default=TILLER_BIN),
        "tiller_history_max": int(
            _resolve_option(None, config_values, "tiller_history_max", default=TILLER_HISTORY_MAX)
        ),
        "readiness_retries": int(
            _resolve_option(None, config_values, "readiness_retries", default=READINESS_RETRIES)
        ),
        "readiness_interval": float(
            _resolve_option(None, config_values, "readiness_interval", default=READINESS_INTERVAL)
        ),
        "request_timeout": float(_resolve_option(None, config_values, "request_timeout", default=30.0)),
    }
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    ctx.obj = settings


def _build_orchestrator(settings) -> ActionOrchestrator:
    if not settings["server_url"]:
        raise click.ClickException("Missing required option '--server-url' (or provide it in config).")
    if not settings["project"]:
        raise click.ClickException("Missing required option '--project' (or provide it in config).")

    client = ManagementApiClient(
        server_url=settings["server_url"],
        token=settings["token"],
        project_id=settings["project"],
        logger=logging.getLogger("helmactions"),
        verify_ssl=settings["verify_ssl"],
        timeout=settings["request_timeout"],
    )
    return ActionOrchestrator(
        app_store=client,
        cluster_lookup=client,
        template_lookup=client,
        kubeconfig_getter=client,
        helm_bin=settings["helm_bin"],
        tiller_bin=settings["tiller_bin"],
        tiller_history_max=settings["tiller_history_max"],
        readiness_retries=settings["readiness_retries"],
        readiness_interval=settings["readiness_interval"],
    )


def _run_action(settings, kind: str, app_id: str, body):
    try:
        request = ActionRequest.from_body(kind, app_id, body)
        orchestrator = _build_orchestrator(settings)
        app = orchestrator.execute(request, auth_token=settings["token"])
    except ActionError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print_json(
        json.dumps(
            {
                "id": app.id,
                "name": app.name,
                "projectId": app.project_id,
                "targetNamespace": app.install_namespace,
                "externalId": app.external_id,
            }
        )
    )


@main.command()
@click.argument("app_id")
@click.option("--external-id", required=True, help="Catalog external id of the target template version")
@click.pass_obj
def upgrade(settings, app_id, external_id):
    """Upgrade APP_ID to the template version named by --external-id."""
    _run_action(settings, "upgrade", app_id, {"externalId": external_id})


@main.command()
@click.argument("app_id")
@click.option("--revision", required=True, help="Release revision to roll back to")
@click.pass_obj
def rollback(settings, app_id, revision):
    """Roll APP_ID back to a previous release revision."""
    _run_action(settings, "rollback", app_id, {"revision": revision})


if __name__ == "__main__":
    main()
