"""Actionable error catalog for helmactions."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "app_not_found": {
        "what": "Application not found: {app_id}",
        "next": "Check the application id and the configured project.",
    },
    "cluster_not_found": {
        "what": "Cluster `{cluster_id}` owning application {app_id} was not found.",
        "next": "Verify the application's project id and that the cluster still exists.",
    },
    "invalid_external_id": {
        "what": "Invalid external id: {external_id}",
        "next": "Use the form `catalog://?catalog=<catalog>&template=<template>&version=<version>`.",
    },
    "template_version_not_found": {
        "what": "Template version not found: {version_id}",
        "next": "Refresh the catalog or pick a version that is still published.",
    },
    "tool_not_found": {
        "what": "Required command not found: {command}",
        "next": "Install it or point the matching `*_bin` setting at the executable.",
    },
    "tool_failed": {
        "what": "Command failed ({returncode}): {command}",
        "next": "Inspect the command output above, fix the release and retry the action.",
    },
    "backend_not_ready": {
        "what": "Transient backend on port {port} did not become ready.",
        "next": "Check the tiller output above and the cluster credentials, then retry.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
