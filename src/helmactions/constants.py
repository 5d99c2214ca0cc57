"""Shared constants for helmactions."""

HELM_BIN = "helm"
TILLER_BIN = "tiller"
HELM_HOST_ENV = "HELM_HOST"
LOOPBACK_HOST = "127.0.0.1"

WORKSPACE_PREFIX = "helm-"
CHART_DIR_PREFIX = "chart-"
KUBECONFIG_FILE = ".kubeconfig"

DIR_MODE = 0o700
FILE_MODE = 0o600

TILLER_HISTORY_MAX = 10
READINESS_RETRIES = 30
READINESS_INTERVAL = 1.0
STOP_GRACE_SECONDS = 5.0

# Environment variables passed through to the helm process.
PASSTHROUGH_ENV = ("PATH", "HOME")
