"""Chart resolution and staging for helmactions."""

import base64
import binascii
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Mapping
from urllib.parse import parse_qs, urlparse

from helmactions.constants import CHART_DIR_PREFIX, DIR_MODE
from helmactions.errors import ActionLookupError, ProvisioningError
from helmactions.errors_catalog import actionable_error


def parse_external_id(external_id: str) -> str:
    """Return the template version id encoded in a catalog external id.

    ``catalog://?catalog=library&template=wordpress&version=1.0.0`` maps to
    ``library-wordpress-1.0.0``.
    """
    parsed = urlparse(external_id or "")
    if parsed.scheme != "catalog":
        raise ActionLookupError(actionable_error("invalid_external_id", external_id=str(external_id)))

    query = parse_qs(parsed.query)
    parts = []
    for key in ("catalog", "template", "version"):
        values = query.get(key)
        if not values or not values[0]:
            raise ActionLookupError(actionable_error("invalid_external_id", external_id=external_id))
        parts.append(values[0])

    return "-".join(parts)


class ChartService:
    """Fetches template versions and writes their files to disk."""

    def __init__(self, template_lookup, filesystem_service, logger):
        self.template_lookup = template_lookup
        self.filesystem_service = filesystem_service
        self.logger = logger

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def materialize(self, template_version_id: str, workspace_root: str) -> str:
        bundle = self.template_lookup.get_template_version(template_version_id)
        if bundle is None or not bundle.files:
            raise ActionLookupError(
                actionable_error("template_version_not_found", version_id=template_version_id)
            )

        try:
            chart_root = tempfile.mkdtemp(prefix=CHART_DIR_PREFIX, dir=workspace_root)
        except OSError as exc:
            raise ProvisioningError(f"Could not create chart directory: {exc}") from exc
        self.filesystem_service.set_permissions(chart_root, DIR_MODE)

        self.write_files(bundle.files, chart_root)
        self.logger.info("Staged %s files for %s", len(bundle.files), bundle.version_id)
        return self.chart_directory(bundle.files, chart_root)

    def write_files(self, files: Mapping[str, str], chart_root: str):
        base = Path(chart_root).resolve()

        for name, content in files.items():
            normalized_name = name.replace("\\", "/")
            target_path = (base / normalized_name).resolve()

            if PurePosixPath(normalized_name).is_absolute() or not self.is_within_dir(base, target_path):
                raise ProvisioningError(f"Unsafe chart file path detected: `{name}`.")

            data = self.decode_content(name, content)
            try:
                target_path.parent.mkdir(parents=True, exist_ok=True)
                with open(target_path, "wb") as file_obj:
                    file_obj.write(data)
            except OSError as exc:
                raise ProvisioningError(f"Could not write chart file `{name}`: {exc}") from exc

    @staticmethod
    def decode_content(name: str, content: str) -> bytes:
        try:
            return base64.b64decode(content or "", validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ProvisioningError(f"Chart file `{name}` is not valid base64: {exc}") from exc

    @staticmethod
    def chart_directory(files: Mapping[str, str], chart_root: str) -> str:
        top_levels = set()
        for name in files:
            parts = PurePosixPath(name.replace("\\", "/")).parts
            top_levels.add(parts[0] if len(parts) > 1 else None)

        if len(top_levels) == 1 and None not in top_levels:
            return os.path.join(chart_root, top_levels.pop())
        return chart_root
