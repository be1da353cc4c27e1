"""Stack registry and template loading from a ``stacks/`` directory.

Layout::

    stacks/<name>/manifest.json
    stacks/<name>/templates/<relative template path>
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

from webspec.constants import STACK_MANIFEST_FILENAME, STACK_TEMPLATES_DIR
from webspec.domain.manifest import STACK_ROOT_KEY, StackManifest, parse_manifest
from webspec.domain.validation import ShapeValidationError
from webspec.observability.logging import get_logger
from webspec.utils.fs import is_within

logger = get_logger(__name__)

TemplateLoader = Callable[[StackManifest, str], str]


class RegistryError(RuntimeError):
    """Raised when the stacks directory itself cannot be read."""


class TemplateNotFoundError(RegistryError):
    """Raised when a template cannot be resolved for a stack."""


def load_registry(stacks_dir: Path | str) -> dict[str, dict[str, object]]:
    """
    Scan ``stacks_dir`` for ``*/manifest.json`` and return raw manifests keyed by id.

    Folders without a valid manifest are skipped and logged. Each returned manifest
    records its stack directory so templates can be resolved later.
    """

    root = Path(stacks_dir)
    if not root.is_dir():
        raise RegistryError(f"stacks directory not found: {root}")

    registry: dict[str, dict[str, object]] = {}
    for entry in sorted(root.iterdir(), key=lambda item: item.name):
        if not entry.is_dir():
            continue
        manifest_path = entry / STACK_MANIFEST_FILENAME
        if not manifest_path.is_file():
            continue
        try:
            payload = json.loads(manifest_path.read_text(encoding="utf-8"))
            manifest = parse_manifest(payload)
        except (OSError, json.JSONDecodeError, ShapeValidationError) as exc:
            logger.warning("stack_manifest_skipped", stack_dir=str(entry), reason=str(exc))
            continue
        if manifest.id in registry:
            logger.warning("stack_manifest_duplicate_id", stack_dir=str(entry), target=manifest.id)
            continue
        registry[manifest.id] = {**payload, STACK_ROOT_KEY: str(entry.resolve())}

    logger.debug("stack_registry_loaded", stacks_dir=str(root), targets=sorted(registry))
    return registry


def load_template(manifest: StackManifest, template: str) -> str:
    """Read ``<stack root>/templates/<template>``; the path may not leave that directory."""

    if manifest.root is None:
        raise TemplateNotFoundError(
            f"stack {manifest.id!r} has no root directory; cannot load template {template!r}"
        )
    templates_dir = manifest.root / STACK_TEMPLATES_DIR
    candidate = templates_dir / template
    if Path(template).is_absolute() or not is_within(candidate, templates_dir):
        raise TemplateNotFoundError(f"template path escapes {templates_dir}: {template}")
    try:
        return candidate.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise TemplateNotFoundError(f"template not found for {manifest.id!r}: {template}") from exc


__all__ = [
    "RegistryError",
    "TemplateLoader",
    "TemplateNotFoundError",
    "load_registry",
    "load_template",
]
