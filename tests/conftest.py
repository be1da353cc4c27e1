"""Shared fixtures: in-memory stack manifests, registries, and spec documents."""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import pytest
import yaml

VITE_TARGET = "vite-react"
NEXT_TARGET = "next-app"

_VITE_MANIFEST: dict[str, Any] = {
    "id": VITE_TARGET,
    "presetVersion": 3,
    "displayName": "Vite + React",
    "effectsPolicy": {
        "allowedWriteGlobs": [".ai/**", ".gitignore", "apps/web/**", "docs/**", "README.md"],
        "deniedWriteGlobs": ["**/.env", "**/.env.*"],
    },
    "commands": {
        "allowPrefixes": ["pnpm", "npx", "echo"],
        "denySubstrings": ["rm -rf", "curl "],
    },
    "semantics": {
        "routing": {
            "kind": "vite_react_router",
            "routesFile": "apps/web/src/routes.generated.tsx",
        }
    },
    "macros": {
        "stack.scaffold": {
            "args": {"app": "path"},
            "expandsTo": [{"kind": "run", "cmd": "pnpm create vite ${app} --template react-ts"}],
        },
        "stack.tailwind_v4_vite": {
            "args": {"app": "path"},
            "expandsTo": [{"kind": "run", "cmd": "pnpm -C ${app} add tailwindcss @tailwindcss/vite"}],
        },
        "stack.shadcn_init": {
            "args": {"app": "path"},
            "expandsTo": [{"kind": "run", "cmd": "pnpm -C ${app} dlx shadcn@latest init -y"}],
        },
        "stack.shadcn_add": {
            "args": {"app": "path", "components": "string[]"},
            "expandsTo": [
                {"kind": "run", "cmd": "pnpm -C ${app} dlx shadcn@latest add ${components...}"}
            ],
        },
        "stack.set_routes": {
            "args": {"app": "path", "routes": "json"},
            "expandsTo": [
                {
                    "kind": "writeTemplate",
                    "path": "${app}/src/routes.generated.tsx",
                    "template": "routes.generated.tsx.tpl",
                }
            ],
        },
        "docs.page": {
            "args": {"title": "string", "body": "string"},
            "expandsTo": [
                {"kind": "writeFile", "path": "docs/${title}.md", "content": "# ${title}\n\n${body}\n"}
            ],
        },
    },
}

_NEXT_MANIFEST: dict[str, Any] = {
    "id": NEXT_TARGET,
    "presetVersion": 1,
    "effectsPolicy": {"allowedWriteGlobs": [".ai/**", ".gitignore", "apps/web/**"]},
    "commands": {"allowPrefixes": ["pnpm"]},
    "semantics": {"routing": {"kind": "nextjs_app_router"}},
    "macros": {
        "stack.scaffold": {
            "args": {"app": "path"},
            "expandsTo": [{"kind": "run", "cmd": "pnpm create next-app ${app}"}],
        },
        "stack.add_route": {
            "args": {"app": "path", "ROUTE_DIR": "string", "PAGE": "string"},
            "expandsTo": [
                {
                    "kind": "writeTemplate",
                    "path": "${app}/app${ROUTE_DIR}/page.tsx",
                    "template": "page.tsx.tpl",
                    "vars": {"PAGE": "${PAGE}"},
                }
            ],
        },
    },
}


@pytest.fixture
def vite_manifest() -> dict[str, Any]:
    return copy.deepcopy(_VITE_MANIFEST)


@pytest.fixture
def next_manifest() -> dict[str, Any]:
    return copy.deepcopy(_NEXT_MANIFEST)


@pytest.fixture
def registry(vite_manifest: dict[str, Any], next_manifest: dict[str, Any]) -> dict[str, Any]:
    return {VITE_TARGET: vite_manifest, NEXT_TARGET: next_manifest}


@pytest.fixture
def current_spec() -> Callable[..., dict[str, Any]]:
    """Factory for a minimal valid ``webspec/v0.2`` document; keyword args override keys."""

    def build(**overrides: Any) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "lang": "webspec/v0.2",
            "target": VITE_TARGET,
            "project": {"name": "demo"},
            "intent": {
                "summary": "Marketing site",
                "invariants": [{"id": "INV-DOCS", "text": "Docs describe the site"}],
            },
            "steps": [
                {
                    "id": "write_docs",
                    "claims": ["INV-DOCS"],
                    "actions": [
                        {"writeFile": {"path": "docs/overview.md", "content": "# Overview\n"}}
                    ],
                    "ensures": [{"exists": "docs/overview.md"}],
                }
            ],
        }
        spec.update(overrides)
        return spec

    return build


@pytest.fixture
def legacy_spec() -> Callable[..., dict[str, Any]]:
    """Factory for a ``webspec/v0.1`` document with no explicit steps."""

    def build(**overrides: Any) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "target": VITE_TARGET,
            "project": {"name": "demo"},
            "ui": {"shadcn": {"components": ["button", "card"]}},
            "routes": [{"path": "/", "page": "Home"}, {"path": "/about", "page": "About"}],
            "quality": {"gates": ["pnpm -C apps/web build"]},
        }
        spec.update(overrides)
        return spec

    return build


def dump_spec(spec: dict[str, Any]) -> str:
    return yaml.safe_dump(spec, sort_keys=False)


@pytest.fixture
def to_yaml() -> Callable[[dict[str, Any]], str]:
    return dump_spec
