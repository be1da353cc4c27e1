"""Stable constants shared across the compiler and runtime."""

from __future__ import annotations

from typing import Final

# Document language tags.
SPEC_LANG_V1: Final[str] = "webspec/v0.1"
SPEC_LANG_V2: Final[str] = "webspec/v0.2"
SPEC_LANGS: Final[tuple[str, ...]] = (SPEC_LANG_V1, SPEC_LANG_V2)
PLAN_LANG: Final[str] = "webspec/plan-v0.1"

# Schema version for webspec.toml.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Defaults used when a spec leaves them out.
DEFAULT_AI_DIR: Final[str] = ".ai"
DEFAULT_FUZZY_THRESHOLD: Final[float] = 0.8

# Legacy (v0.1) synthesized program layout.
LEGACY_APP_DIR: Final[str] = "apps/web"
LEGACY_APP_MANIFEST: Final[str] = "apps/web/package.json"
LEGACY_UI_PROBE_CMD: Final[str] = "pnpm -C apps/web --version"
VERIFY_STEP_ID: Final[str] = "verify_docs_artifacts"

# Well-known macro names looked up by the legacy program.
MACRO_SCAFFOLD: Final[str] = "stack.scaffold"
MACRO_TAILWIND: Final[str] = "stack.tailwind_v4_vite"
MACRO_SHADCN_INIT: Final[str] = "stack.shadcn_init"
MACRO_SHADCN_ADD: Final[str] = "stack.shadcn_add"
MACRO_SET_ROUTES: Final[str] = "stack.set_routes"
MACRO_ADD_ROUTE: Final[str] = "stack.add_route"

# Routing styles understood by ``route.exists``.
ROUTING_NEXT_APP_ROUTER: Final[str] = "nextjs_app_router"
ROUTING_VITE_REACT_ROUTER: Final[str] = "vite_react_router"
DEFAULT_ROUTES_FILE: Final[str] = "apps/web/src/routes.generated.tsx"

# Registry layout.
STACK_MANIFEST_FILENAME: Final[str] = "manifest.json"
STACK_TEMPLATES_DIR: Final[str] = "templates"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_AI_DIR",
    "DEFAULT_FUZZY_THRESHOLD",
    "DEFAULT_ROUTES_FILE",
    "LEGACY_APP_DIR",
    "LEGACY_APP_MANIFEST",
    "LEGACY_UI_PROBE_CMD",
    "MACRO_ADD_ROUTE",
    "MACRO_SCAFFOLD",
    "MACRO_SET_ROUTES",
    "MACRO_SHADCN_ADD",
    "MACRO_SHADCN_INIT",
    "MACRO_TAILWIND",
    "PLAN_LANG",
    "ROUTING_NEXT_APP_ROUTER",
    "ROUTING_VITE_REACT_ROUTER",
    "SPEC_LANGS",
    "SPEC_LANG_V1",
    "SPEC_LANG_V2",
    "STACK_MANIFEST_FILENAME",
    "STACK_TEMPLATES_DIR",
    "VERIFY_STEP_ID",
]
