"""
webspec — unit tests for macro expansion

File: tests/unit/compiler/test_macros.py

Purpose
- Validate placeholder rendering, argument resolution, and macro expansion into ops.
"""

from __future__ import annotations

from typing import Any

import pytest

from webspec.compiler.macros import expand_macro, macro_variables, render, stringify
from webspec.domain.manifest import parse_manifest
from webspec.domain.plan import RunOp, WriteFileOp, WriteTemplateOp


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ""),
        (True, "true"),
        (False, "false"),
        ("text", "text"),
        (3, "3"),
        (["a", "b"], "a,b"),
        ({"k": [1, 2]}, '{"k":[1,2]}'),
    ],
)
def test_stringify(value: object, expected: str) -> None:
    assert stringify(value) == expected


def test_render_spread_and_single_placeholders() -> None:
    variables = {"app": "apps/web", "components": ["button", "card"]}

    assert render("add ${components...}", variables) == "add button card"
    assert render("add ${components}", variables) == "add button,card"
    assert render("${app}/src", variables) == "apps/web/src"
    assert render("${missing}|${missing...}", variables) == "|"


def test_render_spread_of_scalar_is_plain_value() -> None:
    assert render("${app...}", {"app": "web"}) == "web"


def test_macro_variables_reports_missing_and_serialises_json(vite_manifest: dict[str, Any]) -> None:
    manifest = parse_manifest(vite_manifest)
    macro = manifest.macro("stack.set_routes")
    assert macro is not None

    variables, diagnostics = macro_variables(
        "stack.set_routes", {"routes": [{"path": "/"}]}, macro
    )

    assert variables["routes"] == '[{"path":"/"}]'
    assert variables["app"] == ""
    assert [item.code for item in diagnostics] == ["E201_MISSING_MACRO_ARG"]
    assert diagnostics[0].path == "macros.stack.set_routes.args.app"


def test_macro_variables_quiet_mode(vite_manifest: dict[str, Any]) -> None:
    manifest = parse_manifest(vite_manifest)
    macro = manifest.macro("stack.scaffold")
    assert macro is not None

    variables, diagnostics = macro_variables("stack.scaffold", {}, macro, report_missing=False)

    assert variables == {"app": ""}
    assert diagnostics == []


def test_expand_run_macro(vite_manifest: dict[str, Any]) -> None:
    manifest = parse_manifest(vite_manifest)
    expansion = expand_macro(
        "stack.shadcn_add", {"app": "apps/web", "components": ["button", "dialog"]}, manifest
    )

    assert expansion.diagnostics == ()
    assert expansion.ops == (RunOp(cmd="pnpm -C apps/web dlx shadcn@latest add button dialog"),)


def test_expand_write_file_macro_renders_path_and_content(vite_manifest: dict[str, Any]) -> None:
    manifest = parse_manifest(vite_manifest)
    expansion = expand_macro("docs.page", {"title": "faq", "body": "Q&A"}, manifest)

    assert expansion.ops == (WriteFileOp(path="docs/faq.md", content="# faq\n\nQ&A\n"),)


def test_template_vars_replace_declared_vars(next_manifest: dict[str, Any]) -> None:
    manifest = parse_manifest(next_manifest)
    args = {"app": "apps/web", "ROUTE_DIR": "/pricing", "PAGE": "Pricing"}

    rendered = expand_macro("stack.add_route", args, manifest)
    overridden = expand_macro(
        "stack.add_route", args, manifest, template_vars={"TITLE": "Plans"}
    )

    assert rendered.ops == (
        WriteTemplateOp(
            path="apps/web/app/pricing/page.tsx", template="page.tsx.tpl", vars={"PAGE": "Pricing"}
        ),
    )
    assert isinstance(overridden.ops[0], WriteTemplateOp)
    assert dict(overridden.ops[0].vars) == {"TITLE": "Plans"}


def test_unknown_macro_yields_no_ops(vite_manifest: dict[str, Any]) -> None:
    manifest = parse_manifest(vite_manifest)
    expansion = expand_macro("stack.deploy", {}, manifest)

    assert expansion.ops == ()
    assert [item.code for item in expansion.diagnostics] == ["E200_UNKNOWN_MACRO"]
    assert "stack.deploy" in expansion.diagnostics[0].message


def test_run_cwd_is_rendered() -> None:
    manifest = parse_manifest(
        {
            "id": "t",
            "presetVersion": 1,
            "effectsPolicy": {"allowedWriteGlobs": ["**"]},
            "commands": {"allowPrefixes": ["pnpm"]},
            "macros": {
                "build": {
                    "args": {"app": "path"},
                    "expandsTo": [{"kind": "run", "cmd": "pnpm build", "cwd": "${app}"}],
                }
            },
        }
    )

    expansion = expand_macro("build", {"app": "apps/site"}, manifest)

    assert expansion.ops == (RunOp(cmd="pnpm build", cwd="apps/site"),)
