import os

import pytest

from activitypack.compiler.module_resolver import ModuleResolver, is_relative_specifier, match_path_alias
from activitypack.compiler.tsconfig import load_compiler_options


@pytest.mark.parametrize("specifier,expected", [
    ("./a", True),
    ("../a", True),
    (".", True),
    ("a", False),
    ("@scope/a", False),
])
def test_is_relative_specifier(specifier, expected):
    assert is_relative_specifier(specifier) == expected


def test_path_alias_prefers_exact_then_longest_prefix():
    paths = {
        "@app/*": ["src/*"],
        "@app/shared/*": ["shared/*", "fallback/*"],
        "@app/config": ["config/index"],
    }
    assert match_path_alias("@app/config", paths) == ["config/index"]
    assert match_path_alias("@app/shared/util", paths) == ["shared/util", "fallback/util"]
    assert match_path_alias("@app/other", paths) == ["src/other"]
    assert match_path_alias("lodash", paths) == []


@pytest.fixture
def layout(tmp_path):
    files = [
        "src/a.ts",
        "src/view.tsx",
        "src/lib/index.ts",
        "src/shared/util.ts",
        "types/globals.d.ts",
        "node_modules/plain/index.d.ts",
        "node_modules/typed/package.json",
        "node_modules/typed/dist/main.d.ts",
        "node_modules/@types/untyped/index.d.ts",
        "node_modules/@types/scope__pkg/index.d.ts",
    ]
    for rel in files:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("export {};")
    (tmp_path / "node_modules" / "typed" / "package.json").write_text('{"types": "dist/main.d.ts"}')
    (tmp_path / "tsconfig.json").write_text(
        '{"compilerOptions": {"baseUrl": ".", "paths": {"@shared/*": ["src/shared/*"]}}}'
    )
    options = load_compiler_options(str(tmp_path / "tsconfig.json"), str(tmp_path))
    return tmp_path, ModuleResolver(options)


@pytest.mark.parametrize("specifier,expected", [
    ("./a", "src/a.ts"),
    ("./a.js", "src/a.ts"),
    ("./view", "src/view.tsx"),
    ("./lib", "src/lib/index.ts"),
    ("@shared/util", "src/shared/util.ts"),
    ("src/a", "src/a.ts"),
    ("types/globals", "types/globals.d.ts"),
    ("plain", "node_modules/plain/index.d.ts"),
    ("typed", "node_modules/typed/dist/main.d.ts"),
    ("untyped", "node_modules/@types/untyped/index.d.ts"),
    ("@scope/pkg", "node_modules/@types/scope__pkg/index.d.ts"),
])
def test_resolve(layout, specifier, expected):
    root, resolver = layout
    from_file = str(root / "src" / "a.ts")
    assert resolver.resolve(specifier, from_file) == os.path.normpath(str(root / expected))


def test_unresolved(layout):
    root, resolver = layout
    assert resolver.resolve("./missing", str(root / "src" / "a.ts")) is None
    assert resolver.resolve("not-installed", str(root / "src" / "a.ts")) is None


def test_virtual_files(tmp_path):
    options = load_compiler_options(None, str(tmp_path))
    virtual = {os.path.normpath(str(tmp_path / "src" / "mem.ts"))}
    resolver = ModuleResolver(options, is_file=lambda p: os.path.normpath(p) in virtual)
    assert resolver.resolve("./mem", str(tmp_path / "src" / "index.ts")) in virtual
