import os

from activitypack.compiler.tsconfig import load_compiler_options, read_tsconfig


def test_comments_and_trailing_commas(tmp_path):
    path = tmp_path / "tsconfig.json"
    path.write_text("""
    {
        // line comment
        "compilerOptions": {
            /* block comment */
            "baseUrl": "./src",
            "paths": { "@lib/*": ["lib/*"], },
            "outDir": "http://not-a-comment",
        },
    }
    """)
    cfg = read_tsconfig(str(path))
    assert cfg["compilerOptions"]["outDir"] == "http://not-a-comment"
    assert cfg["compilerOptions"]["paths"] == {"@lib/*": ["lib/*"]}


def test_missing_or_malformed_config(tmp_path):
    assert read_tsconfig(str(tmp_path / "absent.json")) == {}
    bad = tmp_path / "tsconfig.json"
    bad.write_text("{ not json")
    assert read_tsconfig(str(bad)) == {}


def test_no_config_uses_root(tmp_path):
    options = load_compiler_options(None, str(tmp_path))
    assert options.config_dir == os.path.abspath(str(tmp_path))
    assert options.base_url is None
    assert options.paths == {}
    assert options.strict_null_checks is False
    assert options.paths_base == options.config_dir


def test_extends_chain(tmp_path):
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "base.json").write_text("""
    {
        "compilerOptions": {
            "strict": true,
            "baseUrl": "..",
            "paths": { "@base/*": ["base/*"] }
        }
    }
    """)
    (tmp_path / "tsconfig.json").write_text("""
    {
        "extends": "./configs/base",
        "compilerOptions": { "paths": { "@app/*": ["app/*"] } }
    }
    """)
    options = load_compiler_options(str(tmp_path / "tsconfig.json"), str(tmp_path))
    assert options.strict_null_checks is True
    # baseUrl is relative to the config that declared it
    assert options.base_url == os.path.normpath(str(tmp_path))
    # the leaf replaces `paths` wholesale
    assert options.paths == {"@app/*": ["app/*"]}


def test_strict_null_checks_overrides_strict(tmp_path):
    (tmp_path / "tsconfig.json").write_text(
        '{"compilerOptions": {"strict": true, "strictNullChecks": false}}'
    )
    options = load_compiler_options(str(tmp_path / "tsconfig.json"), str(tmp_path))
    assert options.strict_null_checks is False


def test_extends_cycle_terminates(tmp_path):
    (tmp_path / "a.json").write_text('{"extends": "./b.json", "compilerOptions": {"strict": true}}')
    (tmp_path / "b.json").write_text('{"extends": "./a.json"}')
    options = load_compiler_options(str(tmp_path / "a.json"), str(tmp_path))
    assert options.strict_null_checks is True
