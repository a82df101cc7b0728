import json
import shutil

import pytest

from activitypack.main import main


@pytest.fixture
def project_copy(tmp_path, sample_dir):
    dest = tmp_path / "project"
    shutil.copytree(sample_dir, str(dest))
    return dest


def test_create_manifest_default_output(project_copy, capsys):
    main(["create_manifest", str(project_copy)])
    out = project_copy / "build" / "activitypack.json"
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [e["id"] for e in data["elements"]] == ["counter", "BarName"]
    assert len(data["activities"]) == 3
    assert "Wrote" in capsys.readouterr().out


def test_create_manifest_options(project_copy, tmp_path):
    out = tmp_path / "custom.json"
    main([
        "create_manifest", str(project_copy),
        "--suite", "abc",
        "--entry", "src/activities/FooName.ts",
        "--output", str(out),
        "--pretty",
    ])
    text = out.read_text(encoding="utf-8")
    assert text.startswith("{\n")
    data = json.loads(text)
    assert [a["action"] for a in data["activities"]] == ["uuid:abc::FooNameActivity"]
    assert data["elements"] == []


def test_extra_base_class(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "index.ts").write_text("export class Custom extends MyBase { execute() {} }")
    out = tmp_path / "out.json"
    main(["create_manifest", str(tmp_path), "--suite", "s", "--output", str(out)])
    assert json.loads(out.read_text())["activities"] == []

    main(["create_manifest", str(tmp_path), "--suite", "s", "--output", str(out), "--base-class", "MyBase"])
    assert json.loads(out.read_text())["activities"][0]["action"] == "uuid:s::Custom"


def test_metadata_error_exits_with_diagnostic(tmp_path, capsys):
    src = tmp_path / "src"
    src.mkdir()
    (src / "index.ts").write_text(
        "/**\n * @supportedApps GXW\n * @unsupportedApps WAB\n */\n"
        "export class Bad implements IActivityHandler { execute() {} }\n"
    )
    with pytest.raises(SystemExit) as exc_info:
        main(["create_manifest", str(tmp_path), "--suite", "s"])
    assert exc_info.value.code == 1

    err = capsys.readouterr().err
    assert "ERROR in ActivityMetadataPlugin" in err
    assert "You cannot include the @supportedApps and @unsupportedApps metatags on the same activity." in err
    assert "export class Bad" in err
    assert not (tmp_path / "build").exists()


def test_missing_entry_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["create_manifest", str(tmp_path), "--suite", "s"])
    assert exc_info.value.code == 1
    assert "No index.ts entry module" in capsys.readouterr().err


def test_inject_identity_in_place(tmp_path, capsys):
    path = tmp_path / "Act.ts"
    path.write_text("export class Act implements IActivityHandler { execute() {} }\n")
    (tmp_path / "uuid.ts").write_text('export default "from-uuid";\n')

    main(["inject_identity", str(path), "--in-place"])
    assert 'static action = "uuid:from-uuid::Act"' in path.read_text()
    assert "Updated" in capsys.readouterr().out


def test_inject_identity_prints(tmp_path, capsys):
    path = tmp_path / "Act.ts"
    path.write_text("export class Act implements IActivityHandler { execute() {} }\n")
    main(["inject_identity", str(path), "--suite", "s"])
    assert 'static suite = "uuid:s"' in capsys.readouterr().out
    assert "static" not in path.read_text()


def test_no_command_prints_help(capsys):
    main([])
    assert "create_manifest" in capsys.readouterr().out
