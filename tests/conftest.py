import os
import textwrap

import pytest

from activitypack.compiler.source_project import TypeScriptProject

HERE = os.path.dirname(__file__)
SAMPLE_DIR = os.path.abspath(os.path.join(HERE, "..", "sample_code_repo_test", "typescript"))


@pytest.fixture(scope="session")
def sample_dir():
    return SAMPLE_DIR


@pytest.fixture
def write_project(tmp_path):
    """Write `{relative path: source}` under tmp_path and return the root directory."""
    def _write(files):
        for rel_path, text in files.items():
            path = tmp_path / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return str(tmp_path)
    return _write


@pytest.fixture
def memory_project(tmp_path):
    """A project whose sources live only in memory."""
    def _make(files):
        project = TypeScriptProject(str(tmp_path))
        for rel_path, text in files.items():
            project.create_source_file(rel_path, textwrap.dedent(text).lstrip("\n"))
        return project
    return _make
