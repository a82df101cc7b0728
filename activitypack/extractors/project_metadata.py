import os
import re
import logging
from typing import Iterable, Optional

from activitypack.config import ClassifierConfig, DEFAULT_CONFIG
from activitypack.compiler.source_project import Declaration, SourceFile, TypeScriptProject
from activitypack.extractors.classifier import ACTIVITY
from activitypack.models import ProjectManifest
from activitypack.registry.builder_registry import get_builders

logger = logging.getLogger(__name__)

UUID_FILES = ("uuid.js", "uuid.ts", "uuid.cjs", "uuid.mjs")
_UUID_EXPORT = re.compile(r"""(?:module\.exports\s*=|export\s+default)\s*(["'`])(.*?)\1""")


def read_project_uuid(root_dir: str) -> Optional[str]:
    """The suite identifier exported by the project's `uuid` module, if any."""
    for name in UUID_FILES:
        path = os.path.join(root_dir, name)
        if not os.path.isfile(path):
            continue
        with open(path, "r", encoding="utf-8") as f:
            m = _UUID_EXPORT.search(f.read())
        if m:
            return m.group(2)
        logger.warning("%s does not export a string literal", path)
    return None


def _build_all(project: TypeScriptProject, declarations: Iterable[Declaration], suite_uuid: str,
               config: ClassifierConfig) -> ProjectManifest:
    builders = get_builders(project, config)
    activities = []
    elements = []
    seen = set()
    # no per-declaration recovery: the first failure aborts the whole run
    for declaration in declarations:
        if declaration.key in seen:
            continue
        seen.add(declaration.key)
        builder = next((b for b in builders if b.matches(declaration)), None)
        if builder is None:
            continue
        logger.debug("Building %s metadata for %s", builder.kind, declaration)
        descriptor = builder.build(declaration, suite_uuid)
        if builder.kind == ACTIVITY:
            activities.append(descriptor)
        else:
            elements.append(descriptor)
    return ProjectManifest(activities=activities, elements=elements)


def _exported(project: TypeScriptProject, source_file: SourceFile):
    for _, declarations in project.get_exported_declarations(source_file).items():
        yield from declarations


def get_project_metadata(project: TypeScriptProject, project_exports_file: SourceFile, suite_uuid: str,
                         config: ClassifierConfig = DEFAULT_CONFIG) -> ProjectManifest:
    """Metadata for the activities and form elements exported by the project's entry module."""
    return _build_all(project, _exported(project, project_exports_file), suite_uuid, config)


def scan_project_metadata(project: TypeScriptProject, suite_uuid: str,
                          config: ClassifierConfig = DEFAULT_CONFIG) -> ProjectManifest:
    """Like `get_project_metadata`, over the exports of every source file in the project."""
    def declarations():
        for path in project.discover_source_files():
            yield from _exported(project, project.get_source_file_or_throw(path))

    return _build_all(project, declarations(), suite_uuid, config)


def create_project_manifest(root_dir: str, suite_uuid: Optional[str] = None, entry: Optional[str] = None,
                            tsconfig_path: Optional[str] = None, scan: bool = False,
                            config: ClassifierConfig = DEFAULT_CONFIG) -> ProjectManifest:
    if suite_uuid is None:
        suite_uuid = read_project_uuid(root_dir)
        if suite_uuid is None:
            raise ValueError(f"No suite identifier given and no uuid module found in {root_dir}")

    # a fresh project per run, so nothing from an earlier build leaks in
    project = TypeScriptProject(root_dir, tsconfig_path=tsconfig_path)
    if scan:
        return scan_project_metadata(project, suite_uuid, config)
    entry_file = project.find_entry_file(entry)
    return get_project_metadata(project, entry_file, suite_uuid, config)
