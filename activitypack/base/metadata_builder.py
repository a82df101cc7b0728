from abc import ABC, abstractmethod

from activitypack.config import ClassifierConfig, DEFAULT_CONFIG
from activitypack.compiler.source_project import Declaration, TypeScriptProject
from activitypack.extractors.type_resolver import TypeResolver


def get_suite(suite_uuid: str) -> str:
    return f"uuid:{suite_uuid}"


class MetadataBuilder(ABC):
    kind = None

    def __init__(self, project: TypeScriptProject, config: ClassifierConfig = DEFAULT_CONFIG):
        self.project = project
        self.config = config
        self.resolver = TypeResolver(project, config)

    @abstractmethod
    def matches(self, declaration: Declaration) -> bool:
        pass

    @abstractmethod
    def build(self, declaration: Declaration, suite_uuid: str):
        pass
