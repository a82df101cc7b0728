from activitypack.config import ClassifierConfig, DEFAULT_CONFIG
from activitypack.compiler.source_project import TypeScriptProject
from activitypack.extractors.activity_extractor import ActivityMetadataBuilder
from activitypack.extractors.classifier import ACTIVITY, ELEMENT
from activitypack.extractors.element_extractor import ElementMetadataBuilder

BUILDER_KINDS = (ACTIVITY, ELEMENT)


def get_builder(kind: str, project: TypeScriptProject, config: ClassifierConfig = DEFAULT_CONFIG):
    k = kind.lower()
    if k == ACTIVITY:
        return ActivityMetadataBuilder(project, config)
    if k == ELEMENT:
        return ElementMetadataBuilder(project, config)
    raise ValueError(f"No metadata builder for kind: {kind}")


def get_builders(project: TypeScriptProject, config: ClassifierConfig = DEFAULT_CONFIG):
    """Builders in classification order: a declaration goes to the first one that matches."""
    return [get_builder(kind, project, config) for kind in BUILDER_KINDS]
