import pytest

from activitypack.config import ClassifierConfig
from activitypack.extractors.classifier import ACTIVITY, ELEMENT, classify, extends_text
from activitypack.extractors.type_resolver import class_heritage

SOURCE = """
    import { IActivityHandler, AppActivity } from "@vertigis/workflow";
    import * as wf from "@vertigis/workflow";

    export class Implements implements IActivityHandler {
        execute() {}
    }

    export class ImplementsQualified implements wf.IActivityHandler {
        execute() {}
    }

    export class Extends extends AppActivity {
        execute() {}
    }

    export class ExtendsFormBase extends RegisterCustomFormElementBase {
        execute() {}
    }

    export class ExtendsCustom extends MyActivityBase {
        execute() {}
    }

    export class NoExecute implements IActivityHandler {
        run() {}
    }

    export class ExecuteField implements IActivityHandler {
        execute = () => {};
    }

    export class Plain {
        execute() {}
    }

    export const element = { id: "el", component: Plain };
    export const shorthand = { id: "el", component };
    export const missingComponent = { id: "el" };
    export const notAnObject = "element";
    export function execute() {}
    export interface IActivity { execute(): void; }
"""


@pytest.fixture
def exported(memory_project):
    project = memory_project({"src/index.ts": SOURCE})
    source_file = project.get_source_file("src/index.ts")
    return {name: decls[0] for name, decls in project.get_exported_declarations(source_file).items()}


@pytest.mark.parametrize("name,expected", [
    ("Implements", ACTIVITY),
    ("ImplementsQualified", ACTIVITY),
    ("Extends", ACTIVITY),
    ("ExtendsFormBase", ACTIVITY),
    ("ExtendsCustom", None),
    ("NoExecute", None),
    ("ExecuteField", None),
    ("Plain", None),
    ("element", ELEMENT),
    ("shorthand", ELEMENT),
    ("missingComponent", None),
    ("notAnObject", None),
    ("execute", None),
    ("IActivity", None),
])
def test_classify(exported, name, expected):
    assert classify(exported[name]) == expected


def test_extra_base_classes_are_configurable(exported):
    config = ClassifierConfig(extra_base_classes=("MyActivityBase",))
    assert classify(exported["ExtendsCustom"], config) == ACTIVITY


def test_extends_text_includes_type_arguments(memory_project):
    project = memory_project({"src/a.ts": "export class A extends Base<Props,  State> {}"})
    decl = project.get_source_file("src/a.ts").locals["A"][0]
    extends_clause, _ = class_heritage(decl.node)
    assert extends_text(extends_clause) == "Base<Props, State>"
