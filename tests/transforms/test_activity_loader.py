import pytest

from activitypack.errors import ActivityDeclarationError
from activitypack.extractors.project_metadata import create_project_manifest
from activitypack.transforms.activity_loader import inject_activity_identity

SUITE = "1234"

ACTIVITIES = """
export class First implements IActivityHandler {
    execute(inputs: { a: string }) {}
}

export default class Second extends AppActivity {
    static suite = "uuid:kept";
    execute() {}
}

class Third implements IActivityHandler {
    static action = "uuid:kept::Third";
    static suite = "uuid:kept";
    execute() {}
}

export class NotAnActivity {
    run() {}
}
"""


@pytest.fixture(scope="module")
def injected():
    return inject_activity_identity(ACTIVITIES, SUITE)


def test_missing_members_are_added(injected):
    assert injected.count('static action = "uuid:1234::First"') == 1
    assert injected.count('static suite = "uuid:1234"') == 1
    assert 'static action = "uuid:1234::Second"' in injected


def test_existing_members_are_kept(injected):
    assert 'static suite = "uuid:kept";' in injected
    assert injected.count("uuid:kept::Third") == 1
    assert injected.count("static suite") == 3


def test_other_classes_untouched(injected):
    start = injected.index("export class NotAnActivity")
    assert injected[start:] == ACTIVITIES[ACTIVITIES.index("export class NotAnActivity"):]


def test_insertion_sits_before_closing_brace(injected):
    first = injected[:injected.index("export default class Second")]
    assert first.rstrip().endswith('static suite = "uuid:1234"\n}')


def test_already_stamped_source_is_unchanged(injected):
    assert inject_activity_identity(injected, SUITE) == injected


def test_unnamed_activity_is_rejected():
    with pytest.raises(ActivityDeclarationError, match="need to be named"):
        inject_activity_identity("export default class extends AppActivity { execute() {} }", SUITE)


def test_non_ascii_offsets():
    source = 'const note = "Überprüfung";\nexport class Ä implements IActivityHandler { execute() {} }\n'
    result = inject_activity_identity(source, SUITE)
    assert result.startswith('const note = "Überprüfung";')
    assert result.rstrip().endswith('static suite = "uuid:1234"\n}')


def test_injected_identity_matches_extracted_identity(write_project):
    source = """
export class Stamped implements IActivityHandler {
    execute(inputs: { a: string }) {}
}
"""
    root = write_project({"src/index.ts": source})
    before = create_project_manifest(root, suite_uuid=SUITE).activities[0]

    root = write_project({"src/index.ts": inject_activity_identity(source, SUITE)})
    after = create_project_manifest(root, suite_uuid=SUITE).activities[0]

    assert (after.action, after.suite) == (before.action, before.suite)
    assert after == before
