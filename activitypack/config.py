from dataclasses import dataclass, field
from typing import Tuple

HANDLER_INTERFACE = "IActivityHandler"
ACTIVITY_BASE_CLASSES = ("AppActivity", "RegisterCustomFormElementBase")
ASYNC_WRAPPERS = ("Promise", "PromiseLike")
EXECUTE_METHOD = "execute"
BASE_PROPS_SENTINEL = "raiseEvent"
DEFAULT_CATEGORY = "Custom Activities"

ENTRY_FILE = "src/index.ts"
MANIFEST_FILE = "activitypack.json"
BUILD_DIR = "build"
PLUGIN_NAME = "ActivityMetadataPlugin"

SOURCE_EXTS = (".ts", ".tsx")
ALWAYS_IGNORED_DIRS = ("node_modules", "build", "dist", ".git")


@dataclass(frozen=True)
class ClassifierConfig:
    """Names the classifier matches heritage clauses against.

    Matching is textual: the interface marker is a substring test on each
    `implements` entry, base classes are compared exactly against the
    `extends` clause text.
    """

    handler_interface: str = HANDLER_INTERFACE
    base_classes: Tuple[str, ...] = ACTIVITY_BASE_CLASSES
    execute_method: str = EXECUTE_METHOD
    async_wrappers: Tuple[str, ...] = ASYNC_WRAPPERS
    base_props_sentinel: str = BASE_PROPS_SENTINEL
    default_category: str = DEFAULT_CATEGORY
    extra_base_classes: Tuple[str, ...] = field(default_factory=tuple)

    def accepted_base_classes(self) -> Tuple[str, ...]:
        return tuple(self.base_classes) + tuple(self.extra_base_classes)


DEFAULT_CONFIG = ClassifierConfig()
