"""Source transform that stamps activity classes with their `action` and `suite`.

Runs before bundling, so the runtime class carries the same identity the
metadata builder reports for it.
"""
import logging
from typing import Iterator, List, Tuple

from tree_sitter import Node, Parser

from activitypack.config import ClassifierConfig, DEFAULT_CONFIG
from activitypack.compiler.source_project import CLASS_TYPES, TS_LANGUAGE, TSX_LANGUAGE, node_text
from activitypack.errors import ActivityDeclarationError
from activitypack.extractors.classifier import find_member, is_activity_node

logger = logging.getLogger(__name__)


def top_level_classes(root: Node) -> Iterator[Node]:
    for child in root.named_children:
        if child.type in CLASS_TYPES:
            yield child
        elif child.type == "export_statement":
            for field in ("declaration", "value"):
                inner = child.child_by_field_name(field)
                if inner is not None and inner.type in CLASS_TYPES:
                    yield inner


def _closing_brace(class_node: Node) -> int:
    body = class_node.child_by_field_name("body")
    last = body.children[-1] if body.children else None
    if last is None or last.type != "}":
        # incomplete class body; insert at its end
        return body.end_byte
    return last.start_byte


def identity_insertions(root: Node, suite_uuid: str,
                        config: ClassifierConfig = DEFAULT_CONFIG) -> List[Tuple[int, str]]:
    insertions = []
    for class_node in top_level_classes(root):
        if not is_activity_node(class_node, config):
            continue
        name_node = class_node.child_by_field_name("name")
        if name_node is None:
            raise ActivityDeclarationError(
                "Activity classes need to be named. `export default class ...` is not permitted.",
                node_text(class_node),
            )
        name = node_text(name_node)

        text = ""
        if find_member(class_node, "action") is None:
            text += f'\nstatic action = "uuid:{suite_uuid}::{name}"\n'
        if find_member(class_node, "suite") is None:
            text += f'\nstatic suite = "uuid:{suite_uuid}"\n'
        if text:
            logger.debug("Injecting identity into %s", name)
            insertions.append((_closing_brace(class_node), text))
    return insertions


def inject_activity_identity(source: str, suite_uuid: str, file_name: str = "activity.ts",
                             config: ClassifierConfig = DEFAULT_CONFIG) -> str:
    parser = Parser(TSX_LANGUAGE if file_name.endswith((".tsx", ".jsx")) else TS_LANGUAGE)
    code = source.encode("utf-8")
    tree = parser.parse(code)

    # apply from the back so earlier offsets stay valid
    for offset, text in sorted(identity_insertions(tree.root_node, suite_uuid, config), reverse=True):
        code = code[:offset] + text.encode("utf-8") + code[offset:]
    return code.decode("utf-8")
