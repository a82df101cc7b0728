"""Structural tests that decide whether an exported declaration is an activity or an element.

Heritage matching is textual on purpose: a handler written against a
re-exported or locally shadowed `IActivityHandler` is still recognized as long
as the clause text matches the configured names.
"""
from typing import Optional

from tree_sitter import Node

from activitypack.config import ClassifierConfig, DEFAULT_CONFIG
from activitypack.compiler.source_project import CLASS_TYPES, Declaration, node_text, string_literal_value
from activitypack.extractors.type_resolver import class_heritage, member_name, named_children, squash

ACTIVITY = "activity"
ELEMENT = "element"


def extends_text(extends_clause: Optional[Node]) -> Optional[str]:
    """Text of the first `extends` entry, type arguments included (`Base<Props>`)."""
    if extends_clause is None:
        return None
    value = extends_clause.child_by_field_name("value")
    if value is None:
        return None
    end = value.end_byte
    type_args = extends_clause.child_by_field_name("type_arguments")
    if type_args is not None:
        end = max(end, type_args.end_byte)
    offset = extends_clause.start_byte
    return squash(extends_clause.text[value.start_byte - offset:end - offset].decode("utf-8", errors="replace"))


def find_method(class_node: Node, name: str) -> Optional[Node]:
    body = class_node.child_by_field_name("body")
    if body is None:
        return None
    for member in named_children(body):
        if member.type in ("method_definition", "method_signature", "abstract_method_signature"):
            if member_name(member) == name:
                return member
    return None


def find_member(class_node: Node, name: str) -> Optional[Node]:
    body = class_node.child_by_field_name("body")
    if body is None:
        return None
    for member in named_children(body):
        if member.type in ("public_field_definition", "method_definition", "method_signature",
                           "abstract_method_signature") and member_name(member) == name:
            return member
    return None


def is_activity_node(node: Node, config: ClassifierConfig = DEFAULT_CONFIG) -> bool:
    if node.type not in CLASS_TYPES:
        return False

    extends_clause, implements = class_heritage(node)
    base = extends_text(extends_clause)
    has_correct_heritage = (
        any(config.handler_interface in node_text(impl) for impl in implements)
        or base in config.accepted_base_classes()
    )
    return has_correct_heritage and find_method(node, config.execute_method) is not None


def is_activity_declaration(declaration: Declaration, config: ClassifierConfig = DEFAULT_CONFIG) -> bool:
    return is_activity_node(declaration.node, config)


def object_property(obj: Node, name: str) -> Optional[Node]:
    """The member of an object literal named `name`: a pair, a shorthand property or a method."""
    for child in named_children(obj):
        if child.type == "pair":
            key = child.child_by_field_name("key")
            if key is not None and key.type != "computed_property_name" and _key_name(key) == name:
                return child
        elif child.type == "shorthand_property_identifier" and node_text(child) == name:
            return child
        elif child.type == "method_definition" and member_name(child) == name:
            return child
    return None


def _key_name(key: Node) -> str:
    if key.type == "string":
        return string_literal_value(key)
    return node_text(key)


def is_element_declaration(declaration: Declaration) -> bool:
    if declaration.kind != "variable_declarator":
        return False
    initializer = declaration.node.child_by_field_name("value")
    if initializer is None or initializer.type != "object":
        return False
    return object_property(initializer, "id") is not None and object_property(initializer, "component") is not None


def classify(declaration: Declaration, config: ClassifierConfig = DEFAULT_CONFIG) -> Optional[str]:
    if is_activity_declaration(declaration, config):
        return ACTIVITY
    if is_element_declaration(declaration):
        return ELEMENT
    return None
