import logging
from typing import Dict, Optional

from tree_sitter import Node

from activitypack.base.metadata_builder import MetadataBuilder, get_suite
from activitypack.compiler.source_project import Declaration, string_literal_value
from activitypack.errors import ActivityDeclarationError
from activitypack.extractors.classifier import ACTIVITY, find_member, find_method, is_activity_declaration
from activitypack.extractors.jsdoc_tags import read_metatags
from activitypack.extractors.parameter_metadata import ACTIVITY_INPUT, ACTIVITY_OUTPUT, get_parameter_metadata
from activitypack.extractors.type_resolver import named_children
from activitypack.models import ActivityDescriptor, ParameterDescriptor

logger = logging.getLogger(__name__)


def get_literal_field(class_node: Node, name: str) -> Optional[str]:
    """Value of a field named `name` initialized with a string literal, else None."""
    member = find_member(class_node, name)
    if member is None or member.type != "public_field_definition":
        return None
    value = member.child_by_field_name("value")
    if value is None or value.type != "string":
        return None
    return string_literal_value(value)


def first_parameter(function_node: Node) -> Optional[Node]:
    params = function_node.child_by_field_name("parameters")
    if params is None:
        return None
    for param in named_children(params):
        if param.type not in ("required_parameter", "optional_parameter"):
            continue
        pattern = param.child_by_field_name("pattern")
        if pattern is not None and pattern.type == "this":
            continue
        return param
    return None


class ActivityMetadataBuilder(MetadataBuilder):
    kind = ACTIVITY

    def matches(self, declaration: Declaration) -> bool:
        return is_activity_declaration(declaration, self.config)

    def build(self, declaration: Declaration, suite_uuid: str) -> ActivityDescriptor:
        class_node = declaration.node
        activity_name = declaration.name
        if not activity_name:
            raise ActivityDeclarationError(
                "Activity classes need to be named. `export default class ...` is not permitted.",
                declaration.text,
            )

        action = get_literal_field(class_node, "action")
        if action is None:
            action = f"uuid:{suite_uuid}::{activity_name}"
        suite = get_literal_field(class_node, "suite")
        if suite is None:
            suite = get_suite(suite_uuid)

        execute = find_method(class_node, self.config.execute_method)
        inputs = self.get_inputs(execute, declaration)
        outputs = self.get_outputs(execute, declaration)

        tags = read_metatags(declaration.statement, "activity")
        return ActivityDescriptor(
            action=action,
            suite=suite,
            category=tags.category or self.config.default_category,
            inputs=inputs,
            outputs=outputs,
            display_name=tags.display_name,
            description=tags.description,
            help_url=tags.help_url,
            deprecated=tags.deprecated,
            is_hidden=tags.flag("hidden"),
            online_only=tags.flag("onlineOnly"),
            client_only=tags.flag("clientOnly"),
            server_only=tags.flag("serverOnly"),
            supported_apps=tags.supported_apps,
            unsupported_apps=tags.unsupported_apps,
        )

    def get_inputs(self, execute: Node, declaration: Declaration) -> Dict[str, ParameterDescriptor]:
        param = first_parameter(execute)
        if param is None:
            return {}
        type_node = param.child_by_field_name("type")
        if type_node is None:
            logger.debug("%s: untyped execute() input, no inputs recorded", declaration.name)
            return {}
        members = self.resolver.get_properties(type_node, declaration.source_file)
        return get_parameter_metadata(self.resolver, members, ACTIVITY_INPUT)

    def get_outputs(self, execute: Node, declaration: Declaration) -> Dict[str, ParameterDescriptor]:
        return_type = execute.child_by_field_name("return_type")
        if return_type is None:
            # return types are never inferred from the method body
            logger.debug("%s: execute() has no return type annotation, no outputs recorded", declaration.name)
            return {}
        # the engine awaits the result, so Promise<T> describes the same outputs as T
        type_node, source_file, bindings = self.resolver.unwrap_async(return_type, declaration.source_file)
        members = self.resolver.get_properties(type_node, source_file, bindings)
        return get_parameter_metadata(self.resolver, members, ACTIVITY_OUTPUT)
