import logging
from typing import Dict, List, NamedTuple, Union

from tree_sitter import Node

from activitypack.base.metadata_builder import MetadataBuilder, get_suite
from activitypack.compiler.source_project import (
    CLASS_TYPES,
    FUNCTION_TYPES,
    Declaration,
    SourceFile,
    node_text,
    string_literal_value,
)
from activitypack.errors import ElementDeclarationError, SymbolResolutionError
from activitypack.extractors.activity_extractor import first_parameter
from activitypack.extractors.classifier import ELEMENT, is_element_declaration, object_property
from activitypack.extractors.jsdoc_tags import read_metatags
from activitypack.extractors.parameter_metadata import ACTIVITY_INPUT, get_parameter_metadata
from activitypack.extractors.type_resolver import PropertyMember, class_heritage, named_children, unwrap_type
from activitypack.models import ElementDescriptor, ParameterDescriptor

logger = logging.getLogger(__name__)

NOT_A_COMPONENT = '"component" property of element registration isn\'t a function or class component.'
CALL_SIGNATURE_UNSUPPORTED = (
    '"component" property in element registration was declared using a call signature declaration '
    'which is not supported. Declare your component using "function Foo(props: FooProps) {}" or '
    '"const Foo = (props: FooProps) => {}" instead.'
)
FUNCTION_EXPRESSION_TYPES = ("arrow_function", "function_expression", "function")


class ClassComponent(NamedTuple):
    """`class Foo extends React.Component<FooProps>`"""

    node: Node
    source_file: SourceFile
    anchor: Declaration


class FunctionComponent(NamedTuple):
    """`function Foo(props: FooProps)` or `const Foo = (props: FooProps) => ...`"""

    node: Node
    source_file: SourceFile
    anchor: Declaration


Component = Union[ClassComponent, FunctionComponent]


class ElementMetadataBuilder(MetadataBuilder):
    kind = ELEMENT

    def matches(self, declaration: Declaration) -> bool:
        return is_element_declaration(declaration)

    def build(self, declaration: Declaration, suite_uuid: str) -> ElementDescriptor:
        registration = declaration.node.child_by_field_name("value")
        element_id = self.get_element_id(registration, declaration)
        component = self.resolve_component(registration, declaration)
        inputs = self.get_inputs(component)

        # JSDoc sits on the statement: the variable statement for `const Foo = ...`,
        # the declaration itself for functions and classes
        tags = read_metatags(component.anchor.statement, "element")
        return ElementDescriptor(
            id=element_id,
            suite=get_suite(suite_uuid),
            inputs=inputs,
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

    def get_element_id(self, registration: Node, declaration: Declaration) -> str:
        id_property = object_property(registration, "id")
        # shorthand `{ id }` and methods are not property assignments
        if id_property is None or id_property.type != "pair":
            raise ElementDeclarationError(
                'Must directly assign value to "id" property of element registration. Ex. id: "foo".',
                declaration.text,
            )
        value = id_property.child_by_field_name("value")
        if value is None or value.type != "string":
            raise ElementDeclarationError(
                'Value of "id" property of element registration must be a string literal. Ex. id: "foo".',
                declaration.text,
            )
        return string_literal_value(value)

    def resolve_component(self, registration: Node, declaration: Declaration) -> Component:
        component_property = object_property(registration, "component")
        if component_property is None or component_property.type != "pair":
            raise ElementDeclarationError(
                '"component" property of element registration is not a property assignment.',
                declaration.text,
            )

        value = component_property.child_by_field_name("value")
        if value is None or value.type not in ("identifier", "member_expression"):
            raise ElementDeclarationError(NOT_A_COMPONENT, declaration.text)

        name = node_text(value)
        if value.type == "identifier":
            symbol = self.project.resolve_name(declaration.source_file, name)
        else:
            symbol = self.project.resolve_qualified_name(declaration.source_file, name)
        if symbol is None or not symbol.declarations:
            raise SymbolResolutionError(
                f'Cannot resolve "{name}" used as the "component" of element registration.',
                declaration.text,
            )

        referent = symbol.value_declaration
        if referent is None:
            raise ElementDeclarationError(NOT_A_COMPONENT, declaration.text)
        if referent.kind in CLASS_TYPES:
            return ClassComponent(referent.node, referent.source_file, referent)
        if referent.kind in FUNCTION_TYPES:
            return FunctionComponent(referent.node, referent.source_file, referent)
        if referent.kind == "variable_declarator":
            node, source_file = self._callable_of_variable(referent, declaration, set())
            return FunctionComponent(node, source_file, referent)
        raise ElementDeclarationError(NOT_A_COMPONENT, declaration.text)

    def _callable_of_variable(self, variable: Declaration, declaration: Declaration, seen):
        """The function or arrow function behind `const Foo = ...`."""
        annotation = unwrap_type(variable.node.child_by_field_name("type"))
        if annotation is not None:
            # the declared type wins over the initializer, as it does for the checker
            if annotation.type == "function_type" or self._is_function_type_alias(annotation, variable.source_file):
                raise ElementDeclarationError(NOT_A_COMPONENT, declaration.text)
            raise ElementDeclarationError(CALL_SIGNATURE_UNSUPPORTED, declaration.text)

        value = variable.node.child_by_field_name("value")
        while value is not None and value.type == "parenthesized_expression":
            children = named_children(value)
            value = children[0] if children else None
        if value is None:
            raise ElementDeclarationError(NOT_A_COMPONENT, declaration.text)
        if value.type in FUNCTION_EXPRESSION_TYPES:
            return value, variable.source_file
        if value.type in ("call_expression", "new_expression"):
            # React.memo(...), forwardRef(...): only a call signature is known
            raise ElementDeclarationError(CALL_SIGNATURE_UNSUPPORTED, declaration.text)

        if value.type == "identifier" and variable.key not in seen:
            # const Foo = Bar;
            symbol = self.project.resolve_name(variable.source_file, node_text(value))
            target = symbol.value_declaration if symbol is not None else None
            if target is not None and target.kind in FUNCTION_TYPES:
                return target.node, target.source_file
            if target is not None and target.kind == "variable_declarator":
                return self._callable_of_variable(target, declaration, seen | {variable.key})
        raise ElementDeclarationError(NOT_A_COMPONENT, declaration.text)

    def _is_function_type_alias(self, annotation: Node, source_file: SourceFile) -> bool:
        if annotation.type != "type_identifier":
            return False
        symbol = self.resolver.lookup(source_file, node_text(annotation))
        for decl in symbol.type_declarations if symbol is not None else []:
            if decl.kind == "type_alias_declaration":
                value = unwrap_type(decl.node.child_by_field_name("value"))
                return value is not None and value.type == "function_type"
        return False

    def sanitize_members(self, members: List[PropertyMember]) -> List[PropertyMember]:
        """Members that look like the base props contract count as no props at all."""
        if any(member.name == self.config.base_props_sentinel for member in members):
            return []
        return members

    def get_inputs(self, component: Component) -> Dict[str, ParameterDescriptor]:
        if isinstance(component, ClassComponent):
            extends_clause, _ = class_heritage(component.node)
            if extends_clause is None:
                raise ElementDeclarationError(
                    f'Class component "{component.anchor.name}" of element registration must extend a component base class.',
                    component.anchor.text,
                )
            type_args = extends_clause.child_by_field_name("type_arguments")
            args = named_children(type_args) if type_args is not None else []
            # a basic component may leave out the props type argument
            if not args:
                return {}
            members = self.resolver.get_own_members(args[0], component.source_file)
        else:
            if component.node.child_by_field_name("parameter") is not None:
                raise SymbolResolutionError(
                    "Cannot read members of an untyped value; add a type annotation.",
                    component.anchor.text,
                )
            param = first_parameter(component.node)
            if param is None:
                return {}
            members = self.resolver.get_own_members(param.child_by_field_name("type"), component.source_file)

        return get_parameter_metadata(self.resolver, self.sanitize_members(members), ACTIVITY_INPUT)
