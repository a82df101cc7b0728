import re
import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from tree_sitter import Node

from activitypack.config import ClassifierConfig, DEFAULT_CONFIG
from activitypack.compiler.source_project import (
    CLASS_TYPES,
    Declaration,
    SourceFile,
    Symbol,
    TypeScriptProject,
    node_text,
    string_literal_value,
)
from activitypack.errors import SymbolResolutionError

logger = logging.getLogger(__name__)

# lib.d.ts names that are never looked up in the project
BUILTIN_TYPES = {
    "Array", "ReadonlyArray", "Promise", "PromiseLike", "Record", "Partial", "Required",
    "Readonly", "Pick", "Omit", "Exclude", "Extract", "NonNullable", "ReturnType",
    "Parameters", "InstanceType", "Awaited", "Date", "RegExp", "Error", "Map", "Set",
    "WeakMap", "WeakSet", "Function", "Object", "String", "Number", "Boolean", "Symbol",
    "BigInt", "JSX", "Iterable", "Iterator", "AsyncIterable", "ArrayLike",
}
UTILITY_TYPES = {"Partial", "Required", "Readonly", "Pick", "Omit"}
NULLISH = ("null", "undefined")
REFERENCE_TYPES = ("type_identifier", "nested_type_identifier", "generic_type")
FUNCTION_LIKE_TYPES = ("function_type", "constructor_type", "conditional_type")
MEMBER_TYPES = (
    "property_signature",
    "method_signature",
    "public_field_definition",
    "method_definition",
    "abstract_method_signature",
)
METHOD_TYPES = ("method_signature", "method_definition", "abstract_method_signature")


class TypeArgument(NamedTuple):
    """A type node together with the file and type-parameter bindings it is read in."""
    node: Optional[Node]
    source_file: SourceFile
    bindings: Optional[Dict[str, "TypeArgument"]] = None


class PropertyMember(NamedTuple):
    name: str
    node: Node  # the member declaration, carrying its own JSDoc
    type_node: Optional[Node]
    source_file: SourceFile
    optional: bool = False
    bindings: Optional[Dict[str, TypeArgument]] = None  # type arguments of the declaring generic


def squash(text: str) -> str:
    text = " ".join(text.split())
    text = re.sub(r"([(\[<])\s+", r"\1", text)
    return re.sub(r"\s+([)\]>,;])", r"\1", text)


def named_children(node: Node) -> List[Node]:
    return [c for c in node.named_children if c.type != "comment"]


def unwrap_type(node: Optional[Node]) -> Optional[Node]:
    """Strip `: T` annotations and redundant parentheses."""
    while node is not None and node.type in ("type_annotation", "parenthesized_type"):
        children = named_children(node)
        node = children[0] if children else None
    return node


def flatten(node: Node, kind: str) -> List[Node]:
    members = []
    for child in named_children(node):
        if child.type == kind:
            members.extend(flatten(child, kind))
        else:
            members.append(child)
    return members


def class_heritage(node: Node) -> Tuple[Optional[Node], List[Node]]:
    """The `extends_clause` of a class and the types of its `implements` clause."""
    extends_clause = None
    implements = []
    for child in node.children:
        if child.type != "class_heritage":
            continue
        for clause in child.named_children:
            if clause.type == "extends_clause":
                extends_clause = clause
            elif clause.type == "implements_clause":
                implements.extend(named_children(clause))
    return extends_clause, implements


def member_name(node: Node) -> Optional[str]:
    name_node = node.child_by_field_name("name")
    if name_node is None or name_node.type == "private_property_identifier":
        return None
    if name_node.type == "string":
        return string_literal_value(name_node)
    return node_text(name_node)


def is_static(node: Node) -> bool:
    return any(c.type == "static" for c in node.children)


def is_optional(node: Node) -> bool:
    return any(c.type == "?" for c in node.children)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class TypeResolver:
    def __init__(self, project: TypeScriptProject, config: ClassifierConfig = DEFAULT_CONFIG):
        self.project = project
        self.config = config

    @property
    def strict_null_checks(self) -> bool:
        return self.project.options.strict_null_checks

    def lookup(self, source_file: SourceFile, name: str) -> Optional[Symbol]:
        if "." in name:
            return self.project.resolve_qualified_name(source_file, name)
        if name in source_file.locals or name in source_file.imports:
            return self.project.resolve_name(source_file, name)
        if name in BUILTIN_TYPES:
            return None
        return self.project.resolve_name(source_file, name)

    # generics

    def bind(self, declaration: Declaration, args: List[Node], source_file: SourceFile, bindings=None) -> dict:
        """Map the type parameters of a generic declaration to the arguments of a reference to it."""
        params = declaration.node.child_by_field_name("type_parameters")
        if params is None:
            return {}
        bound = {}
        for index, param in enumerate(p for p in named_children(params) if p.type == "type_parameter"):
            name = node_text(param.child_by_field_name("name"))
            if index < len(args):
                bound[name] = TypeArgument(args[index], source_file, bindings)
                continue
            default = param.child_by_field_name("value")
            if default is not None and default.type == "default_type":
                default = named_children(default)[0] if named_children(default) else None
            if default is not None:
                # defaults may refer to the parameters before them
                bound[name] = TypeArgument(default, declaration.source_file, dict(bound))
        return bound

    def substitute(self, node: Optional[Node], source_file: SourceFile, bindings=None) -> TypeArgument:
        """Follow a type parameter to the argument bound to it."""
        node = unwrap_type(node)
        while node is not None and node.type == "type_identifier" and bindings and node_text(node) in bindings:
            node, source_file, bindings = bindings[node_text(node)]
            node = unwrap_type(node)
        return TypeArgument(node, source_file, bindings)

    # rendering

    def render(self, node: Optional[Node], source_file: SourceFile, optional: bool = False, bindings=None) -> str:
        text = self._render(node, source_file, bindings) if node is not None else "any"
        if optional and self.strict_null_checks and "undefined" not in text.split(" | "):
            inner = self.substitute(node, source_file, bindings).node
            if inner is not None and inner.type in FUNCTION_LIKE_TYPES + METHOD_TYPES:
                text = f"({text})"
            text = f"{text} | undefined"
        return text

    def _render(self, node: Node, source_file: SourceFile, bindings=None) -> str:
        kind = node.type
        if kind in ("type_annotation", "parenthesized_type"):
            inner = unwrap_type(node)
            return self._render(inner, source_file, bindings) if inner is not None else "any"
        if kind in ("predefined_type", "this_type"):
            return node_text(node)
        if kind == "type_identifier":
            if bindings and node_text(node) in bindings:
                bound = bindings[node_text(node)]
                return self._render(bound.node, bound.source_file, bound.bindings)
            return self._render_reference(node_text(node), source_file, set())
        if kind == "nested_type_identifier":
            return squash(node_text(node))
        if kind == "generic_type":
            return self._render_generic(node, source_file, bindings)
        if kind == "array_type":
            elem = named_children(node)[0]
            return self._array_of(elem, source_file, bindings)
        if kind == "union_type":
            return self._render_union(node, source_file, bindings)
        if kind == "intersection_type":
            return " & ".join(
                self._render_operand(m, source_file, bindings) for m in flatten(node, "intersection_type")
            )
        if kind == "literal_type":
            return self._render_literal(node)
        if kind == "object_type":
            return self._render_object(node, source_file, bindings)
        if kind in ("function_type", "constructor_type"):
            return self._render_function_type(node, source_file, bindings)
        if kind in METHOD_TYPES:
            return self._render_signature(node, source_file, bindings, arrow=True)
        if kind == "tuple_type":
            return "[" + ", ".join(self._render(m, source_file, bindings) for m in named_children(node)) + "]"
        if kind == "readonly_type":
            return "readonly " + self._render(named_children(node)[0], source_file, bindings)
        if kind == "index_type_query":
            return "keyof " + self._render(named_children(node)[0], source_file, bindings)
        return squash(node_text(node))

    def _render_reference(self, name: str, source_file: SourceFile, seen) -> str:
        # aliases of primitive keywords print as the keyword, every other named type keeps its name
        symbol = self.lookup(source_file, name)
        if symbol is None or name in seen:
            return name
        for decl in symbol.type_declarations:
            if decl.kind != "type_alias_declaration" or decl.node.child_by_field_name("type_parameters") is not None:
                continue
            value = unwrap_type(decl.node.child_by_field_name("value"))
            if value is None:
                break
            if value.type == "predefined_type":
                return node_text(value)
            if value.type == "type_identifier":
                resolved = self._render_reference(node_text(value), decl.source_file, seen | {name})
                if resolved in ("string", "number", "boolean", "bigint", "symbol", "any", "unknown",
                                "never", "void", "object"):
                    return resolved
            break
        return name

    def _render_generic(self, node: Node, source_file: SourceFile, bindings=None) -> str:
        name = squash(node_text(node.child_by_field_name("name")))
        type_args = node.child_by_field_name("type_arguments")
        args = named_children(type_args) if type_args is not None else []
        if name == "Array" and len(args) == 1:
            return self._array_of(args[0], source_file, bindings)
        if name == "ReadonlyArray" and len(args) == 1:
            return "readonly " + self._array_of(args[0], source_file, bindings)
        return f"{name}<{', '.join(self._render(a, source_file, bindings) for a in args)}>"

    def _array_of(self, elem: Node, source_file: SourceFile, bindings=None) -> str:
        rendered = self._render(elem, source_file, bindings)
        inner = self.substitute(elem, source_file, bindings).node
        if inner is not None and inner.type in ("union_type", "intersection_type") + FUNCTION_LIKE_TYPES:
            if any(op in rendered for op in (" | ", " & ", "=>", " ? ")):
                rendered = f"({rendered})"
        return f"{rendered}[]"

    def _render_operand(self, node: Node, source_file: SourceFile, bindings=None) -> str:
        rendered = self._render(node, source_file, bindings)
        inner = self.substitute(node, source_file, bindings).node
        if inner is not None and inner.type in FUNCTION_LIKE_TYPES:
            return f"({rendered})"
        return rendered

    def _render_union(self, node: Node, source_file: SourceFile, bindings=None) -> str:
        parts = []
        for member in flatten(node, "union_type"):
            rendered = self._render_operand(member, source_file, bindings)
            inner = self.substitute(member, source_file, bindings).node
            for part in rendered.split(" | ") if inner is not None and inner.type == "union_type" else [rendered]:
                if part not in parts:
                    parts.append(part)

        if "true" in parts and "false" in parts:
            index = min(parts.index("true"), parts.index("false"))
            parts = [p for p in parts if p not in ("true", "false")]
            parts.insert(index, "boolean")

        nullish = [p for p in parts if p in NULLISH]
        rest = [p for p in parts if p not in NULLISH]
        if not rest:
            return " | ".join(nullish)
        if not self.strict_null_checks:
            return " | ".join(rest)
        return " | ".join(rest + nullish)

    def _render_literal(self, node: Node) -> str:
        children = named_children(node)
        if len(children) == 1 and children[0].type == "string":
            return _quote(string_literal_value(children[0]))
        return squash(node_text(node))

    def _render_object(self, node: Node, source_file: SourceFile, bindings=None) -> str:
        members = []
        for child in named_children(node):
            name = member_name(child) if child.type in MEMBER_TYPES else None
            optional = "?" if is_optional(child) else ""
            if child.type == "property_signature" and name is not None:
                readonly = "readonly " if any(c.type == "readonly" for c in child.children) else ""
                type_node = child.child_by_field_name("type")
                rendered = self._render(type_node, source_file, bindings) if type_node is not None else "any"
                members.append(f"{readonly}{name}{optional}: {rendered}")
            elif child.type == "method_signature" and name is not None:
                signature = self._render_signature(child, source_file, bindings, arrow=False)
                members.append(f"{name}{optional}{signature}")
            elif child.type in ("index_signature", "call_signature", "construct_signature"):
                members.append(squash(node_text(child)).rstrip(";,"))
        if not members:
            return "{}"
        return "{ " + "; ".join(members) + "; }"

    def _render_parameters(self, params: Optional[Node], source_file: SourceFile, bindings=None) -> str:
        if params is None:
            return ""
        rendered = []
        for param in named_children(params):
            if param.type not in ("required_parameter", "optional_parameter"):
                continue
            pattern = param.child_by_field_name("pattern")
            name = squash(node_text(pattern)) if pattern is not None else "arg"
            optional = "?" if param.type == "optional_parameter" else ""
            type_node = param.child_by_field_name("type")
            type_text = self._render(type_node, source_file, bindings) if type_node is not None else "any"
            rendered.append(f"{name}{optional}: {type_text}")
        return ", ".join(rendered)

    def _render_return(self, node: Optional[Node], source_file: SourceFile, bindings=None) -> str:
        if node is None:
            return "any"
        if node.type in ("type_predicate_annotation", "asserts_annotation", "type_predicate", "asserts"):
            return squash(node_text(node)).lstrip(": ")
        return self._render(node, source_file, bindings)

    def _render_signature(self, node: Node, source_file: SourceFile, bindings, arrow: bool) -> str:
        type_params = node.child_by_field_name("type_parameters")
        prefix = squash(node_text(type_params)) if type_params is not None else ""
        params = self._render_parameters(node.child_by_field_name("parameters"), source_file, bindings)
        ret = self._render_return(node.child_by_field_name("return_type"), source_file, bindings)
        if arrow:
            return f"{prefix}({params}) => {ret}"
        return f"{prefix}({params}): {ret}"

    def _render_function_type(self, node: Node, source_file: SourceFile, bindings=None) -> str:
        rendered = self._render_signature(node, source_file, bindings, arrow=True)
        return "new " + rendered if node.type == "constructor_type" else rendered

    # asynchronous results

    def unwrap_async(self, node: Optional[Node], source_file: SourceFile, bindings=None) -> TypeArgument:
        """`Promise<T>` (also through type aliases, generic ones included) resolves to `T`;
        anything else is returned as is."""
        current, current_file, current_bindings = self.substitute(node, source_file, bindings)
        seen = set()
        while current is not None:
            args = []
            if current.type == "generic_type":
                name = squash(node_text(current.child_by_field_name("name")))
                type_args = current.child_by_field_name("type_arguments")
                args = named_children(type_args) if type_args is not None else []
                if name.split(".")[-1] in self.config.async_wrappers and len(args) == 1:
                    return TypeArgument(args[0], current_file, current_bindings)
            elif current.type == "type_identifier":
                name = node_text(current)
            else:
                break
            symbol = self.lookup(current_file, name)
            alias = next(
                (d for d in symbol.type_declarations if d.kind == "type_alias_declaration"), None
            ) if symbol is not None else None
            if alias is None or alias.key in seen:
                break
            seen.add(alias.key)
            current, current_file, current_bindings = self.substitute(
                alias.node.child_by_field_name("value"),
                alias.source_file,
                self.bind(alias, args, current_file, current_bindings),
            )
        return TypeArgument(node, source_file, bindings)

    # members

    def _body_members(self, body: Optional[Node], source_file: SourceFile, bindings=None) -> List[PropertyMember]:
        members = []
        if body is None:
            return members
        for child in named_children(body):
            if child.type not in MEMBER_TYPES or is_static(child):
                continue
            name = member_name(child)
            if name is None or name == "constructor":
                continue
            if child.type in METHOD_TYPES:
                type_node = child
            else:
                type_node = child.child_by_field_name("type")
            members.append(PropertyMember(name, child, type_node, source_file, is_optional(child), bindings or None))
        return members

    def _class_members(self, decl: Declaration, seen, bindings=None) -> List[PropertyMember]:
        members = self._body_members(decl.node.child_by_field_name("body"), decl.source_file, bindings)
        extends_clause, _ = class_heritage(decl.node)
        if extends_clause is not None:
            base = extends_clause.child_by_field_name("value")
            if base is not None and base.type in ("identifier", "member_expression"):
                type_args = extends_clause.child_by_field_name("type_arguments")
                args = named_children(type_args) if type_args is not None else []
                inherited = self._reference_properties(
                    squash(node_text(base)), args, decl.source_file, seen, bindings
                )
                members = _merge(members, inherited)
        return members

    def get_properties(self, node: Optional[Node], source_file: SourceFile, bindings=None) -> List[PropertyMember]:
        """Every property of a type, inherited ones included, in declaration order."""
        return self._properties(node, source_file, frozenset(), bindings)

    def _properties(self, node: Optional[Node], source_file: SourceFile, seen, bindings=None) -> List[PropertyMember]:
        node, source_file, bindings = self.substitute(node, source_file, bindings)
        if node is None:
            return []
        kind = node.type
        if kind == "object_type":
            return self._body_members(node, source_file, bindings)
        if kind == "intersection_type":
            members = []
            for part in flatten(node, "intersection_type"):
                members = _merge(members, self._properties(part, source_file, seen, bindings))
            return members
        if kind == "union_type":
            parts = [p for p in flatten(node, "union_type") if squash(node_text(p)) not in NULLISH]
            if len(parts) == 1:
                return self._properties(parts[0], source_file, seen, bindings)
            shared = [self._properties(p, source_file, seen, bindings) for p in parts]
            common = set.intersection(*(set(m.name for m in ms) for ms in shared)) if shared else set()
            return [m for m in shared[0] if m.name in common] if shared else []
        if kind in ("type_identifier", "nested_type_identifier"):
            return self._reference_properties(squash(node_text(node)), [], source_file, seen, bindings)
        if kind == "generic_type":
            type_args = node.child_by_field_name("type_arguments")
            args = named_children(type_args) if type_args is not None else []
            name = squash(node_text(node.child_by_field_name("name")))
            return self._reference_properties(name, args, source_file, seen, bindings)
        return []

    def _reference_properties(
        self, name: str, args: List[Node], source_file: SourceFile, seen, bindings=None
    ) -> List[PropertyMember]:
        # `args` are read in `source_file` under `bindings`
        if name in UTILITY_TYPES and args and not (name in source_file.locals or name in source_file.imports):
            return self._utility_properties(name, args, source_file, seen, bindings)

        symbol = self.lookup(source_file, name)
        if symbol is None:
            if name not in BUILTIN_TYPES:
                logger.warning("Cannot resolve type %r in %s", name, source_file.path)
            return []
        if symbol.is_external:
            logger.warning("Type %r comes from unresolved module %r", name, symbol.module_specifier)
            return []

        decls = symbol.type_declarations
        keys = tuple(d.key for d in decls)
        if not decls or keys in seen:
            return []
        seen = seen | {keys}

        interfaces = [d for d in decls if d.kind == "interface_declaration"]
        if interfaces:
            scopes = [(decl, self.bind(decl, args, source_file, bindings)) for decl in interfaces]
            members = []
            for decl, bound in scopes:
                body = decl.node.child_by_field_name("body")
                members = _merge(members, self._body_members(body, decl.source_file, bound))
            for decl, bound in scopes:
                for base in _interface_bases(decl.node):
                    members = _merge(members, self._properties(base, decl.source_file, seen, bound))
            return members

        for decl in decls:
            if decl.kind == "type_alias_declaration":
                bound = self.bind(decl, args, source_file, bindings)
                return self._properties(decl.node.child_by_field_name("value"), decl.source_file, seen, bound)
            if decl.kind in CLASS_TYPES:
                return self._class_members(decl, seen, self.bind(decl, args, source_file, bindings))
        return []

    def _utility_properties(
        self, name: str, args: List[Node], source_file: SourceFile, seen, bindings=None
    ) -> List[PropertyMember]:
        base = self._properties(args[0], source_file, seen, bindings)
        if name == "Partial":
            return [m._replace(optional=True) for m in base]
        if name == "Required":
            return [m._replace(optional=False) for m in base]
        if name in ("Pick", "Omit") and len(args) > 1:
            keys = self._literal_keys(args[1], source_file, seen, bindings)
            if name == "Pick":
                return [m for m in base if m.name in keys]
            return [m for m in base if m.name not in keys]
        return base

    def _literal_keys(self, node: Optional[Node], source_file: SourceFile, seen, bindings=None) -> set:
        node, source_file, bindings = self.substitute(node, source_file, bindings)
        if node is None:
            return set()
        if node.type == "union_type":
            keys = set()
            for part in flatten(node, "union_type"):
                keys |= self._literal_keys(part, source_file, seen, bindings)
            return keys
        if node.type == "literal_type":
            children = named_children(node)
            if children and children[0].type == "string":
                return {string_literal_value(children[0])}
            return {node_text(node)}
        if node.type == "index_type_query":
            return {m.name for m in self._properties(named_children(node)[0], source_file, seen, bindings)}
        if node.type == "type_identifier":
            symbol = self.lookup(source_file, node_text(node))
            for decl in symbol.type_declarations if symbol is not None else []:
                if decl.kind == "type_alias_declaration":
                    return self._literal_keys(decl.node.child_by_field_name("value"), decl.source_file, seen)
        return set()

    def get_own_members(self, node: Optional[Node], source_file: SourceFile, bindings=None) -> List[PropertyMember]:
        """Members declared by the type's own symbol; inherited members are left out."""
        node, source_file, bindings = self.substitute(node, source_file, bindings)
        if node is None:
            raise SymbolResolutionError("Cannot read members of an untyped value; add a type annotation.")
        if node.type == "object_type":
            return self._body_members(node, source_file, bindings)
        if node.type not in REFERENCE_TYPES:
            raise SymbolResolutionError(
                f'Type "{squash(node_text(node))}" has no symbol to read members from.'
            )

        args = []
        name_node = node
        if node.type == "generic_type":
            name_node = node.child_by_field_name("name")
            type_args = node.child_by_field_name("type_arguments")
            args = named_children(type_args) if type_args is not None else []
        name = squash(node_text(name_node))
        symbol = self.lookup(source_file, name)
        if symbol is None:
            if name in BUILTIN_TYPES:
                return []
            raise SymbolResolutionError(f'Cannot resolve type "{name}" in {source_file.path}.')
        if symbol.is_external:
            logger.warning("Members of %r are not visible, module %r is unresolved", name, symbol.module_specifier)
            return []

        decls = symbol.type_declarations
        interfaces = [d for d in decls if d.kind == "interface_declaration"]
        if interfaces:
            members = []
            for decl in interfaces:
                bound = self.bind(decl, args, source_file, bindings)
                members.extend(self._body_members(decl.node.child_by_field_name("body"), decl.source_file, bound))
            return members
        for decl in decls:
            if decl.kind == "type_alias_declaration":
                bound = self.bind(decl, args, source_file, bindings)
                return self.get_own_members(decl.node.child_by_field_name("value"), decl.source_file, bound)
            if decl.kind in CLASS_TYPES:
                bound = self.bind(decl, args, source_file, bindings)
                return self._body_members(decl.node.child_by_field_name("body"), decl.source_file, bound)
            if decl.kind == "enum_declaration":
                return []
        raise SymbolResolutionError(f'"{name}" does not refer to a type.')


def _interface_bases(node: Node) -> List[Node]:
    bases = []
    for child in node.children:
        if child.type == "extends_type_clause":
            bases.extend(named_children(child))
    return bases


def _merge(members: List[PropertyMember], more: List[PropertyMember]) -> List[PropertyMember]:
    names = {m.name for m in members}
    return members + [m for m in more if m.name not in names]
