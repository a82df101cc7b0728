import os
import logging
from collections import OrderedDict, defaultdict
from typing import Dict, List, NamedTuple, Optional

import chardet
import pathspec
import tree_sitter_typescript
from tree_sitter import Language, Parser, Node

from activitypack.config import ALWAYS_IGNORED_DIRS, ENTRY_FILE, SOURCE_EXTS
from activitypack.compiler.module_resolver import ModuleResolver
from activitypack.compiler.tsconfig import CONFIG_FILENAME, load_compiler_options

logger = logging.getLogger(__name__)

TS_LANGUAGE = Language(tree_sitter_typescript.language_typescript())
TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())

DECLARATION_TYPES = {
    "class_declaration",
    "abstract_class_declaration",
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
}
VARIABLE_STATEMENT_TYPES = {"lexical_declaration", "variable_declaration"}
CLASS_TYPES = {"class_declaration", "abstract_class_declaration", "class"}
FUNCTION_TYPES = {"function_declaration", "generator_function_declaration", "function_signature"}
VALUE_TYPES = CLASS_TYPES | FUNCTION_TYPES | {"variable_declarator", "enum_declaration"}
TYPE_TYPES = CLASS_TYPES | {"interface_declaration", "type_alias_declaration", "enum_declaration"}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


def node_text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def _unescape(sequence: str) -> str:
    body = sequence[1:]
    if body in _ESCAPES:
        return _ESCAPES[body]
    if body.startswith("x") and len(body) == 3:
        return chr(int(body[1:], 16))
    if body.startswith("u{"):
        return chr(int(body[2:-1], 16))
    if body.startswith("u") and len(body) == 5:
        return chr(int(body[1:], 16))
    if body.startswith(("\n", "\r")):
        # line continuation
        return ""
    return body


def string_literal_value(node: Node) -> str:
    """The runtime value of a `string` node, escape sequences applied."""
    parts = []
    for child in node.children:
        if child.type == "string_fragment":
            parts.append(node_text(child))
        elif child.type == "escape_sequence":
            parts.append(_unescape(node_text(child)))
    return "".join(parts)


def read_source_text(file_path: str) -> str:
    with open(file_path, "rb") as f:
        raw = f.read()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        guess = chardet.detect(raw)
        encoding = guess["encoding"] or "utf-8"
        logger.debug("Decoding %s as %s", file_path, encoding)
        return raw.decode(encoding, errors="replace")


def discover_source_files(root_dir: str, exts=SOURCE_EXTS, include_declarations: bool = False) -> List[str]:
    """Every source file under `root_dir` not excluded by `.gitignore`, sorted."""
    root_dir = os.path.abspath(root_dir)
    gitignore_pth = os.path.join(root_dir, ".gitignore")
    patterns = []
    if os.path.isfile(gitignore_pth):
        with open(gitignore_pth, "r", encoding="utf-8") as f:
            patterns = f.read().splitlines()
    spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns + [f"{d}/" for d in ALWAYS_IGNORED_DIRS])

    found = []
    for current, dirs, files in os.walk(root_dir):
        rel_dir = os.path.relpath(current, root_dir).replace("\\", "/")
        rel_dir = "" if rel_dir == "." else rel_dir + "/"
        dirs[:] = sorted(d for d in dirs if not spec.match_file(f"{rel_dir}{d}/"))
        for name in sorted(files):
            if spec.match_file(rel_dir + name):
                continue
            if name.endswith(".d.ts") and not include_declarations:
                continue
            if os.path.splitext(name)[1] in exts:
                found.append(os.path.join(current, name))
    return found


class ImportBinding(NamedTuple):
    local_name: str
    imported_name: str  # exported name, "default", or "*" for namespace imports
    specifier: str


class ExportEntry(NamedTuple):
    exported_name: str
    local_name: Optional[str]  # None for an anonymous default declaration
    specifier: Optional[str]  # set for re-exports


class Declaration:
    """A named top-level declaration node inside a source file."""

    __slots__ = ("node", "source_file")

    def __init__(self, node: Node, source_file: "SourceFile"):
        self.node = node
        self.source_file = source_file

    @property
    def kind(self) -> str:
        return self.node.type

    @property
    def name(self) -> Optional[str]:
        name_node = self.node.child_by_field_name("name")
        return node_text(name_node) if name_node is not None else None

    @property
    def statement(self) -> Node:
        """The statement that carries this declaration's documentation comments."""
        node = self.node
        if node.type == "variable_declarator" and node.parent is not None:
            node = node.parent
        while node.parent is not None and node.parent.type in ("export_statement", "ambient_declaration"):
            node = node.parent
        return node

    @property
    def text(self) -> str:
        return node_text(self.statement)

    @property
    def key(self):
        return (self.source_file.path, self.node.start_byte, self.node.end_byte)

    def __eq__(self, other):
        return isinstance(other, Declaration) and self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"Declaration({self.kind}, {self.name!r}, {self.source_file.path})"


class Symbol:
    def __init__(self, name: str, declarations=None, module_specifier: Optional[str] = None,
                 namespace: Optional["SourceFile"] = None):
        self.name = name
        self.declarations: List[Declaration] = list(declarations or [])
        self.module_specifier = module_specifier
        self.namespace = namespace

    @property
    def is_external(self) -> bool:
        """Imported from a module that could not be resolved (usually a package without typings)."""
        return not self.declarations and self.namespace is None and self.module_specifier is not None

    @property
    def value_declaration(self) -> Optional[Declaration]:
        for decl in self.declarations:
            if decl.kind in VALUE_TYPES:
                return decl
        return None

    @property
    def type_declarations(self) -> List[Declaration]:
        return [decl for decl in self.declarations if decl.kind in TYPE_TYPES]

    def __repr__(self):
        return f"Symbol({self.name!r}, {self.declarations!r})"


class SourceFile:
    def __init__(self, path: str, code: bytes, tree):
        self.path = path
        self.code = code
        self.tree = tree
        self.root_node = tree.root_node
        self.imports: Dict[str, ImportBinding] = {}
        self.locals: Dict[str, List[Declaration]] = defaultdict(list)
        self.globals: Dict[str, List[Declaration]] = defaultdict(list)
        self.exports: List[ExportEntry] = []
        self.star_exports: List[str] = []
        self.default_declarations: List[Declaration] = []
        self.is_module = False
        self._index()

    def _index(self):
        for child in self.root_node.named_children:
            if child.type == "import_statement":
                self.is_module = True
                self._index_import(child)
            elif child.type == "export_statement":
                self.is_module = True
                self._index_export(child)
            elif child.type == "ambient_declaration":
                self._index_ambient(child)
            elif child.type in DECLARATION_TYPES or child.type in VARIABLE_STATEMENT_TYPES:
                self._add_declaration(child, self.locals)
        if not self.is_module:
            # script files declare into the global scope
            for name, decls in self.locals.items():
                self.globals[name].extend(decls)

    def _add_declaration(self, node: Node, scope) -> List[str]:
        names = []
        if node.type == "ambient_declaration":
            for child in node.named_children:
                names.extend(self._add_declaration(child, scope))
        elif node.type in VARIABLE_STATEMENT_TYPES:
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name_node = declarator.child_by_field_name("name")
                if name_node is not None and name_node.type == "identifier":
                    scope[node_text(name_node)].append(Declaration(declarator, self))
                    names.append(node_text(name_node))
        elif node.type in DECLARATION_TYPES:
            decl = Declaration(node, self)
            if decl.name:
                scope[decl.name].append(decl)
                names.append(decl.name)
        return names

    def _index_ambient(self, node: Node):
        for child in node.named_children:
            if child.type == "statement_block":
                # declare global { ... }
                for stmt in child.named_children:
                    self._add_declaration(stmt, self.globals)
            else:
                self._add_declaration(child, self.locals)

    def _index_import(self, node: Node):
        source = node.child_by_field_name("source")
        for child in node.named_children:
            if child.type == "import_require_clause":
                ident = next((c for c in child.named_children if c.type == "identifier"), None)
                req_source = child.child_by_field_name("source")
                if ident is not None and req_source is not None:
                    local = node_text(ident)
                    self.imports[local] = ImportBinding(local, "*", string_literal_value(req_source))
            if child.type != "import_clause" or source is None:
                continue
            specifier = string_literal_value(source)
            for clause in child.named_children:
                if clause.type == "identifier":
                    local = node_text(clause)
                    self.imports[local] = ImportBinding(local, "default", specifier)
                elif clause.type == "namespace_import":
                    ident = next((c for c in clause.named_children if c.type == "identifier"), None)
                    if ident is not None:
                        local = node_text(ident)
                        self.imports[local] = ImportBinding(local, "*", specifier)
                elif clause.type == "named_imports":
                    for spec in clause.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name_node = spec.child_by_field_name("name")
                        alias_node = spec.child_by_field_name("alias")
                        imported = _module_export_name(name_node)
                        local = node_text(alias_node) if alias_node is not None else imported
                        self.imports[local] = ImportBinding(local, imported, specifier)

    def _index_export(self, node: Node):
        source = node.child_by_field_name("source")
        specifier = string_literal_value(source) if source is not None else None
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")
        is_default = any(c.type == "default" for c in node.children)

        if declaration is not None:
            names = self._add_declaration(declaration, self.locals)
            if is_default:
                if names:
                    self.exports.append(ExportEntry("default", names[0], None))
                else:
                    self.default_declarations.append(Declaration(declaration, self))
                    self.exports.append(ExportEntry("default", None, None))
            else:
                for name in names:
                    self.exports.append(ExportEntry(name, name, None))
            return

        if value is not None:
            if is_default and value.type == "identifier":
                self.exports.append(ExportEntry("default", node_text(value), None))
            elif is_default and value.type == "class":
                # export default class extends Base { ... }
                self.default_declarations.append(Declaration(value, self))
                self.exports.append(ExportEntry("default", None, None))
            return

        for child in node.named_children:
            if child.type == "export_clause":
                for spec in child.named_children:
                    if spec.type != "export_specifier":
                        continue
                    name = _module_export_name(spec.child_by_field_name("name"))
                    alias_node = spec.child_by_field_name("alias")
                    exported = _module_export_name(alias_node) if alias_node is not None else name
                    self.exports.append(ExportEntry(exported, name, specifier))
                return
            if child.type == "namespace_export" and specifier is not None:
                ident = next((c for c in child.named_children if c.type in ("identifier", "string")), None)
                if ident is not None:
                    self.exports.append(ExportEntry(_module_export_name(ident), "*", specifier))
                return

        if specifier is not None and any(c.type == "*" for c in node.children):
            self.star_exports.append(specifier)


def _module_export_name(node: Optional[Node]) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return string_literal_value(node)
    return node_text(node)


class TypeScriptProject:
    """Per-run analysis context: parsed files, module resolution and name lookup.

    Nothing is shared between instances; build a new project for every
    extraction so edited sources are always re-read.
    """

    def __init__(self, root_dir: str, tsconfig_path: Optional[str] = None):
        self.root_dir = os.path.abspath(root_dir)
        if tsconfig_path is None:
            candidate = os.path.join(self.root_dir, CONFIG_FILENAME)
            tsconfig_path = candidate if os.path.isfile(candidate) else None
        self.tsconfig_path = tsconfig_path
        self.options = load_compiler_options(tsconfig_path, self.root_dir)
        self.resolver = ModuleResolver(self.options, is_file=self._is_file)
        self._files: Dict[str, SourceFile] = {}
        self._virtual: Dict[str, str] = {}
        self._exports: Dict[str, "OrderedDict[str, Symbol]"] = {}
        self._resolving = set()
        self._globals: Optional[Dict[str, List[Declaration]]] = None
        self._parsers = {
            "ts": Parser(TS_LANGUAGE),
            "tsx": Parser(TSX_LANGUAGE),
        }

    def _is_file(self, path: str) -> bool:
        return os.path.normpath(path) in self._virtual or os.path.isfile(path)

    def _abspath(self, path: str) -> str:
        if not os.path.isabs(path):
            path = os.path.join(self.root_dir, path)
        return os.path.normpath(path)

    def _parse(self, path: str, text: str) -> SourceFile:
        parser = self._parsers["tsx" if path.endswith((".tsx", ".jsx")) else "ts"]
        code = text.encode("utf-8")
        return SourceFile(path, code, parser.parse(code))

    def create_source_file(self, path: str, text: str) -> SourceFile:
        """Register an in-memory source file, replacing any earlier version."""
        path = self._abspath(path)
        self._virtual[path] = text
        self._files[path] = self._parse(path, text)
        self._exports.clear()
        self._globals = None
        return self._files[path]

    def get_source_file(self, path: str) -> Optional[SourceFile]:
        path = self._abspath(path)
        if path not in self._files:
            if path in self._virtual:
                text = self._virtual[path]
            elif os.path.isfile(path):
                text = read_source_text(path)
            else:
                return None
            self._files[path] = self._parse(path, text)
        return self._files[path]

    def get_source_file_or_throw(self, path: str) -> SourceFile:
        source_file = self.get_source_file(path)
        if source_file is None:
            raise FileNotFoundError(f"Source file not found: {self._abspath(path)}")
        return source_file

    def discover_source_files(self, include_declarations: bool = False) -> List[str]:
        found = discover_source_files(self.root_dir, include_declarations=include_declarations)
        for path in self._virtual:
            if path not in found and (include_declarations or not path.endswith(".d.ts")):
                found.append(path)
        return sorted(found)

    def find_entry_file(self, entry: Optional[str] = None) -> SourceFile:
        if entry:
            return self.get_source_file_or_throw(entry)
        source_file = self.get_source_file(ENTRY_FILE)
        if source_file is not None:
            return source_file
        for path in self.discover_source_files():
            if os.path.basename(path) == "index.ts":
                return self.get_source_file_or_throw(path)
        raise FileNotFoundError(f"No index.ts entry module found under {self.root_dir}")

    def resolve_module(self, specifier: str, from_file: SourceFile) -> Optional[SourceFile]:
        path = self.resolver.resolve(specifier, from_file.path)
        return self.get_source_file(path) if path else None

    def _module_exports(self, source_file: SourceFile) -> "OrderedDict[str, Symbol]":
        if source_file.path in self._exports:
            return self._exports[source_file.path]
        if source_file.path in self._resolving:
            return OrderedDict()

        self._resolving.add(source_file.path)
        try:
            result: "OrderedDict[str, Symbol]" = OrderedDict()
            for entry in source_file.exports:
                if entry.exported_name in result:
                    continue
                symbol = self._resolve_export_entry(source_file, entry)
                if symbol is not None:
                    result[entry.exported_name] = symbol

            for specifier in source_file.star_exports:
                target = self.resolve_module(specifier, source_file)
                if target is None:
                    logger.warning("Cannot follow `export *` from %r in %s", specifier, source_file.path)
                    continue
                for name, symbol in self._module_exports(target).items():
                    if name != "default" and name not in result:
                        result[name] = symbol
        finally:
            self._resolving.discard(source_file.path)

        self._exports[source_file.path] = result
        return result

    def _resolve_export_entry(self, source_file: SourceFile, entry: ExportEntry) -> Optional[Symbol]:
        if entry.specifier is None:
            if entry.local_name is None:
                return Symbol("default", source_file.default_declarations)
            symbol = self.resolve_name(source_file, entry.local_name)
            if symbol is None:
                logger.warning("Exported name %r is not declared in %s", entry.local_name, source_file.path)
            return symbol

        target = self.resolve_module(entry.specifier, source_file)
        if target is None:
            return Symbol(entry.exported_name, module_specifier=entry.specifier)
        if entry.local_name == "*":
            return Symbol(entry.exported_name, namespace=target)
        return self._module_exports(target).get(entry.local_name)

    def resolve_export(self, source_file: SourceFile, name: str) -> Optional[Symbol]:
        return self._module_exports(source_file).get(name)

    def get_exported_declarations(self, source_file: SourceFile) -> "OrderedDict[str, List[Declaration]]":
        """Exported name to declarations: local and named exports in source order, then `export *`."""
        exported = OrderedDict()
        for name, symbol in self._module_exports(source_file).items():
            if symbol.declarations:
                exported[name] = list(symbol.declarations)
        return exported

    def resolve_name(self, source_file: SourceFile, name: str) -> Optional[Symbol]:
        if name in source_file.locals:
            return Symbol(name, source_file.locals[name])

        binding = source_file.imports.get(name)
        if binding is not None:
            target = self.resolve_module(binding.specifier, source_file)
            if target is None:
                return Symbol(name, module_specifier=binding.specifier)
            if binding.imported_name == "*":
                return Symbol(name, namespace=target)
            symbol = self.resolve_export(target, binding.imported_name)
            if symbol is None:
                logger.warning("%r is not exported by %s", binding.imported_name, target.path)
            return symbol

        decls = self.global_declarations().get(name)
        if decls:
            return Symbol(name, decls)
        return None

    def resolve_qualified_name(self, source_file: SourceFile, qualified: str) -> Optional[Symbol]:
        """Resolve `ns.Name` style references through namespace imports."""
        parts = [p.strip() for p in qualified.split(".")]
        symbol = self.resolve_name(source_file, parts[0])
        for part in parts[1:]:
            if symbol is None:
                return None
            if symbol.is_external:
                return Symbol(qualified, module_specifier=symbol.module_specifier)
            if symbol.namespace is None:
                return None
            symbol = self.resolve_export(symbol.namespace, part)
        return symbol

    def global_declarations(self) -> Dict[str, List[Declaration]]:
        if self._globals is None:
            self._globals = defaultdict(list)
            for path in self.discover_source_files(include_declarations=True):
                source_file = self.get_source_file(path)
                if source_file is None:
                    continue
                for name, decls in source_file.globals.items():
                    self._globals[name].extend(decls)
        return self._globals
