import pytest

from activitypack.errors import SymbolResolutionError
from activitypack.extractors.type_resolver import TypeResolver

TYPES = """
    export interface Base {
        a: string;
    }

    export interface Derived extends Base {
        b: number;
        c?: boolean;
    }

    export interface Merged { first: string; }
    export interface Merged { second: string; }

    export class Model {
        static count: number;
        id: string;
        constructor() {}
        save(force: boolean): void {}
    }

    export type Id = string;
    export type IdRef = Id;
    export type Mode = "read" | "write";
    export type Out = Promise<Derived>;
    export type OutRef = Out;

    export interface Box<T> { value: T; items: T[]; }
    export interface Pair<K, V = K> { key: K; value: V; }
    export interface NumberBox extends Box<number> { label: string; }
    export class Holder<T> { held: T; }
    export type Maybe<T> = T | null;
    export type Async<T> = Promise<T>;
"""


@pytest.fixture
def resolve(memory_project):
    def _resolve(alias_value, strict=False, extra=""):
        project = memory_project({
            "src/types.ts": TYPES,
            "src/subject.ts": f"""
                import {{
                    Base, Derived, Merged, Model, Id, IdRef, Mode, Out, OutRef,
                    Box, Pair, NumberBox, Holder, Maybe, Async,
                }} from "./types";
                {extra}
                export type T = {alias_value};
            """,
        })
        project.options.strict_null_checks = strict
        source_file = project.get_source_file("src/subject.ts")
        node = source_file.locals["T"][0].node.child_by_field_name("value")
        return TypeResolver(project), node, source_file
    return _resolve


@pytest.fixture
def render(resolve):
    def _render(alias_value, strict=False, optional=False):
        resolver, node, source_file = resolve(alias_value, strict)
        return resolver.render(node, source_file, optional=optional)
    return _render


@pytest.mark.parametrize("alias_value,expected", [
    ("string", "string"),
    ("Array<string>", "string[]"),
    ("number[]", "number[]"),
    ("(string | number)[]", "(string | number)[]"),
    ("'a' | \"b\"", '"a" | "b"'),
    ("true | false", "boolean"),
    ("{ a: string; b?: number }", "{ a: string; b?: number; }"),
    ("Record<string, Base>", "Record<string, Base>"),
    ("Promise<number>", "Promise<number>"),
    ("(value: string) => void", "(value: string) => void"),
    ("Id", "string"),
    ("IdRef", "string"),
    ("Mode", "Mode"),
    ("Derived", "Derived"),
    ("[string, number]", "[string, number]"),
    ("Box<Id>", "Box<string>"),
])
def test_render(render, alias_value, expected):
    assert render(alias_value) == expected


def test_nullish_members_dropped_without_strict_null_checks(render):
    assert render("string | null | undefined") == "string"
    assert render("null") == "null"


def test_nullish_members_last_with_strict_null_checks(render):
    assert render("null | string", strict=True) == "string | null"
    assert render("undefined | number | null", strict=True) == "number | undefined | null"


def test_optional_properties_include_undefined_only_when_strict(render):
    assert render("number", optional=True) == "number"
    assert render("number", strict=True, optional=True) == "number | undefined"
    assert render("(a: string) => void", strict=True, optional=True) == "((a: string) => void) | undefined"


@pytest.mark.parametrize("alias_value,expected", [
    ("Promise<Base>", "Base"),
    ("PromiseLike<Base>", "Base"),
    ("Out", "Derived"),
    ("OutRef", "Derived"),
    ("Promise<void>", "void"),
    ("Base", "Base"),
    ("Array<Base>", "Base[]"),
    ("Async<Base>", "Base"),
    ("Async<Box<number>>", "Box<number>"),
    ("Async<void>", "void"),
])
def test_unwrap_async(resolve, alias_value, expected):
    resolver, node, source_file = resolve(alias_value)
    unwrapped = resolver.unwrap_async(node, source_file)
    assert resolver.render(unwrapped.node, unwrapped.source_file, bindings=unwrapped.bindings) == expected


def _names(members):
    return [m.name for m in members]


@pytest.mark.parametrize("alias_value,expected", [
    ("Base", ["a"]),
    ("Derived", ["b", "c", "a"]),
    ("Merged", ["first", "second"]),
    ("Model", ["id", "save"]),
    ("Pick<Derived, 'a' | 'c'>", ["c", "a"]),
    ("Omit<Derived, 'b'>", ["c", "a"]),
    ("Omit<Derived, keyof Base>", ["b", "c"]),
    ("Base & { extra: number }", ["a", "extra"]),
    ("{ x: string; y(): void }", ["x", "y"]),
    ("Base | null", ["a"]),
    ("string", []),
    ("void", []),
])
def test_get_properties(resolve, alias_value, expected):
    resolver, node, source_file = resolve(alias_value)
    assert _names(resolver.get_properties(node, source_file)) == expected


def test_partial_and_required_change_optionality(resolve):
    resolver, node, source_file = resolve("Partial<Derived>")
    assert all(m.optional for m in resolver.get_properties(node, source_file))

    resolver, node, source_file = resolve("Required<Derived>")
    assert not any(m.optional for m in resolver.get_properties(node, source_file))


def test_get_own_members_skips_inherited(resolve):
    resolver, node, source_file = resolve("Derived")
    assert _names(resolver.get_own_members(node, source_file)) == ["b", "c"]


def test_get_own_members_follows_aliases(resolve):
    resolver, node, source_file = resolve("Props", extra="type Props = Base;")
    assert _names(resolver.get_own_members(node, source_file)) == ["a"]


@pytest.mark.parametrize("alias_value", ["Missing", "string", "string | number"])
def test_get_own_members_requires_a_symbol(resolve, alias_value):
    resolver, node, source_file = resolve(alias_value)
    with pytest.raises(SymbolResolutionError):
        resolver.get_own_members(node, source_file)


def test_unresolved_module_types_are_opaque(resolve):
    resolver, node, source_file = resolve("External", extra='import { External } from "some-untyped-package";')
    assert resolver.get_properties(node, source_file) == []
    assert resolver.get_own_members(node, source_file) == []
    assert resolver.render(node, source_file) == "External"


def _types(resolver, members):
    return {
        m.name: resolver.render(m.type_node, m.source_file, optional=m.optional, bindings=m.bindings)
        for m in members
    }


@pytest.mark.parametrize("alias_value,expected", [
    ("Box<string>", {"value": "string", "items": "string[]"}),
    ("Box<Mode | Id>", {"value": "Mode | string", "items": "(Mode | string)[]"}),
    ("NumberBox", {"label": "string", "value": "number", "items": "number[]"}),
    ("Pair<string>", {"key": "string", "value": "string"}),
    ("Pair<string, Base>", {"key": "string", "value": "Base"}),
    ("Holder<Derived>", {"held": "Derived"}),
    ("Maybe<Box<boolean>>", {"value": "boolean", "items": "boolean[]"}),
    ("Partial<Box<number>>", {"value": "number", "items": "number[]"}),
    ("Box<Box<number>>", {"value": "Box<number>", "items": "Box<number>[]"}),
])
def test_generic_type_arguments_are_applied(resolve, alias_value, expected):
    resolver, node, source_file = resolve(alias_value)
    assert _types(resolver, resolver.get_properties(node, source_file)) == expected


def test_generic_own_members(resolve):
    resolver, node, source_file = resolve("Props", extra="type Props = Box<number>;")
    assert _types(resolver, resolver.get_own_members(node, source_file)) == {
        "value": "number",
        "items": "number[]",
    }
