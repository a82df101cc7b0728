import os
import re
import json
import logging
from typing import Callable, Optional, Dict, List

from activitypack.compiler.tsconfig import CompilerOptions

logger = logging.getLogger(__name__)

RESOLVE_EXTS = (".ts", ".tsx", ".d.ts")
JS_EXTS = (".js", ".jsx", ".mjs", ".cjs")


def is_relative_specifier(specifier: str) -> bool:
    return specifier.startswith("./") or specifier.startswith("../") or specifier in (".", "..")


def match_path_alias(specifier: str, alias_paths: Dict[str, List[str]]) -> List[str]:
    """Expand `specifier` through tsconfig `paths` into candidate relative targets.

    Exact patterns win over wildcard ones, longer prefixes over shorter.
    """
    def sort_key(item):
        pat = item[0]
        return (pat.count("*"), -len(pat))

    for alias_pattern, targets in sorted(alias_paths.items(), key=sort_key):
        if "*" in alias_pattern:
            regex = "^" + re.escape(alias_pattern).replace(r"\*", "(.*)") + "$"
            m = re.match(regex, specifier)
            if not m:
                continue
            wildcards = m.groups()
        else:
            if specifier != alias_pattern:
                continue
            wildcards = ()

        expanded = []
        for tpl in targets:
            rel = tpl
            for w in wildcards:
                rel = rel.replace("*", w, 1)
            expanded.append(rel)
        return expanded

    return []


class ModuleResolver:
    def __init__(self, options: CompilerOptions, is_file: Callable[[str], bool] = os.path.isfile):
        self.options = options
        self._is_file = is_file
        self._cache: Dict[tuple, Optional[str]] = {}

    def resolve(self, specifier: str, from_file: str) -> Optional[str]:
        key = (specifier, os.path.dirname(from_file))
        if key not in self._cache:
            self._cache[key] = self._resolve(specifier, from_file)
            if self._cache[key] is None:
                logger.debug("Unresolved module %r imported from %s", specifier, from_file)
        return self._cache[key]

    def _resolve(self, specifier: str, from_file: str) -> Optional[str]:
        if is_relative_specifier(specifier) or os.path.isabs(specifier):
            return self._try_path(os.path.join(os.path.dirname(from_file), specifier))

        for rel in match_path_alias(specifier, self.options.paths):
            resolved = self._try_path(os.path.join(self.options.paths_base, rel))
            if resolved:
                return resolved

        if self.options.base_url:
            resolved = self._try_path(os.path.join(self.options.base_url, specifier))
            if resolved:
                return resolved

        return self._try_node_modules(specifier, os.path.dirname(from_file))

    def _try_path(self, base: str) -> Optional[str]:
        base = os.path.normpath(base)
        if base.endswith(RESOLVE_EXTS) and self._is_file(base):
            return base

        stem, ext = os.path.splitext(base)
        if ext in JS_EXTS:
            # "./Foo.js" written against a "./Foo.ts" source
            for candidate_ext in RESOLVE_EXTS:
                if self._is_file(stem + candidate_ext):
                    return stem + candidate_ext

        for candidate_ext in RESOLVE_EXTS:
            if self._is_file(base + candidate_ext):
                return base + candidate_ext

        if os.path.isdir(base):
            typings = self._package_typings(base)
            if typings:
                return typings
            for candidate_ext in RESOLVE_EXTS:
                index = os.path.join(base, "index" + candidate_ext)
                if self._is_file(index):
                    return index
        return None

    def _package_typings(self, package_dir: str) -> Optional[str]:
        manifest = os.path.join(package_dir, "package.json")
        if not os.path.isfile(manifest):
            return None
        try:
            with open(manifest, "r", encoding="utf-8") as f:
                pkg = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unable to read %s: %s", manifest, e)
            return None
        for key in ("types", "typings"):
            entry = pkg.get(key)
            if isinstance(entry, str):
                candidate = os.path.normpath(os.path.join(package_dir, entry))
                if self._is_file(candidate):
                    return candidate
                resolved = self._try_path(os.path.splitext(candidate)[0])
                if resolved:
                    return resolved
        return None

    def _try_node_modules(self, specifier: str, start_dir: str) -> Optional[str]:
        if specifier.startswith("@"):
            types_name = specifier[1:].replace("/", "__", 1)
        else:
            types_name = specifier

        current = os.path.abspath(start_dir)
        while True:
            node_modules = os.path.join(current, "node_modules")
            if os.path.isdir(node_modules):
                for candidate in (
                    os.path.join(node_modules, specifier),
                    os.path.join(node_modules, "@types", types_name),
                ):
                    resolved = self._try_path(candidate)
                    if resolved:
                        return resolved
            parent = os.path.dirname(current)
            if parent == current:
                return None
            current = parent
