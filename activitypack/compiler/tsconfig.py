import os
import re
import json
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "tsconfig.json"

_JSON_TOKENS = re.compile(r'("(?:\\.|[^"\\])*")|/\*[\s\S]*?\*/|//[^\n]*')
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')


def _strip_json_comments(text: str) -> str:
    # string literals are matched first so "//" inside a path survives
    text = _JSON_TOKENS.sub(lambda m: m.group(1) or "", text)
    return _TRAILING_COMMA.sub(r"\1", text)


def read_tsconfig(config_file_path: str) -> Dict[str, Any]:
    if not os.path.isfile(config_file_path):
        return {}

    try:
        with open(config_file_path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        logger.warning("Unable to read %s: %s", config_file_path, e)
        return {}

    clean = _strip_json_comments(raw).strip()
    if not clean:
        return {}

    try:
        cfg = json.loads(clean)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed %s: %s", config_file_path, e)
        return {}

    return cfg if isinstance(cfg, dict) else {}


def _resolve_extends(config_dir: str, extends: str) -> Optional[str]:
    if extends.startswith("."):
        candidate = os.path.normpath(os.path.join(config_dir, extends))
        if not candidate.endswith(".json"):
            candidate += ".json"
        return candidate if os.path.isfile(candidate) else None

    # package-provided base config, e.g. "@tsconfig/recommended/tsconfig.json"
    current = config_dir
    while True:
        candidate = os.path.join(current, "node_modules", extends)
        for path in (candidate, candidate + ".json", os.path.join(candidate, CONFIG_FILENAME)):
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


class CompilerOptions:
    """The subset of `compilerOptions` the extractor cares about."""

    def __init__(self, config_dir: str, options: Optional[Dict[str, Any]] = None):
        options = options or {}
        self.config_dir = config_dir
        base_url = options.get("baseUrl")
        self.base_url = os.path.normpath(os.path.join(config_dir, base_url)) if base_url else None
        paths = options.get("paths", {})
        self.paths: Dict[str, List[str]] = paths if isinstance(paths, dict) else {}
        self.strict_null_checks = bool(options.get("strictNullChecks", options.get("strict", False)))

    @property
    def paths_base(self) -> str:
        return self.base_url or self.config_dir

    def __repr__(self):
        return (
            f"CompilerOptions(config_dir={self.config_dir!r}, base_url={self.base_url!r}, "
            f"paths={len(self.paths)}, strict_null_checks={self.strict_null_checks})"
        )


def load_compiler_options(config_file_path: Optional[str], root_dir: str) -> CompilerOptions:
    if not config_file_path or not os.path.isfile(config_file_path):
        return CompilerOptions(os.path.abspath(root_dir))

    merged: Dict[str, Any] = {}
    seen = set()
    chain = []
    path = os.path.abspath(config_file_path)
    while path and path not in seen:
        seen.add(path)
        cfg = read_tsconfig(path)
        chain.append((path, cfg))
        extends = cfg.get("extends")
        if isinstance(extends, list):
            # multiple bases: the last one has the highest precedence
            extends = extends[-1] if extends else None
        path = _resolve_extends(os.path.dirname(path), extends) if isinstance(extends, str) else None

    # bases first so the leaf config overrides them; relative options are
    # resolved against the config that declared them
    config_dir = os.path.dirname(chain[0][0])
    for cfg_path, cfg in reversed(chain):
        options = dict(cfg.get("compilerOptions", {}) or {})
        if "baseUrl" in options:
            options["baseUrl"] = os.path.normpath(os.path.join(os.path.dirname(cfg_path), options["baseUrl"]))
        merged.update(options)

    logger.debug("Loaded compiler options from %s", " <- ".join(p for p, _ in chain))
    return CompilerOptions(config_dir, merged)
