import os
import json
from dataclasses import fields

from activitypack.models import ParameterDescriptor, ProjectManifest


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def adapt_parameter(param: ParameterDescriptor) -> dict:
    out = {}
    for f in fields(param):
        value = getattr(param, f.name)
        if value is None:
            continue
        out[to_camel(f.name)] = list(value) if isinstance(value, (list, tuple)) else value
    return dict(sorted(out.items()))


def adapt_parameters(params) -> dict:
    # declaration order is kept for the map itself
    return {name: adapt_parameter(param) for name, param in params.items()}


def adapt_descriptor(descriptor) -> dict:
    out = {}
    for f in fields(descriptor):
        value = getattr(descriptor, f.name)
        if value is None:
            continue
        if f.name in ("inputs", "outputs"):
            value = adapt_parameters(value)
        elif isinstance(value, (list, tuple)):
            value = list(value)
        out[to_camel(f.name)] = value
    return dict(sorted(out.items()))


def adapt_manifest(manifest: ProjectManifest) -> dict:
    return {
        "activities": [adapt_descriptor(a) for a in manifest.activities],
        "elements": [adapt_descriptor(e) for e in manifest.elements],
    }


def manifest_to_json(manifest: ProjectManifest, pretty: bool = False) -> str:
    data = adapt_manifest(manifest)
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def write_manifest(manifest: ProjectManifest, path: str, pretty: bool = False) -> str:
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(manifest_to_json(manifest, pretty=pretty))
    return path
