import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from tree_sitter import Node

from activitypack.compiler.source_project import node_text
from activitypack.errors import InvalidMetatagsError

_TAG_LINE = re.compile(r"^@([A-Za-z_$][\w$-]*)\s*(.*)$")

INCOMPATIBLE_METATAGS = (
    ("supportedApps", "unsupportedApps"),
    ("clientOnly", "serverOnly"),
)


def is_jsdoc_comment(text: str) -> bool:
    return text.startswith("/**") and not text.startswith("/**/")


def get_jsdoc_comments(node: Node) -> List[str]:
    """JSDoc blocks in the run of comments directly above `node`, in source order."""
    comments = []
    sibling = node.prev_sibling
    while sibling is not None and sibling.type == "comment":
        text = node_text(sibling)
        if is_jsdoc_comment(text):
            comments.append(text)
        sibling = sibling.prev_sibling
    comments.reverse()
    return comments


def _comment_lines(comment: str) -> List[str]:
    body = comment[3:]
    if body.endswith("*/"):
        body = body[:-2]
    lines = []
    for line in body.splitlines():
        line = line.strip()
        if line.startswith("*"):
            line = line[1:]
            if line.startswith(" "):
                line = line[1:]
        lines.append(line.rstrip())
    return lines


def _parse_block(comment: str):
    current_name = None
    current_lines: List[str] = []
    for line in _comment_lines(comment):
        m = _TAG_LINE.match(line.lstrip())
        if m:
            if current_name is not None:
                yield current_name, current_lines
            current_name = m.group(1)
            current_lines = [m.group(2)]
        elif current_name is not None:
            current_lines.append(line)
    if current_name is not None:
        yield current_name, current_lines


def parse_jsdoc_tags(comments: Iterable[str]) -> "OrderedDict[str, Optional[str]]":
    """Map tag name to tag text over all `comments`; a repeated tag keeps its last value."""
    tags: "OrderedDict[str, Optional[str]]" = OrderedDict()
    for comment in comments:
        for name, lines in _parse_block(comment):
            text = "\n".join(lines).strip()
            if name in tags:
                del tags[name]
            tags[name] = text or None
    return tags


def get_node_tags(node: Node) -> "OrderedDict[str, Optional[str]]":
    return parse_jsdoc_tags(get_jsdoc_comments(node))


def parse_comma_separated_values(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    result = []
    for item in re.split(r"\s*,\s*", value.strip()):
        if item and item not in result:
            result.append(item)
    return result or None


@dataclass(frozen=True)
class MetaTags:
    """Typed view over a tag mapping; unrecognized tags land in `extra`."""

    category: Optional[str] = None
    description: Optional[str] = None
    display_name: Optional[str] = None
    help_url: Optional[str] = None
    deprecated: Optional[str] = None
    placeholder: Optional[str] = None
    default_value: Optional[str] = None
    default_expression_hint: Optional[str] = None
    supported_apps: Optional[List[str]] = None
    unsupported_apps: Optional[List[str]] = None
    hidden: bool = False
    required: bool = False
    no_expressions: bool = False
    online_only: bool = False
    client_only: bool = False
    server_only: bool = False
    present: frozenset = frozenset()
    extra: Dict[str, Optional[str]] = field(default_factory=dict)

    VALUE_TAGS = {
        "category": "category",
        "description": "description",
        "displayName": "display_name",
        "helpUrl": "help_url",
        "deprecated": "deprecated",
        "placeholder": "placeholder",
        "defaultValue": "default_value",
        "defaultExpressionHint": "default_expression_hint",
    }
    # trailing text on these is ignored
    FLAG_TAGS = {
        "hidden": "hidden",
        "required": "required",
        "noExpressions": "no_expressions",
        "onlineOnly": "online_only",
        "clientOnly": "client_only",
        "serverOnly": "server_only",
    }

    @classmethod
    def from_tags(cls, tags: Mapping[str, Optional[str]]) -> "MetaTags":
        values = {}
        extra = {}
        for name, text in tags.items():
            if name in cls.VALUE_TAGS:
                values[cls.VALUE_TAGS[name]] = text
            elif name in cls.FLAG_TAGS:
                values[cls.FLAG_TAGS[name]] = True
            elif name not in ("supportedApps", "unsupportedApps"):
                extra[name] = text
        return cls(
            supported_apps=parse_comma_separated_values(tags.get("supportedApps")),
            unsupported_apps=parse_comma_separated_values(tags.get("unsupportedApps")),
            present=frozenset(tags),
            extra=extra,
            **values,
        )

    def has(self, tag_name: str) -> bool:
        return tag_name in self.present

    def flag(self, tag_name: str) -> Optional[bool]:
        """`True` when the tag is present, else `None` (never `False`)."""
        return True if self.has(tag_name) else None


def validate_metatags(tags: MetaTags, item_type: str, source_text: Optional[str] = None):
    for first, second in INCOMPATIBLE_METATAGS:
        if tags.has(first) and tags.has(second):
            raise InvalidMetatagsError(
                f"You cannot include the @{first} and @{second} metatags on the same {item_type}.",
                source_text,
            )


def read_metatags(node: Node, item_type: str) -> MetaTags:
    tags = MetaTags.from_tags(get_node_tags(node))
    validate_metatags(tags, item_type, node_text(node))
    return tags
