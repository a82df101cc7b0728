import re
from collections import OrderedDict
from typing import Dict, Iterable

from activitypack.extractors.jsdoc_tags import read_metatags
from activitypack.extractors.type_resolver import PropertyMember, TypeResolver
from activitypack.models import ParameterDescriptor

ACTIVITY_INPUT = "activity input"
ACTIVITY_OUTPUT = "activity output"

# lower-to-upper ("inputA"), upper-to-word ("HTMLParser") and letter-to-digit ("input1")
_CASING_INFLECTION = re.compile(r"[a-z][A-Z]|.[A-Z][a-z]|[A-Za-z][0-9]")


def to_display_name(text: str) -> str:
    """`helloWorld` -> `Hello World`, `input1` -> `Input 1`."""
    result = _CASING_INFLECTION.sub(lambda m: f"{m.group(0)[0]} {m.group(0)[1:]}", text)
    return result[:1].upper() + result[1:]


def get_parameter_metadata(
    resolver: TypeResolver, members: Iterable[PropertyMember], item_type: str
) -> Dict[str, ParameterDescriptor]:
    params: Dict[str, ParameterDescriptor] = OrderedDict()
    for member in members:
        tags = read_metatags(member.node, item_type)
        params[member.name] = ParameterDescriptor(
            name=member.name,
            type_name=resolver.render(
                member.type_node, member.source_file, optional=member.optional, bindings=member.bindings
            ),
            display_name=tags.display_name or to_display_name(member.name),
            description=tags.description,
            placeholder=tags.placeholder,
            default_value=tags.default_value,
            default_expression_hint=tags.default_expression_hint,
            deprecated=tags.deprecated,
            is_hidden=tags.flag("hidden"),
            is_required=tags.flag("required"),
            no_expressions=tags.flag("noExpressions"),
            online_only=tags.flag("onlineOnly"),
            client_only=tags.flag("clientOnly"),
            server_only=tags.flag("serverOnly"),
            supported_apps=tags.supported_apps,
            unsupported_apps=tags.unsupported_apps,
        )
    return params
