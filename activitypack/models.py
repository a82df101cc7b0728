from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    type_name: str
    display_name: str
    description: Optional[str] = None
    placeholder: Optional[str] = None
    default_value: Optional[str] = None
    default_expression_hint: Optional[str] = None
    deprecated: Optional[str] = None
    is_hidden: Optional[bool] = None
    is_required: Optional[bool] = None
    no_expressions: Optional[bool] = None
    online_only: Optional[bool] = None
    client_only: Optional[bool] = None
    server_only: Optional[bool] = None
    supported_apps: Optional[List[str]] = None
    unsupported_apps: Optional[List[str]] = None


@dataclass(frozen=True)
class ActivityDescriptor:
    action: str
    suite: str
    category: str
    inputs: Dict[str, ParameterDescriptor] = field(default_factory=dict)
    outputs: Dict[str, ParameterDescriptor] = field(default_factory=dict)
    display_name: Optional[str] = None
    description: Optional[str] = None
    help_url: Optional[str] = None
    deprecated: Optional[str] = None
    is_hidden: Optional[bool] = None
    online_only: Optional[bool] = None
    client_only: Optional[bool] = None
    server_only: Optional[bool] = None
    supported_apps: Optional[List[str]] = None
    unsupported_apps: Optional[List[str]] = None


@dataclass(frozen=True)
class ElementDescriptor:
    id: str
    suite: str
    inputs: Dict[str, ParameterDescriptor] = field(default_factory=dict)
    display_name: Optional[str] = None
    description: Optional[str] = None
    help_url: Optional[str] = None
    deprecated: Optional[str] = None
    is_hidden: Optional[bool] = None
    online_only: Optional[bool] = None
    client_only: Optional[bool] = None
    server_only: Optional[bool] = None
    supported_apps: Optional[List[str]] = None
    unsupported_apps: Optional[List[str]] = None


@dataclass(frozen=True)
class ProjectManifest:
    activities: List[ActivityDescriptor] = field(default_factory=list)
    elements: List[ElementDescriptor] = field(default_factory=list)
