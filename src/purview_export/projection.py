"""Record projection.

Maps raw cmdlet records (dicts from ConvertTo-Json) to flat, display-ready
records. Projection is a pure function of its input: missing fields become
empty values and nested structures are carried through as JSON text.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Iterable, List, Mapping, Optional

EMPTY_TEXT = ""

CONTENT_MARKING_ACTIONS = (
    "applycontentmarkingheader",
    "applycontentmarkingfooter",
    "applywatermarking",
)
ENDPOINT_ACTIONS = ("protectgroup", "protectdevice", "protectsite")


# --- helpers -----------------------------------------------------------------

def get_field(raw: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """First value present under any of `names`, trying camelCase variants too."""
    if not isinstance(raw, Mapping):
        return default
    for name in names:
        for key in (name, name[:1].lower() + name[1:]):
            if key in raw and raw[key] is not None:
                return raw[key]
    return default


def decode_embedded(value: Any) -> Any:
    """Decode JSON carried inside strings, recursively."""
    if isinstance(value, str):
        text = value.strip()
        if text[:1] in ("{", "[") and text[-1:] in ("}", "]"):
            try:
                return decode_embedded(json.loads(text))
            except json.JSONDecodeError:
                return value
        return value
    if isinstance(value, list):
        return [decode_embedded(v) for v in value]
    if isinstance(value, dict):
        return {k: decode_embedded(v) for k, v in value.items()}
    return value


def serialize_nested(value: Any) -> str:
    """Serialize a nested structure to JSON text; empty structures become ""."""
    if value is None or value == "" or value == [] or value == {}:
        return EMPTY_TEXT
    return json.dumps(decode_embedded(value), ensure_ascii=False, default=str)


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on", "enabled")
    return False


def as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_text(value: Any) -> str:
    if value is None:
        return EMPTY_TEXT
    if isinstance(value, (dict, list)):
        return serialize_nested(value)
    return str(value)


def as_text_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    out: List[str] = []
    for item in items:
        if isinstance(item, Mapping):
            item = get_field(item, "Name", "DisplayName", "Identity", "Id", default=item)
        text = as_text(item)
        if text:
            out.append(text)
    return out


def _key_value_settings(settings: Any) -> Dict[str, Any]:
    """Settings as a dict; accepts [{"Key": .., "Value": ..}] pairs or a dict."""
    settings = decode_embedded(settings)
    if isinstance(settings, Mapping):
        return dict(settings)
    out: Dict[str, Any] = {}
    if isinstance(settings, list):
        for item in settings:
            if isinstance(item, Mapping):
                key = get_field(item, "Key")
                if key is not None:
                    out[str(key).lower()] = decode_embedded(get_field(item, "Value"))
            elif isinstance(item, list) and len(item) == 2:
                out[str(item[0]).lower()] = decode_embedded(item[1])
    return out


def label_actions(raw: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Index a label's LabelActions entries by action type."""
    out: Dict[str, Dict[str, Any]] = {}
    actions = decode_embedded(get_field(raw, "LabelActions", default=[]))
    if isinstance(actions, Mapping):
        actions = [actions]
    if not isinstance(actions, list):
        return out
    for action in actions:
        if not isinstance(action, Mapping):
            continue
        kind = get_field(action, "Type")
        if kind:
            out[str(kind).lower()] = _key_value_settings(get_field(action, "Settings", default=[]))
    return out


def encryption_structure(raw: Mapping[str, Any],
                         actions: Optional[Dict[str, Dict[str, Any]]] = None) -> Optional[Dict[str, Any]]:
    """The label's encryption settings, or None when the label has none."""
    explicit = decode_embedded(get_field(raw, "Encryption"))
    if isinstance(explicit, Mapping):
        return dict(explicit)

    if actions is None:
        actions = label_actions(raw)
    encrypt = actions.get("encrypt")
    if encrypt is None:
        return None
    structure: Dict[str, Any] = {"Enabled": not as_bool(encrypt.get("disabled", False))}
    for key, value in encrypt.items():
        if key == "disabled":
            continue
        if key == "rightsdefinitions":
            structure["RightsDefinitions"] = value
        else:
            structure[key] = value
    return structure


def encryption_enabled(structure: Optional[Mapping[str, Any]]) -> bool:
    return bool(structure) and as_bool(get_field(structure, "Enabled"))


def encryption_summary(structure: Optional[Mapping[str, Any]]) -> str:
    if not encryption_enabled(structure):
        return "None"
    assignments = get_field(structure, "RightsDefinitions", "PermissionAssignments")
    if isinstance(assignments, list):
        return f"Template-based ({len(assignments)} permission assignments)"
    return "Template-based"


# --- projected records -------------------------------------------------------

@dataclass(frozen=True)
class LabelRecord:
    name: str
    display_name: str
    id: str
    parent_id: Optional[str]
    priority: Optional[int]
    enabled: bool
    encryption_enabled: bool
    encryption_summary: str
    tooltip: str
    description: str
    content_marking: str
    encryption: str
    endpoint_protection: str
    auto_labeling: str
    locale_settings: str
    scope: str
    color: str = EMPTY_TEXT
    content_formats: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class LabelPolicyRecord:
    name: str
    id: str
    enabled: bool
    priority: Optional[int]
    published_label_ids: List[str]
    applies_to: str
    mode: str
    settings: str


@dataclass(frozen=True)
class AutoLabelPolicyRecord:
    name: str
    id: str
    enabled: bool
    mode: str
    applied_label: str
    locations: str
    priority: Optional[int]


@dataclass(frozen=True)
class AutoLabelRuleRecord:
    name: str
    id: str
    policy_name: str
    priority: Optional[int]
    enabled: bool
    conditions: str


@dataclass(frozen=True)
class DlpPolicyRecord:
    name: str
    id: str
    enabled: bool
    mode: str
    workloads: List[str]
    locations: str
    priority: Optional[int]
    source: str = "compliance"


@dataclass(frozen=True)
class DlpRuleRecord:
    name: str
    id: str
    policy_name: str
    enabled: bool
    priority: Optional[int]
    mode: str
    conditions: str
    exceptions: str
    actions: str


def record_fields(record_type: type) -> List[str]:
    return [f.name for f in fields(record_type)]


def record_to_dict(record: Any) -> Dict[str, Any]:
    return asdict(record)


# --- projectors --------------------------------------------------------------

def record_id(raw: Mapping[str, Any]) -> str:
    return as_text(get_field(raw, "Guid", "ImmutableId", "Id", "Identity"))


def _enabled(raw: Mapping[str, Any]) -> bool:
    enabled = get_field(raw, "Enabled")
    if enabled is not None:
        return as_bool(enabled)
    disabled = get_field(raw, "Disabled")
    if disabled is not None:
        return not as_bool(disabled)
    return False


def project_label(raw: Mapping[str, Any], enrichment: Optional[Mapping[str, Any]] = None) -> LabelRecord:
    """Project one Get-Label record, optionally merged with its Graph label."""
    actions = label_actions(raw)
    encryption = encryption_structure(raw, actions)

    marking = get_field(raw, "ContentMarking")
    if marking is None:
        marking = {k: actions[k] for k in CONTENT_MARKING_ACTIONS if k in actions} or None
    endpoint = get_field(raw, "EndpointProtection")
    if endpoint is None:
        endpoint = {k: actions[k] for k in ENDPOINT_ACTIONS if k in actions} or None

    parent_id = as_text(get_field(raw, "ParentId")).strip() or None
    enrichment = enrichment or {}

    return LabelRecord(
        name=as_text(get_field(raw, "Name")),
        display_name=as_text(get_field(raw, "DisplayName", "Name")),
        id=record_id(raw),
        parent_id=parent_id,
        priority=as_int(get_field(raw, "Priority")),
        enabled=_enabled(raw),
        encryption_enabled=encryption_enabled(encryption),
        encryption_summary=encryption_summary(encryption),
        tooltip=as_text(get_field(raw, "Tooltip")),
        description=as_text(get_field(raw, "Comment", "Description")),
        content_marking=serialize_nested(marking),
        encryption=serialize_nested(encryption),
        endpoint_protection=serialize_nested(endpoint),
        auto_labeling=serialize_nested(get_field(raw, "Conditions", "AutoLabeling")),
        locale_settings=serialize_nested(get_field(raw, "LocaleSettings")),
        scope=serialize_nested(get_field(raw, "ContentType", "Scope")),
        color=as_text(get_field(enrichment, "Color")),
        content_formats=as_text_list(get_field(enrichment, "ContentFormats")),
    )


def project_label_policy(raw: Mapping[str, Any]) -> LabelPolicyRecord:
    applies_to = {
        key: get_field(raw, key)
        for key in ("ExchangeLocation", "ExchangeLocationException", "ModernGroupLocation", "ModernGroupLocationException")
        if get_field(raw, key)
    }
    return LabelPolicyRecord(
        name=as_text(get_field(raw, "Name")),
        id=record_id(raw),
        enabled=_enabled(raw),
        priority=as_int(get_field(raw, "Priority")),
        published_label_ids=as_text_list(get_field(raw, "ScopedLabels", "Labels")),
        applies_to=serialize_nested(applies_to or get_field(raw, "AppliesTo")),
        mode=as_text(get_field(raw, "Mode")),
        settings=serialize_nested(get_field(raw, "Settings", "PolicySettingsBlob")),
    )


def _locations(raw: Mapping[str, Any]) -> str:
    found = {
        key: get_field(raw, key)
        for key in (
            "ExchangeLocation",
            "SharePointLocation",
            "OneDriveLocation",
            "TeamsLocation",
            "EndpointDlpLocation",
            "OnPremisesScannerDlpLocation",
            "PowerBIDlpLocation",
        )
        if get_field(raw, key)
    }
    return serialize_nested(found or get_field(raw, "Locations"))


def project_auto_label_policy(raw: Mapping[str, Any]) -> AutoLabelPolicyRecord:
    return AutoLabelPolicyRecord(
        name=as_text(get_field(raw, "Name")),
        id=record_id(raw),
        enabled=_enabled(raw),
        mode=as_text(get_field(raw, "Mode")),
        applied_label=as_text(get_field(raw, "ApplySensitivityLabel", "AppliedLabel")),
        locations=_locations(raw),
        priority=as_int(get_field(raw, "Priority")),
    )


def project_auto_label_rule(raw: Mapping[str, Any]) -> AutoLabelRuleRecord:
    conditions = get_field(raw, "ContentContainsSensitiveInformation", "Conditions", "AdvancedRule")
    return AutoLabelRuleRecord(
        name=as_text(get_field(raw, "Name")),
        id=record_id(raw),
        policy_name=as_text(get_field(raw, "ParentPolicyName", "Policy", "PolicyName")),
        priority=as_int(get_field(raw, "Priority")),
        enabled=_enabled(raw),
        conditions=serialize_nested(conditions),
    )


def project_dlp_policy(raw: Mapping[str, Any], source: str = "compliance") -> DlpPolicyRecord:
    workloads = get_field(raw, "Workload", "Workloads")
    if isinstance(workloads, str):
        workloads = [w.strip() for w in workloads.split(",")]
    return DlpPolicyRecord(
        name=as_text(get_field(raw, "Name")),
        id=record_id(raw),
        enabled=_enabled(raw) if source == "compliance" else as_text(get_field(raw, "State")).lower() == "enabled",
        mode=as_text(get_field(raw, "Mode")),
        workloads=as_text_list(workloads),
        locations=_locations(raw),
        priority=as_int(get_field(raw, "Priority")),
        source=source,
    )


_DLP_RULE_SKIP = {
    "name", "guid", "immutableid", "id", "identity", "parentpolicyname", "policy", "dlppolicy",
    "disabled", "enabled", "priority", "mode", "state",
}


def _prefixed(raw: Mapping[str, Any], prefixes: Iterable[str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if key.lower() in _DLP_RULE_SKIP or value in (None, "", [], {}):
            continue
        if any(key.startswith(p) for p in prefixes):
            out[key] = value
    return out


def project_dlp_rule(raw: Mapping[str, Any]) -> DlpRuleRecord:
    conditions = get_field(raw, "AdvancedRule")
    if conditions is None:
        conditions = _prefixed(raw, ("Content", "AccessScope", "From", "SentTo", "Recipient", "Document"))
    exceptions = _prefixed(raw, ("ExceptIf",))
    actions = _prefixed(raw, ("Block", "Notify", "GenerateIncidentReport", "GenerateAlert", "Encrypt",
                              "RestrictAccess", "Report", "SetHeader", "RemoveHeader", "Quarantine"))

    enabled_raw = get_field(raw, "Enabled", "Disabled")
    if enabled_raw is None and get_field(raw, "State") is not None:
        enabled = as_text(get_field(raw, "State")).lower() == "enabled"
    else:
        enabled = _enabled(raw)

    return DlpRuleRecord(
        name=as_text(get_field(raw, "Name")),
        id=record_id(raw),
        policy_name=as_text(get_field(raw, "ParentPolicyName", "Policy", "DlpPolicy")),
        enabled=enabled,
        priority=as_int(get_field(raw, "Priority")),
        mode=as_text(get_field(raw, "Mode")),
        conditions=serialize_nested(conditions),
        exceptions=serialize_nested(exceptions),
        actions=serialize_nested(actions),
    )
