from __future__ import annotations

import json

from purview_export.projection import (
    LabelRecord,
    encryption_summary,
    project_auto_label_policy,
    project_auto_label_rule,
    project_dlp_policy,
    project_dlp_rule,
    project_label,
    project_label_policy,
    record_fields,
    serialize_nested,
)

from conftest import encrypt_action


def test_label_projection_fields(raw_labels):
    label = project_label(raw_labels[1])
    assert label.name == "Confidential"
    assert label.id == "2"
    assert label.parent_id is None
    assert label.priority == 10
    assert label.enabled is True
    assert label.encryption_enabled is True
    assert label.encryption_summary == "Template-based (3 permission assignments)"
    encryption = json.loads(label.encryption)
    assert encryption["Enabled"] is True
    assert len(encryption["RightsDefinitions"]) == 3


def test_child_label_carries_parent_and_content_marking(raw_labels):
    label = project_label(raw_labels[2])
    assert label.parent_id == "2"
    assert label.display_name == "Finance"
    marking = json.loads(label.content_marking)
    assert marking == {"applycontentmarkingfooter": {"text": "Confidential - Finance"}}
    assert label.encryption_summary == "None"
    assert label.encryption_enabled is False


def test_disabled_encryption_is_not_enabled():
    label = project_label({"Name": "Draft", "Guid": "9", "LabelActions": [encrypt_action(2, disabled=True)]})
    assert label.encryption_enabled is False
    assert label.encryption_summary == "None"
    # the structure is still carried through
    assert json.loads(label.encryption)["Enabled"] is False


def test_encryption_summary_without_assignment_list():
    assert encryption_summary({"Enabled": True}) == "Template-based"
    assert encryption_summary({"enabled": "True", "RightsDefinitions": []}) == "Template-based (0 permission assignments)"
    assert encryption_summary(None) == "None"
    assert encryption_summary({"Enabled": False, "RightsDefinitions": [1]}) == "None"


def test_explicit_encryption_object_wins():
    raw = {"Name": "X", "Guid": "x", "Encryption": {"Enabled": True, "PermissionAssignments": [{}, {}]}}
    assert project_label(raw).encryption_summary == "Template-based (2 permission assignments)"


def test_missing_fields_become_empty_values():
    label = project_label({})
    assert label.name == ""
    assert label.id == ""
    assert label.parent_id is None
    assert label.priority is None
    assert label.enabled is False
    assert label.encryption == ""
    assert label.content_formats == []

    rule = project_dlp_rule({"Name": "Lonely"})
    assert rule.policy_name == ""
    assert rule.conditions == ""
    assert rule.actions == ""


def test_non_dict_label_actions_are_ignored():
    label = project_label({"Name": "Odd", "Guid": "o", "LabelActions": ["not json", 42, None]})
    assert label.encryption_summary == "None"
    assert label.content_marking == ""


def test_camel_case_keys_are_accepted():
    label = project_label({"name": "Camel", "guid": "c1", "parentId": "p", "priority": "7", "disabled": "false"})
    assert (label.name, label.id, label.parent_id, label.priority, label.enabled) == ("Camel", "c1", "p", 7, True)


def test_serialize_nested_handles_deep_structures():
    value = leaf = {}
    for depth in range(25):
        leaf["level"] = depth
        leaf["child"] = {}
        leaf = leaf["child"]
    text = serialize_nested(value)
    decoded = json.loads(text)
    for depth in range(25):
        assert decoded["level"] == depth
        decoded = decoded["child"]


def test_serialize_nested_decodes_embedded_json():
    assert json.loads(serialize_nested(['{"a": [1, 2]}', "plain"])) == [{"a": [1, 2]}, "plain"]
    assert serialize_nested(None) == ""
    assert serialize_nested([]) == ""


def test_projection_is_idempotent(raw_labels, raw_responses):
    for raw in raw_labels:
        assert project_label(raw) == project_label(raw)
    for raw in raw_responses["Get-DlpComplianceRule"]:
        assert project_dlp_rule(raw) == project_dlp_rule(raw)


def test_enrichment_fills_graph_fields(raw_labels):
    label = project_label(raw_labels[0], {"id": "1", "color": "#00FF00", "contentFormats": ["file", "email"]})
    assert label.color == "#00FF00"
    assert label.content_formats == ["file", "email"]


def test_label_policy_projection(raw_responses):
    policy = project_label_policy(raw_responses["Get-LabelPolicy"][0])
    assert policy.published_label_ids == ["1", "2", "3"]
    assert json.loads(policy.applies_to) == {"ExchangeLocation": ["All"]}
    assert policy.enabled is True


def test_auto_label_projection(raw_responses):
    policy = project_auto_label_policy(raw_responses["Get-AutoSensitivityLabelPolicy"][0])
    assert policy.applied_label == "3"
    assert json.loads(policy.locations) == {"SharePointLocation": ["All"]}
    rule = project_auto_label_rule(raw_responses["Get-AutoSensitivityLabelRule"][0])
    assert rule.policy_name == "Auto Finance"
    assert json.loads(rule.conditions) == [{"name": "Credit Card Number"}]


def test_dlp_projection(raw_responses):
    policy = project_dlp_policy(raw_responses["Get-DlpCompliancePolicy"][0])
    assert policy.workloads == ["Exchange", "SharePoint"]
    assert policy.source == "compliance"

    rule1, rule2 = (project_dlp_rule(r) for r in raw_responses["Get-DlpComplianceRule"])
    assert rule1.policy_name == "PII"
    assert json.loads(rule1.actions) == {"BlockAccess": True}
    assert "ContentContainsSensitiveInformation" in json.loads(rule1.conditions)
    assert json.loads(rule2.exceptions) == {"ExceptIfSenderDomainIs": ["contoso.com"]}
    assert json.loads(rule2.actions) == {"NotifyUser": ["Owner"]}


def test_legacy_dlp_records():
    policy = project_dlp_policy({"Name": "Legacy PII", "Guid": "l1", "State": "Enabled", "Mode": "Audit"},
                                source="legacy")
    assert policy.enabled is True
    assert policy.source == "legacy"
    rule = project_dlp_rule({"Name": "Transport 1", "Guid": "t1", "DlpPolicy": "Legacy PII", "State": "Disabled",
                             "Priority": 3})
    assert rule.policy_name == "Legacy PII"
    assert rule.enabled is False


def test_record_fields_order():
    assert record_fields(LabelRecord)[:4] == ["name", "display_name", "id", "parent_id"]


def test_scalar_label_actions_are_treated_as_empty():
    label = project_label({"Name": "Bad", "Guid": "2", "LabelActions": 5})
    assert label.name == "Bad"
    assert label.encryption_summary == "None"
    assert label.content_marking == ""
