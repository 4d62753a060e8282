from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest

from purview_export.context import ExportOptions, RunContext
from purview_export.errors import QueryError


class FakeSession:
    """Stands in for the pwsh session: maps a command to records or an error."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    def query(self, command):
        self.calls.append(command)
        result = self.responses.get(command, [])
        if isinstance(result, Exception):
            raise result
        return result


def session_factory(session: FakeSession):
    @contextmanager
    def _factory():
        try:
            yield session
        finally:
            session.closed = True
    return _factory


def encrypt_action(assignments=2, disabled=False):
    rights = [{"Identity": f"user{i}@contoso.com", "Rights": "VIEW"} for i in range(assignments)]
    return json.dumps({
        "Type": "encrypt",
        "SubType": None,
        "Settings": [
            {"Key": "disabled", "Value": "true" if disabled else "false"},
            {"Key": "protectiontype", "Value": "template"},
            {"Key": "rightsdefinitions", "Value": json.dumps(rights)},
        ],
    })


@pytest.fixture
def raw_labels():
    return [
        {"Name": "Public", "DisplayName": "Public", "Guid": "1", "ParentId": None, "Priority": 100,
         "Disabled": False, "Tooltip": "Public data", "Comment": "Anyone", "LabelActions": []},
        {"Name": "Confidential", "DisplayName": "Confidential", "Guid": "2", "Priority": 10, "Disabled": False,
         "LabelActions": [encrypt_action(3)]},
        {"Name": "Confidential\\Finance", "DisplayName": "Finance", "Guid": "3", "ParentId": "2", "Priority": 5,
         "Disabled": False, "LabelActions": [json.dumps({
             "Type": "applycontentmarkingfooter",
             "Settings": [{"Key": "text", "Value": "Confidential - Finance"}],
         })]},
    ]


@pytest.fixture
def raw_responses(raw_labels):
    return {
        "Get-Label": raw_labels,
        "Get-LabelPolicy": [
            {"Name": "Global", "Guid": "lp-1", "Enabled": True, "Priority": 0,
             "ScopedLabels": ["1", "2", "3"], "ExchangeLocation": ["All"], "Mode": "Enforce"},
        ],
        "Get-AutoSensitivityLabelPolicy": [
            {"Name": "Auto Finance", "Guid": "ap-1", "Enabled": True, "Mode": "TestWithoutNotifications",
             "ApplySensitivityLabel": "3", "SharePointLocation": ["All"], "Priority": 1},
        ],
        "Get-AutoSensitivityLabelRule": [
            {"Name": "Auto Finance Rule", "Guid": "ar-1", "ParentPolicyName": "Auto Finance", "Priority": 0,
             "Disabled": False, "ContentContainsSensitiveInformation": [{"name": "Credit Card Number"}]},
        ],
        "Get-DlpCompliancePolicy": [
            {"Name": "PII", "Guid": "dp-1", "Enabled": True, "Mode": "Enable", "Workload": "Exchange, SharePoint",
             "ExchangeLocation": ["All"], "Priority": 0},
            {"Name": "Empty", "Guid": "dp-2", "Enabled": False, "Mode": "TestWithNotifications", "Priority": 1},
        ],
        "Get-DlpComplianceRule": [
            {"Name": "Rule1", "Guid": "dr-1", "ParentPolicyName": "PII", "Priority": 2, "Disabled": False,
             "ContentContainsSensitiveInformation": [{"name": "U.S. Social Security Number (SSN)"}],
             "BlockAccess": True},
            {"Name": "Rule2", "Guid": "dr-2", "ParentPolicyName": "PII", "Priority": 1, "Disabled": False,
             "ExceptIfSenderDomainIs": ["contoso.com"], "NotifyUser": ["Owner"]},
        ],
    }


@pytest.fixture
def fake_session(raw_responses):
    return FakeSession(raw_responses)


@pytest.fixture
def run_context(tmp_path):
    return RunContext(
        output_dir=str(tmp_path / "out"),
        tenant_name="Contoso",
        options=ExportOptions(),
        generated_at=datetime(2026, 10, 19, 8, 30, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def query_error():
    def _make(command, message="The term is not recognized"):
        return QueryError(command, message)
    return _make
