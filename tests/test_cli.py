from __future__ import annotations

import os
from contextlib import contextmanager

import pytest

from purview_export import cli
from purview_export.errors import ComplianceConnectionError

from conftest import FakeSession


@pytest.fixture(autouse=True)
def cert_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CLIENT_ID", "app")
    monkeypatch.setenv("ORGANIZATION", "contoso.onmicrosoft.com")
    monkeypatch.setenv("CERT_THUMBPRINT", "ABC")
    monkeypatch.delenv("CLIENT_SECRET", raising=False)


def test_parser_requires_output_and_tenant():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
    args = cli.build_parser().parse_args(["--output-dir", "o", "--tenant-name", "T", "--docx"])
    assert args.docx and not args.pptx and not args.enrich


def test_main_runs_export(monkeypatch, tmp_path, raw_responses, capsys):
    session = FakeSession(raw_responses)

    @contextmanager
    def fake_session(settings):
        yield session

    monkeypatch.setattr(cli, "compliance_session", fake_session)
    out_dir = tmp_path / "out"
    code = cli.main(["--output-dir", str(out_dir), "--tenant-name", "Contoso", "--markdown",
                     "--logs-dir", str(tmp_path / "logs")])

    assert code == cli.EXIT_OK
    printed = capsys.readouterr().out.split()
    assert any(p.endswith("_Report.md") for p in printed)
    assert any(p.endswith("_Metadata.json") for p in printed)
    assert all(os.path.exists(p) for p in printed)
    assert os.listdir(tmp_path / "logs")


def test_main_connection_failure(monkeypatch, tmp_path):
    @contextmanager
    def failing(settings):
        raise ComplianceConnectionError("denied")
        yield  # pragma: no cover

    monkeypatch.setattr(cli, "compliance_session", failing)
    code = cli.main(["--output-dir", str(tmp_path / "out"), "--tenant-name", "T",
                     "--logs-dir", str(tmp_path / "logs")])
    assert code == cli.EXIT_CONNECTION


def test_main_config_error(monkeypatch, tmp_path):
    monkeypatch.delenv("CERT_THUMBPRINT")
    monkeypatch.delenv("USER_PRINCIPAL_NAME", raising=False)
    code = cli.main(["--output-dir", str(tmp_path / "out"), "--tenant-name", "T",
                     "--config", str(tmp_path / "none.json"), "--logs-dir", str(tmp_path / "logs")])
    assert code == cli.EXIT_CONFIG
