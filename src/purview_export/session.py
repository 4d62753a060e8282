"""Security & Compliance PowerShell session.

A single `pwsh` process is started per run, connected once with
`Connect-IPPSSession`, then fed one command line at a time on stdin. Each
command writes one result envelope line followed by an end marker, so the
reader knows where the output of a command stops. Anything else the process
prints (banners, WARNING lines) is passed to the debug log.
"""
from __future__ import annotations

import json
import logging
import subprocess
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol

from .config import Settings
from .errors import ComplianceConnectionError, QueryError

logger = logging.getLogger(__name__)

RESULT_PREFIX = "@@PVX_RESULT@@"
END_MARKER = "@@PVX_END@@"
JSON_DEPTH = 20
# pwsh otherwise writes to a pipe in the console code page (cp1252 on most Windows hosts)
OUTPUT_ENCODING_COMMAND = "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8"


class ComplianceSession(Protocol):
    """What the fetch stage needs from a session."""

    def query(self, command: str) -> List[Dict[str, Any]]:
        ...


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def wrap_command(command: str) -> str:
    """Wrap a pipeline so it emits one JSON envelope line and the end marker.

    Kept on a single line: `pwsh -Command -` executes stdin line by line.
    """
    return (
        "try { $ErrorActionPreference = 'Stop'; $__r = @(" + command + "); "
        "$__o = [ordered]@{ ok = $true; data = $__r } } "
        "catch { $__o = [ordered]@{ ok = $false; error = $_.Exception.Message } }; "
        f"Write-Output ('{RESULT_PREFIX}' + ($__o | ConvertTo-Json -Depth {JSON_DEPTH} -Compress)); "
        f"Write-Output '{END_MARKER}'"
    )


def parse_envelope(command: str, lines: List[str]) -> List[Dict[str, Any]]:
    """Turn the lines printed for one command into a list of records."""
    envelope: Optional[Dict[str, Any]] = None
    for line in lines:
        if line.startswith(RESULT_PREFIX):
            try:
                envelope = json.loads(line[len(RESULT_PREFIX):])
            except json.JSONDecodeError as exc:
                raise QueryError(command, f"unreadable output ({exc})") from exc
        elif line.strip():
            logger.debug("pwsh: %s", line)

    if envelope is None:
        raise QueryError(command, "no result returned")
    if not envelope.get("ok"):
        raise QueryError(command, str(envelope.get("error") or "unknown error"))

    data = envelope.get("data")
    if data is None:
        return []
    # ConvertTo-Json unwraps single-element arrays
    if isinstance(data, dict):
        data = [data]
    return [item for item in data if isinstance(item, dict)]


def build_connect_command(settings: Settings) -> str:
    """Connect-IPPSSession line for certificate (app-only) or interactive login."""
    parts = ["Import-Module ExchangeOnlineManagement -ErrorAction Stop;", "Connect-IPPSSession", "-ShowBanner:$false"]
    if settings.uses_certificate:
        parts += ["-AppId", ps_quote(settings.client_id or ""), "-Organization", ps_quote(settings.organization or "")]
        if settings.cert_thumbprint:
            parts += ["-CertificateThumbprint", ps_quote(settings.cert_thumbprint)]
        else:
            parts += ["-CertificateFilePath", ps_quote(settings.cert_path or "")]
            if settings.cert_password:
                parts += [
                    "-CertificatePassword",
                    f"(ConvertTo-SecureString {ps_quote(settings.cert_password)} -AsPlainText -Force)",
                ]
    else:
        parts += ["-UserPrincipalName", ps_quote(settings.user_principal_name or "")]
    return " ".join(parts)


class PowerShellSession:
    """Long-lived pwsh process connected to Security & Compliance PowerShell."""

    def __init__(self, settings: Settings, executable: Optional[str] = None):
        self.settings = settings
        self.executable = executable or settings.pwsh_path or "pwsh"
        self._proc: Optional[subprocess.Popen] = None
        self.connected = False

    def _start(self) -> None:
        try:
            self._proc = subprocess.Popen(
                [self.executable, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", "-"],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise ComplianceConnectionError(f"Could not start {self.executable}: {exc}") from exc

    def _send(self, line: str) -> None:
        if self._proc is None or self._proc.poll() is not None:
            raise QueryError(line, "PowerShell process is not running")
        assert self._proc.stdin is not None
        try:
            self._proc.stdin.write(line + "\n")
            self._proc.stdin.flush()
        except (OSError, ValueError) as exc:
            # broken pipe, or stdin already closed
            raise QueryError(line, f"could not write to PowerShell ({exc})") from exc

    def _run(self, line: str) -> List[str]:
        self._send(line)
        assert self._proc is not None and self._proc.stdout is not None

        out: List[str] = []
        try:
            for raw in self._proc.stdout:
                text = raw.rstrip("\r\n")
                if text == END_MARKER:
                    return out
                out.append(text)
        except (OSError, ValueError) as exc:
            raise QueryError(line, f"could not read PowerShell output ({exc})") from exc
        raise QueryError(line, "PowerShell process exited before the command finished")

    def connect(self) -> None:
        self._start()
        command = build_connect_command(self.settings)
        logger.info("Connecting to Security & Compliance PowerShell ...")
        try:
            self._send(OUTPUT_ENCODING_COMMAND)
            lines = self._run(wrap_command(command))
            parse_envelope("Connect-IPPSSession", lines)
        except QueryError as exc:
            self.close()
            raise ComplianceConnectionError(exc.message) from exc
        self.connected = True
        logger.info("Connected to Security & Compliance PowerShell")

    def query(self, command: str) -> List[Dict[str, Any]]:
        logger.debug("Running %s", command)
        return parse_envelope(command, self._run(wrap_command(command)))

    def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return
        try:
            if self.connected and proc.poll() is None and proc.stdin is not None:
                proc.stdin.write("Disconnect-ExchangeOnline -Confirm:$false -ErrorAction SilentlyContinue\n")
                proc.stdin.write("exit\n")
                proc.stdin.flush()
            if proc.stdin is not None:
                proc.stdin.close()
            proc.wait(timeout=30)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.warning("PowerShell session did not exit cleanly (%s); terminating", exc)
            proc.kill()
            proc.wait()
        finally:
            self.connected = False
        logger.info("Compliance session closed")


@contextmanager
def compliance_session(settings: Settings) -> Iterator[PowerShellSession]:
    """Open one connected session and release it on every exit path."""
    settings.validate_for_session()
    session = PowerShellSession(settings)
    session.connect()
    try:
        yield session
    finally:
        session.close()
