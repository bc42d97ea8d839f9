"""Shared pytest fixtures for scheck tests."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from scheck.models.finding import Evidence, Finding, Severity


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user config and environment overrides out of every test."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("SCHECK_GIT_ROOT", raising=False)
    monkeypatch.setenv("SCHECK_OWNER", "test-owner")


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def now():
    """A fixed UTC instant used as the current time."""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_finding():
    """Factory for findings with a single primary evidence entry."""

    def _make(
        invariant_id="AUTH.SESSION.ROTATION",
        severity=Severity.P1,
        file="src/auth/session.ts",
        symbol="rotateSession",
        line=42,
        message="Session is not rotated after login",
        context=None,
        extra_evidence=(),
    ):
        evidence = (Evidence(file=file, line=line, symbol=symbol, context=context),)
        return Finding(
            invariant_id=invariant_id,
            severity=severity,
            message=message,
            evidence=evidence + tuple(extra_evidence),
        )

    return _make


@pytest.fixture
def webhook_finding():
    """A WEBHOOK.IDEMPOTENT finding with a stripe anchor."""
    return Finding(
        invariant_id="WEBHOOK.IDEMPOTENT",
        severity=Severity.P0,
        message="Webhook handler does not deduplicate events",
        evidence=(
            Evidence(
                file="src/Webhook.ts",
                line=10,
                symbol="handlePost",
                context="stripe: handlePost",
            ),
        ),
    )


@pytest.fixture
def sample_findings(make_finding):
    """Two unrelated findings of different invariants and severities."""
    return [
        make_finding(),
        make_finding(
            invariant_id="AUTHZ.KEYS.REVOCATION.IMMEDIATE",
            severity=Severity.P0,
            file="src/keys/revoke.ts",
            symbol="revokeKey",
            line=7,
            message="API key revocation is cached",
            context="entity: apiKey",
        ),
    ]


def finding_dict(finding: Finding) -> dict:
    """Serialize a finding the way the detection engine writes it."""
    return finding.model_dump(mode="json", by_alias=True, exclude_none=True)


@pytest.fixture
def write_findings(tmp_path):
    """Write findings to the default artifact location under tmp_path."""

    def _write(findings, path=None):
        target = path or tmp_path / ".scheck" / "findings.json"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"findings": [finding_dict(f) for f in findings]}))
        return target

    return _write


# Pytest markers
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")
