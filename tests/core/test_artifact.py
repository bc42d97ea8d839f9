"""Tests for loading the findings artifact."""

import json

import pytest

from scheck.core.artifact import load_findings
from scheck.core.errors import ArtifactInvalidError, ArtifactNotFoundError
from scheck.models.finding import Severity

FINDING = {
    "invariantId": "WEBHOOK.IDEMPOTENT",
    "severity": "P0",
    "message": "Webhook handler does not deduplicate events",
    "evidence": [
        {"file": "src/webhook.ts", "line": 10, "symbol": "handlePost", "context": "stripe: handlePost"}
    ],
}


class TestLoadFindings:
    """Tests for load_findings function."""

    @pytest.mark.parametrize(
        "payload",
        [
            [FINDING],
            {"findings": [FINDING]},
            {"results": [{"findings": [FINDING]}, {"findings": []}]},
        ],
    )
    def test_accepted_shapes(self, tmp_path, payload):
        path = tmp_path / "findings.json"
        path.write_text(json.dumps(payload))

        findings = load_findings(path)

        assert len(findings) == 1
        assert findings[0].invariant_id == "WEBHOOK.IDEMPOTENT"
        assert findings[0].severity is Severity.P0
        assert findings[0].primary.symbol == "handlePost"

    def test_results_are_concatenated(self, tmp_path):
        other = dict(FINDING, invariantId="OTHER.ONE")
        path = tmp_path / "findings.json"
        path.write_text(json.dumps({"results": [{"findings": [FINDING]}, {"findings": [other]}]}))

        assert [f.invariant_id for f in load_findings(path)] == ["WEBHOOK.IDEMPOTENT", "OTHER.ONE"]

    def test_extra_fields_ignored(self, tmp_path):
        path = tmp_path / "findings.json"
        path.write_text(json.dumps([dict(FINDING, confidence=0.9, ruleUrl="https://x")]))

        assert len(load_findings(path)) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            load_findings(tmp_path / "missing.json")
        assert exc_info.value.code == "SC_ARTIFACT_501"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "findings.json"
        path.write_text("{")

        with pytest.raises(ArtifactInvalidError) as exc_info:
            load_findings(path)
        assert exc_info.value.code == "SC_ARTIFACT_502"

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "findings.json"
        path.write_text(json.dumps({"items": []}))

        with pytest.raises(ArtifactInvalidError, match="Expected a list"):
            load_findings(path)

    def test_invalid_finding(self, tmp_path):
        path = tmp_path / "findings.json"
        path.write_text(json.dumps([FINDING, {"invariantId": "X", "severity": "P9"}]))

        with pytest.raises(ArtifactInvalidError, match="Finding 2 is invalid"):
            load_findings(path)

    def test_empty_list(self, tmp_path):
        path = tmp_path / "findings.json"
        path.write_text("[]")

        assert load_findings(path) == []
