"""Tests for the baseline command."""

from datetime import timedelta

import pytest
from click.testing import CliRunner

from scheck.__main__ import cli
from scheck.core.baseline import load_baseline, save_baseline
from scheck.core.finding_id import generate_finding_id
from scheck.core.storage import get_baseline_path
from scheck.models.store import BaselineEntry, create_empty_baseline, utc_now

WIDE = {"COLUMNS": "1000"}


def _invoke(args, **kwargs):
    runner = CliRunner()
    return runner.invoke(cli, args, env=WIDE, **kwargs)


def _stale_baseline(tmp_path, ages_in_days):
    baseline = create_empty_baseline()
    for index, age in enumerate(ages_in_days):
        finding_id = f"OLD.INVARIANT:{index:012d}"
        seen = utc_now() - timedelta(days=age)
        baseline.entries[finding_id] = BaselineEntry(
            finding_id=finding_id,
            invariant_id="OLD.INVARIANT",
            file="src/old.ts",
            created_at=seen,
            last_seen_at=seen,
        )
    save_baseline(get_baseline_path(tmp_path), baseline)


class TestBaselineUpdate:
    """Tests for baseline --update."""

    def test_update_adds_findings(self, tmp_path, sample_findings, write_findings):
        write_findings(sample_findings)

        result = _invoke(["baseline", "--update", "--yes", "--path", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Added 2 new finding(s) to baseline" in result.output
        baseline = load_baseline(get_baseline_path(tmp_path))
        assert set(baseline.entries) == {generate_finding_id(f) for f in sample_findings}

    def test_update_twice_adds_nothing(self, tmp_path, sample_findings, write_findings):
        write_findings(sample_findings)
        args = ["baseline", "--update", "--yes", "--path", str(tmp_path)]

        _invoke(args)
        result = _invoke(args)

        assert result.exit_code == 0
        assert "Added 0 new finding(s) to baseline" in result.output
        assert "2 already present" in result.output
        assert len(load_baseline(get_baseline_path(tmp_path)).entries) == 2

    def test_update_with_notes(self, tmp_path, sample_findings, write_findings):
        write_findings(sample_findings)

        _invoke([
            "baseline", "--update", "--yes", "--notes", "legacy code", "--path", str(tmp_path)
        ])

        baseline = load_baseline(get_baseline_path(tmp_path))
        assert {e.notes for e in baseline.entries.values()} == {"legacy code"}

    def test_update_custom_findings_file(self, tmp_path, sample_findings, write_findings):
        artifact = write_findings(sample_findings[:1], path=tmp_path / "out" / "scan.json")

        result = _invoke([
            "baseline", "--update", "--yes", "--findings", str(artifact), "--path", str(tmp_path)
        ])

        assert result.exit_code == 0, result.output
        assert len(load_baseline(get_baseline_path(tmp_path)).entries) == 1

    def test_non_interactive_skips_prompt(self, tmp_path, sample_findings, write_findings):
        """Without a terminal on stdin no confirmation is asked."""
        write_findings(sample_findings)

        result = _invoke(["baseline", "--update", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "?" not in result.output
        assert get_baseline_path(tmp_path).exists()

    def test_prompt_declined(self, tmp_path, sample_findings, write_findings, monkeypatch):
        write_findings(sample_findings)
        monkeypatch.setattr("scheck.__main__.is_non_interactive", lambda: False)

        result = _invoke(["baseline", "--update", "--path", str(tmp_path)], input="n\n")

        assert result.exit_code == 0
        assert "Add 2 finding(s) to baseline?" in result.output
        assert "Baseline not updated" in result.output
        assert not get_baseline_path(tmp_path).exists()

    def test_prompt_accepted(self, tmp_path, sample_findings, write_findings, monkeypatch):
        write_findings(sample_findings)
        monkeypatch.setattr("scheck.__main__.is_non_interactive", lambda: False)

        result = _invoke(["baseline", "--update", "--path", str(tmp_path)], input="y\n")

        assert result.exit_code == 0
        assert len(load_baseline(get_baseline_path(tmp_path)).entries) == 2

    def test_no_findings(self, tmp_path, write_findings):
        write_findings([])

        result = _invoke(["baseline", "--update", "--yes", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "No findings to add to baseline" in result.output
        assert not get_baseline_path(tmp_path).exists()

    def test_missing_artifact(self, tmp_path):
        result = _invoke(["baseline", "--update", "--yes", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "SC_ARTIFACT_501" in result.output

    def test_corrupt_baseline_aborts(self, tmp_path, sample_findings, write_findings):
        """A mutating command never overwrites an unreadable baseline."""
        write_findings(sample_findings)
        path = get_baseline_path(tmp_path)
        path.write_text("{broken")

        result = _invoke(["baseline", "--update", "--yes", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "SC_STORE_701" in result.output
        assert path.read_text() == "{broken"


class TestBaselineShow:
    """Tests for baseline --show."""

    def test_show_empty(self, tmp_path):
        result = _invoke(["baseline", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "No baseline entries" in result.output

    def test_show_groups_by_invariant(self, tmp_path, sample_findings, write_findings):
        write_findings(sample_findings)
        _invoke(["baseline", "--update", "--yes", "--path", str(tmp_path)])

        result = _invoke(["baseline", "--show", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "Baseline (2 entries)" in result.output
        assert "AUTH.SESSION.ROTATION (1)" in result.output
        assert "AUTHZ.KEYS.REVOCATION.IMMEDIATE (1)" in result.output
        assert generate_finding_id(sample_findings[0]) in result.output
        assert result.output.index("AUTH.SESSION.ROTATION (1)") < result.output.index(
            "AUTHZ.KEYS.REVOCATION.IMMEDIATE (1)"
        )

    def test_modes_are_exclusive(self, tmp_path):
        result = _invoke(["baseline", "--show", "--prune", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "SC_CLI_401" in result.output
        assert "cannot be combined" in result.output


class TestBaselinePrune:
    """Tests for baseline --prune."""

    def test_prune_default_days(self, tmp_path):
        _stale_baseline(tmp_path, [100, 10])

        result = _invoke(["baseline", "--prune", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "Pruned 1 baseline entry not seen in 90 days" in result.output
        assert list(load_baseline(get_baseline_path(tmp_path)).entries) == [
            "OLD.INVARIANT:000000000001"
        ]

    def test_prune_days_option(self, tmp_path):
        _stale_baseline(tmp_path, [100, 10])

        result = _invoke(["baseline", "--prune", "--prune-days", "5", "--path", str(tmp_path)])

        assert "Pruned 2 baseline entries not seen in 5 days" in result.output
        assert load_baseline(get_baseline_path(tmp_path)).entries == {}

    def test_prune_days_from_config(self, tmp_path):
        _stale_baseline(tmp_path, [100, 10])
        (tmp_path / "scheck.toml").write_text("[baseline]\nprune_days = 5\n")

        result = _invoke(["baseline", "--prune", "--path", str(tmp_path)])

        assert "not seen in 5 days" in result.output

    def test_negative_prune_days_rejected(self, tmp_path):
        result = _invoke(["baseline", "--prune", "--prune-days", "-1", "--path", str(tmp_path)])

        assert result.exit_code != 0

    def test_invalid_config(self, tmp_path):
        (tmp_path / "scheck.toml").write_text("[baseline]\nprune_days = -5\n")

        result = _invoke(["baseline", "--prune", "--path", str(tmp_path)])

        assert result.exit_code == 1
        assert "SC_CONFIG_002" in result.output


def test_config_not_utf8(tmp_path):
    (tmp_path / "scheck.toml").write_bytes(b"[baseline]\nprune_days = 5 # \xff\n")

    result = _invoke(["baseline", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "SC_CONFIG_002" in result.output
