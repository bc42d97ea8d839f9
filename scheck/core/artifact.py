"""Loading findings produced by the detection engine.

The engine writes its findings to a JSON artifact. Three shapes are
accepted:

    [ {finding}, ... ]
    {"findings": [ {finding}, ... ]}
    {"results": [ {"findings": [ {finding}, ... ]}, ... ]}
"""

import json
from pathlib import Path

from pydantic import ValidationError

from scheck.core.errors import ArtifactInvalidError, ArtifactNotFoundError
from scheck.models.finding import Finding
from scheck.utils.git import STATE_DIR

DEFAULT_FINDINGS_PATH = Path(STATE_DIR) / "findings.json"


def _raw_findings(data: object, path: Path) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("findings"), list):
            return data["findings"]
        if isinstance(data.get("results"), list):
            raw: list = []
            for index, result in enumerate(data["results"]):
                if not isinstance(result, dict) or not isinstance(result.get("findings", []), list):
                    raise ArtifactInvalidError(
                        f"results[{index}] must be an object with a 'findings' list",
                        path=path,
                    )
                raw.extend(result.get("findings", []))
            return raw
    raise ArtifactInvalidError(
        "Expected a list of findings, or an object with 'findings' or 'results'",
        path=path,
    )


def load_findings(path: Path) -> list[Finding]:
    """Load findings from a JSON artifact.

    Args:
        path: Path to the artifact.

    Returns:
        Findings in artifact order.

    Raises:
        ArtifactNotFoundError: If the file doesn't exist.
        ArtifactInvalidError: If the file isn't valid JSON or a finding is
            malformed.
    """
    path = Path(path)
    if not path.exists():
        raise ArtifactNotFoundError("Findings artifact not found", path=path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArtifactInvalidError(f"Could not parse findings: {e}", path=path) from e

    findings: list[Finding] = []
    for index, item in enumerate(_raw_findings(data, path)):
        try:
            findings.append(Finding.model_validate(item))
        except ValidationError as e:
            raise ArtifactInvalidError(
                f"Finding {index + 1} is invalid: {e.errors()[0]['msg']} "
                f"({'.'.join(str(p) for p in e.errors()[0]['loc'])})",
                path=path,
            ) from e
    return findings
