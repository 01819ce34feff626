"""
Script: kbc_tools/results.py
What: The result record printed by the build command.
Doing: Holds image URL and digest, and serializes them to one compact JSON object.
Why: Pipeline steps read the image URL and digest from stdout.
Goal: Keep the result format stable and emitted exactly once.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from kbc_tools.common import EmissionError


@dataclass(frozen=True)
class BuildResults:
    image_url: str
    digest: str = ""

    def to_dict(self) -> dict[str, str]:
        # `digest` is omitted (not empty) when nothing was pushed.
        payload = {"image_url": self.image_url}
        if self.digest:
            payload["digest"] = self.digest
        return payload


class ResultsWriter:
    def create_result_json(self, results: BuildResults) -> str:
        try:
            return json.dumps(results.to_dict(), separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EmissionError(f"failed to create results json: {exc}") from exc
