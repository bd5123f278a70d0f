"""JSON manifest schema — the contract between CLI/API and engine."""

import json
from dataclasses import dataclass
from pathlib import Path

from gifmov.editors.geometry import MAX_IMAGE_SIZE
from gifmov.ffutil import CODEC_CHOICES
from gifmov.timeline import TimingPolicy


@dataclass
class Manifest:
    """Top-level conversion manifest.

    ``output`` may be left unset, in which case the movie is written next
    to the input with a ``.mov`` suffix.
    """

    input: Path
    output: Path | None = None
    version: str = "1"
    max_dimension: float = MAX_IMAGE_SIZE
    timing_policy: str = TimingPolicy.INDEX_TIMES_DURATION.value
    codec: str = "auto"

    def __post_init__(self) -> None:
        self.input = Path(self.input)
        if self.output is None:
            self.output = self.input.with_suffix(".mov")
        self.output = Path(self.output)

        if self.max_dimension <= 0:
            raise ValueError(f"max_dimension must be positive, got {self.max_dimension}")
        if self.timing_policy not in {p.value for p in TimingPolicy}:
            raise ValueError(f"Unknown timing_policy {self.timing_policy!r}")
        if self.codec not in CODEC_CHOICES:
            raise ValueError(f"Unknown codec {self.codec!r}")


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data:
        raise ValueError("Manifest must contain an 'input' field")

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]) if data.get("output") else None,
        max_dimension=float(data.get("max_dimension", MAX_IMAGE_SIZE)),
        timing_policy=data.get("timing_policy", TimingPolicy.INDEX_TIMES_DURATION.value),
        codec=data.get("codec", "auto"),
    )
