"""Persistence of the most recent batch result."""

import json
import os
from pathlib import Path
from typing import Optional

from .models import BatchResult
from .utils import get_logger

logger = get_logger(__name__)


class ResultsStore:
    """Keeps exactly one document: the latest batch, overwritten on each run."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def from_settings(cls, settings) -> "ResultsStore":
        return cls(settings.results_path)

    def save(self, batch: BatchResult) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(batch.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.info(f"Saved batch results to {self.path}")
        return self.path

    def load_latest(self) -> Optional[BatchResult]:
        """Return the latest batch, or None if no batch has been saved."""
        if not self.path.exists():
            return None
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return BatchResult.from_dict(data)
