"""
Session Export - One-time read-only snapshot of a monitored session

Document shape:
    {
        "score": int,
        "duration": int (seconds),
        "events": [{id, type, message, severity, timestamp, sessionTime}, ...],
        "code": str,
        "aiAnalysis": {...} | null,
        "timestamp": ISO-8601
    }
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .analysis import AnalysisVerdict
from .events import IntegrityEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportSnapshot:
    """Frozen projection of a session at export time"""
    score: int
    elapsed_seconds: int
    events: Tuple[IntegrityEvent, ...]
    artifact_text: str
    analysis: Optional[AnalysisVerdict]
    exported_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "duration": self.elapsed_seconds,
            "events": [event.to_dict() for event in self.events],
            "code": self.artifact_text,
            "aiAnalysis": self.analysis.model_dump() if self.analysis else None,
            "timestamp": self.exported_at.isoformat() + "Z",
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @property
    def filename(self) -> str:
        epoch_ms = int((self.exported_at - datetime(1970, 1, 1)).total_seconds() * 1000)
        return f"interview-session-{epoch_ms}.json"

    def write(self, directory: Union[str, Path]) -> Path:
        """
        Write the export document to a directory.

        Returns:
            Path of the written file
        """
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)

        path = out_dir / self.filename
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json())

        logger.info(f"Session exported to {path} ({len(self.events)} events, score={self.score})")
        return path
