import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.types import ResearchTask


class ArtifactStore(ABC):
    """Durable keyed storage for finished task documents."""

    @abstractmethod
    def save(self, task: ResearchTask) -> None:
        pass

    @abstractmethod
    def load(self, task_id: str) -> Optional[Dict[str, Any]]:
        pass


class JsonArtifactStore(ArtifactStore):
    """
    One JSON file per finished task under `root`.

    Files are written to a temporary name and renamed into place so a reader
    never sees a half-written document.
    """

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, task_id: str) -> Path:
        safe = "".join(c for c in task_id if c.isalnum() or c in "-_")
        if not safe:
            raise ValueError(f"Invalid task id {task_id!r}")
        return self.root / f"{safe}.json"

    def save(self, task: ResearchTask) -> None:
        target = self._path(task.id)
        fd, tmp = tempfile.mkstemp(dir=self.root, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(task.to_dict(), fh, indent=2, ensure_ascii=False)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load(self, task_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(task_id)
        if not path.exists():
            return None
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)

    def list_ids(self) -> List[str]:
        return sorted(p.stem for p in self.root.glob("*.json"))
