"""
Match history store.

After each scored round the host appends one record to a small JSON file,
newest first, keeping only the most recent entries. Writing history must
never disturb a game, so failures are logged and swallowed.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_PATH = Path("xiangqi_history.json")
SELF_DRAW = "self-draw"


@dataclass
class MatchRecord:
    """One scored round."""
    timestamp: str
    room_label: str
    winner_name: str
    winning_hand_labels: str
    loser_name: str
    scores: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def now(
        cls,
        room_label: str,
        winner_name: str,
        winning_hand_labels: str,
        loser_name: Optional[str],
        scores: List[Dict[str, Any]],
    ) -> 'MatchRecord':
        return cls(
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            room_label=room_label,
            winner_name=winner_name,
            winning_hand_labels=winning_hand_labels,
            loser_name=loser_name if loser_name is not None else SELF_DRAW,
            scores=scores,
        )


class HistoryStore:
    """Append-only, capped JSON list of ``MatchRecord``s."""

    def __init__(self, path: Path = DEFAULT_HISTORY_PATH, limit: int = 50):
        self.path = Path(path)
        self.limit = limit

    def load(self) -> List[MatchRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [MatchRecord(**item) for item in raw]
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Error reading history {self.path}: {e}")
            return []

    def record(self, entry: MatchRecord) -> bool:
        """Store a record at the top of the list. Returns False on failure."""
        try:
            entries = [asdict(r) for r in self.load()]
            entries.insert(0, asdict(entry))
            del entries[self.limit:]
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(entries, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving history: {e}")
            return False
