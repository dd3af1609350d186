"""
Prospect persistence.
One JSON file under <data_dir>, keyed by prospect id. A record that matches
an existing one (same email, or same first/last/company) is not inserted
again; the caller gets the existing id back and can merge.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any
from threading import Lock

from config import get_settings
from models import ScoredProspect

logger = logging.getLogger(__name__)

STORE_FILENAME = "prospects.json"

# Owner for generated (synthetic / static) records
GENERATED_OWNER = "ai-system"

_file_lock = Lock()


@dataclass
class SaveOutcome:
    created: bool
    prospect_id: str


class ProspectStore:

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = Path(data_dir or get_settings().data_dir)
        self.path = self.data_dir / STORE_FILENAME

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Could not load prospect store: {e}")
            return {}

    def _save(self, records: Dict[str, Any]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(records, f, indent=2, default=str)

    def save(self, prospect: ScoredProspect, owner: str) -> SaveOutcome:
        """Insert unless an equivalent record exists (case-insensitive match)."""
        with _file_lock:
            records = self._load()

            existing_id = _find_match(records, prospect)
            if existing_id:
                logger.debug(f"Prospect {prospect.full_name} already stored as {existing_id}")
                return SaveOutcome(created=False, prospect_id=existing_id)

            record = prospect.model_dump(mode="json")
            record["owner"] = owner
            record["stored_at"] = datetime.now().isoformat()
            records[prospect.id] = record
            self._save(records)

        return SaveOutcome(created=True, prospect_id=prospect.id)

    def get(self, prospect_id: str) -> Optional[Dict[str, Any]]:
        with _file_lock:
            return self._load().get(prospect_id)

    def count(self) -> int:
        with _file_lock:
            return len(self._load())


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _find_match(records: Dict[str, Any], prospect: ScoredProspect) -> Optional[str]:
    email = _norm(prospect.email)
    name_key = (_norm(prospect.first_name), _norm(prospect.last_name), _norm(prospect.company))

    for record_id, record in records.items():
        if email and _norm(record.get("email")) == email:
            return record_id
        record_key = (_norm(record.get("first_name")), _norm(record.get("last_name")), _norm(record.get("company")))
        if record_key == name_key:
            return record_id

    return None
