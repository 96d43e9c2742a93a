"""
User-scoped persistence of completed quiz attempts.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import QuizRecord
from .storage import LocalStorage, StorageError, get_current_user_id


LEGACY_RECORDS_KEY = "quizRecords"
RECORDS_KEY_PREFIX = "quizRecords_"


class ResultStore:
    """
    Stores quiz history per signed-in user.

    History is non-critical: every operation degrades to an empty list or
    False instead of raising when no user is signed in or storage fails.
    """

    MAX_RECORDS = 50

    def __init__(self, storage: LocalStorage):
        """
        Initialize ResultStore.

        Args:
            storage: Key-value store holding user data and quiz history
        """
        self.storage = storage
        self.logger = logging.getLogger(__name__)

    def get_storage_key(self) -> Optional[str]:
        """
        Get the storage key for the current user's records.

        Returns:
            'quizRecords_<userId>', or None if no user can be resolved
        """
        user_id = get_current_user_id(self.storage)
        if not user_id:
            return None
        return f"{RECORDS_KEY_PREFIX}{user_id}"

    def load_all(self) -> List[Dict[str, Any]]:
        """
        Load the current user's quiz records, oldest first.

        A legacy global record list is moved into the user's slot the first
        time it is seen and the legacy key is deleted.
        """
        storage_key = self.get_storage_key()
        if not storage_key:
            return []

        try:
            raw = self.storage.get_item(storage_key)
            if raw:
                return self._decode(raw)

            legacy = self.storage.get_item(LEGACY_RECORDS_KEY)
            if legacy:
                self.logger.info("Found legacy global quiz records, migrating to user-scoped storage")
                records = self._decode(legacy)
                self.storage.set_item(storage_key, legacy)
                self.storage.remove_item(LEGACY_RECORDS_KEY)
                return records

            return []
        except (StorageError, ValueError) as e:
            self.logger.error(f"Failed to load quiz records: {e}")
            return []

    def load_records(self) -> List[QuizRecord]:
        """
        Typed variant of load_all().

        Entries that are not objects or hold non-numeric counts are skipped.
        """
        records = []
        for item in self.load_all():
            if not isinstance(item, dict):
                self.logger.warning(f"Skipping quiz record that is not an object: {item!r}")
                continue
            try:
                records.append(QuizRecord.from_dict(item))
            except (TypeError, ValueError) as e:
                self.logger.warning(f"Skipping malformed quiz record {item.get('id')!r}: {e}")
        return records

    def save_all(self, records: List[Dict[str, Any]]) -> bool:
        """Replace the current user's history with records."""
        storage_key = self.get_storage_key()
        if not storage_key:
            self.logger.error("No storage key available for saving quiz records")
            return False

        try:
            self.storage.set_item(storage_key, json.dumps(records))
            return True
        except (StorageError, TypeError) as e:
            self.logger.error(f"Failed to save quiz records: {e}")
            return False

    def append(self, record: QuizRecord) -> bool:
        """
        Append a record to the current user's history.

        Only the most recent MAX_RECORDS entries are kept.

        Returns:
            True if the record was persisted, False otherwise
        """
        storage_key = self.get_storage_key()
        if not storage_key:
            self.logger.error("No storage key available for adding quiz record")
            return False

        try:
            raw = self.storage.get_item(storage_key)
            records = self._decode(raw) if raw else []
            records.append(record.to_dict())
            if len(records) > self.MAX_RECORDS:
                records = records[-self.MAX_RECORDS:]
            self.storage.set_item(storage_key, json.dumps(records))
        except (StorageError, ValueError, TypeError) as e:
            self.logger.error(f"Failed to add quiz record: {e}")
            return False

        self.logger.info(
            f"Saved quiz record {record.id} for set {record.set_id}",
            extra={
                'event_type': 'quiz_record_saved',
                'set_id': record.set_id,
                'record_count': len(records),
            }
        )
        return True

    def clear(self) -> bool:
        """Delete all quiz history for the current user."""
        storage_key = self.get_storage_key()
        if not storage_key:
            self.logger.error("No storage key available for clearing quiz records")
            return False

        try:
            self.storage.remove_item(storage_key)
            return True
        except StorageError as e:
            self.logger.error(f"Failed to clear quiz records: {e}")
            return False

    def count(self) -> int:
        """Number of quizzes the current user has taken (as kept in history)."""
        return len(self.load_all())

    def best_score_percentage(self, set_id: str) -> int:
        """
        Best percentage the current user has scored on a set.

        Returns:
            Best rounded percentage, or 0 if the set has no history
        """
        best = 0
        for record in self.load_records():
            if record.set_id != str(set_id) or record.total_questions <= 0:
                continue
            best = max(best, score_percentage(record.correct_answers, record.total_questions))
        return best

    def _decode(self, raw: str) -> List[Dict[str, Any]]:
        records = json.loads(raw)
        if not isinstance(records, list):
            raise ValueError("Stored quiz records must be a JSON array")
        return records


def score_percentage(correct: int, total: int) -> int:
    """Percentage of correct answers, rounded half up."""
    if total <= 0:
        return 0
    scaled = correct * 100
    return (2 * scaled + total) // (2 * total)


def _completed_timestamp(record: Dict[str, Any]) -> float:
    value = str(record.get("completedAt") or "")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def group_records_by_set(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Group quiz history by set for the history screen.

    Attempts in each group are numbered oldest-to-newest and then listed
    newest first; groups are ordered by their most recent attempt.
    """
    groups: Dict[str, Dict[str, Any]] = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        key = str(record.get("setId") or record.get("set_id") or "unknown")
        if key not in groups:
            groups[key] = {
                "setId": key,
                "setName": record.get("setName") or "Unknown Set",
                "subject": record.get("subject") or "General",
                "quizzes": [],
            }
        groups[key]["quizzes"].append(record)

    result = []
    for group in groups.values():
        chronological = sorted(group["quizzes"], key=_completed_timestamp)
        numbered = [
            dict(quiz, attemptNumber=index + 1)
            for index, quiz in enumerate(chronological)
        ]
        result.append(dict(group, quizzes=list(reversed(numbered))))

    result.sort(key=lambda g: _completed_timestamp(g["quizzes"][0]), reverse=True)
    return result
