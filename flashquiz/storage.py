"""
Local key-value storage for device-scoped app data.

Values are strings (JSON-encoded by callers), persisted together in a single
JSON file so that a session token, the signed-in user and quiz history survive
restarts of the app.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional


USER_DATA_KEY = "userData"
TOKEN_KEY = "token"


class StorageError(Exception):
    """Raised when the storage file cannot be read or written."""
    pass


class LocalStorage:
    """String key-value store backed by a JSON file."""

    # Refuse to parse storage files larger than this
    MAX_FILE_SIZE = 10 * 1024 * 1024

    def __init__(self, storage_path: Optional[str] = "./storage/flashquiz.json"):
        """
        Initialize LocalStorage.

        Args:
            storage_path: Path to the backing JSON file, or None for a purely
                in-memory store
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self.logger = logging.getLogger(__name__)
        self._memory: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            Stored string, or None if the key is absent

        Raises:
            StorageError: If the backing file is unreadable or corrupt
        """
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store a string value under key."""
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be strings, got {type(value).__name__}")
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        """Delete key if present."""
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def get_all_keys(self) -> List[str]:
        return list(self._read_all().keys())

    def _read_all(self) -> Dict[str, str]:
        if self.storage_path is None:
            return dict(self._memory)

        if not self.storage_path.exists():
            return {}

        try:
            file_size = self.storage_path.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                raise StorageError(
                    f"Storage file too large ({file_size / 1024 / 1024:.1f}MB): {self.storage_path}"
                )
            with open(self.storage_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt storage file {self.storage_path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Failed to read storage file {self.storage_path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self.storage_path} must contain a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        if self.storage_path is None:
            self._memory = dict(data)
            return

        tmp_path = self.storage_path.with_suffix(self.storage_path.suffix + ".tmp")
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.storage_path)
        except OSError as e:
            raise StorageError(f"Failed to write storage file {self.storage_path}: {e}") from e


def get_current_user_id(storage: LocalStorage) -> Optional[str]:
    """
    Resolve the signed-in user's identifier from stored user data.

    Accepts either an 'id' or a 'user_id' field. A missing or unreadable user
    record is a normal signed-out state and yields None.
    """
    logger = logging.getLogger(__name__)
    try:
        raw = storage.get_item(USER_DATA_KEY)
    except StorageError as e:
        logger.error(f"Could not read user data: {e}")
        return None

    if not raw:
        logger.info("No user data found")
        return None

    try:
        user = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Stored user data is not valid JSON: {e}")
        return None

    if not isinstance(user, dict):
        logger.warning("Stored user data is not an object")
        return None

    user_id = user.get("id") or user.get("user_id")
    if not user_id:
        logger.warning("No user ID found in stored user data")
        return None
    return str(user_id)


def sign_in(storage: LocalStorage, token: str, user_id: str, username: Optional[str] = None) -> None:
    """Store a session token and the signed-in user record."""
    if not token or not user_id:
        raise ValueError("Both a token and a user id are required to sign in")
    user = {"id": str(user_id)}
    if username:
        user["username"] = username
    storage.set_item(TOKEN_KEY, token)
    storage.set_item(USER_DATA_KEY, json.dumps(user))
    logging.getLogger(__name__).info(f"Signed in as user {user_id}")


def sign_out(storage: LocalStorage) -> None:
    """Forget the session token and user record; quiz history is kept."""
    storage.remove_item(TOKEN_KEY)
    storage.remove_item(USER_DATA_KEY)
    logging.getLogger(__name__).info("Signed out")


def get_auth_token(storage: LocalStorage) -> Optional[str]:
    """Return the stored session token, or None when signed out."""
    try:
        return storage.get_item(TOKEN_KEY) or None
    except StorageError as e:
        logging.getLogger(__name__).error(f"Could not read auth token: {e}")
        return None
