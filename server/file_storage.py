"""File-based storage implementation."""

import json
import logging
import os

from core.interfaces import ContextStore

logger = logging.getLogger(__name__)


class FileStorage(ContextStore):
    """Keeps each user's durable navigation values in one JSON file."""

    def __init__(self, config_file: str = None, state_dir: str = None):
        self.config_file = config_file or os.path.expanduser('~/.config/linkhop/config.json')
        # Project root is one level up from server/
        project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self.state_dir = state_dir or os.environ.get('LINKHOP_STATE_DIR') or project_root

    def _get_state_file(self, user_id: str) -> str:
        """Get state file path for a user."""
        if user_id == "default":
            return os.path.join(self.state_dir, 'linkhop_state.json')
        return os.path.join(self.state_dir, f'linkhop_state_{user_id}.json')

    def _load_all(self, user_id: str) -> dict:
        state_file = self._get_state_file(user_id)
        if os.path.exists(state_file):
            try:
                with open(state_file, 'r') as f:
                    return json.load(f)
            except Exception as e:
                logger.error(f"Error reading {state_file}: {e}")
                return {}
        return {}

    def _save_all(self, values: dict, user_id: str) -> None:
        os.makedirs(self.state_dir, exist_ok=True)
        with open(self._get_state_file(user_id), 'w') as f:
            json.dump(values, f, indent=2)

    def load_config(self) -> dict:
        if not os.path.exists(self.config_file):
            raise FileNotFoundError(
                f"Config file not found at {self.config_file}\n"
                f'Please create it with: {{"storage": "file"}}'
            )
        with open(self.config_file, 'r') as f:
            return json.load(f)

    def load_value(self, key: str, user_id: str = "default") -> dict | None:
        return self._load_all(user_id).get(key)

    def save_value(self, key: str, value: dict, user_id: str = "default") -> None:
        values = self._load_all(user_id)
        values[key] = value
        self._save_all(values, user_id)

    def delete_value(self, key: str, user_id: str = "default") -> bool:
        values = self._load_all(user_id)
        if key not in values:
            return False
        del values[key]
        self._save_all(values, user_id)
        return True

    def list_users(self) -> list[str]:
        """List all user IDs that have stored values."""
        users = []
        if os.path.exists(self.state_dir):
            for filename in os.listdir(self.state_dir):
                if filename == 'linkhop_state.json':
                    users.append('default')
                elif filename.startswith('linkhop_state_') and filename.endswith('.json'):
                    users.append(filename[len('linkhop_state_'):-len('.json')])
        return sorted(users)
