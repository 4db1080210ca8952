"""REST API client for linkhop server."""

import requests
from typing import Optional


class LinkhopAPIClient:
    """Client for communicating with the linkhop REST API."""

    def __init__(self, base_url: str = "http://localhost:8000", user_id: str = "default"):
        self.base_url = base_url.rstrip('/')
        self.user_id = user_id
        self.session = requests.Session()

    def _get(self, endpoint: str, params: dict = None) -> dict:
        """Make a GET request."""
        if params is None:
            params = {}
        params['user_id'] = self.user_id
        response = self.session.get(f"{self.base_url}{endpoint}", params=params)
        response.raise_for_status()
        return response.json()

    def _post(self, endpoint: str, data: dict) -> dict:
        """Make a POST request."""
        data['user_id'] = self.user_id
        response = self.session.post(f"{self.base_url}{endpoint}", json=data)
        response.raise_for_status()
        return response.json()

    def health_check(self) -> dict:
        """Check if the server is running."""
        response = self.session.get(f"{self.base_url}/")
        response.raise_for_status()
        return response.json()

    def start_session(self, challenges: list[dict], states: list[dict] = None,
                      attempts: list[dict] = None, viewer_id: Optional[str] = None) -> dict:
        """Load a challenge pool into a navigation session."""
        return self._post("/api/session", {
            'challenges': challenges,
            'states': states or [],
            'attempts': attempts or [],
            'viewer_id': viewer_id
        })

    def navigate(self, event_type: str, **fields) -> dict:
        """Send a navigation event."""
        return self._post("/api/navigate", {'type': event_type, **fields})

    def next(self) -> dict:
        return self.navigate('NAVIGATE_NEXT')

    def previous(self) -> dict:
        return self.navigate('NAVIGATE_PREVIOUS')

    def go_to(self, challenge_id: str) -> dict:
        return self.navigate('NAVIGATE_TO_CHALLENGE', challenge_id=challenge_id)

    def update_state(self, challenge_id: str, state: dict) -> dict:
        return self.navigate('UPDATE_CHALLENGE_STATE', challenge_id=challenge_id, state=state)

    def preserve_context(self, context: dict = None) -> dict:
        return self.navigate('PRESERVE_CONTEXT', context=context)

    def restore_context(self, context_id: str) -> dict:
        return self.navigate('RESTORE_CONTEXT', context_id=context_id)

    def get_context(self) -> dict:
        return self._get("/api/context")

    def get_availability(self) -> dict:
        return self._get("/api/availability")

    def get_error_stats(self) -> dict:
        return self._get("/api/errors/stats")

    def reset(self) -> dict:
        response = self.session.post(f"{self.base_url}/api/reset", params={'user_id': self.user_id})
        response.raise_for_status()
        return response.json()
