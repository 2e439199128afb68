"""HTTP client for the vidshare API. Non-2xx responses raise the matching vidshare.errors type."""
import logging
from typing import Any

import httpx

from vidshare.errors import (
    ConflictError,
    EngagementError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    400: InvalidOperationError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
}


def _raise_for_status(res: httpx.Response) -> None:
    if res.is_success:
        return
    try:
        detail = res.json().get("detail") or res.text
    except (ValueError, AttributeError):
        detail = res.text
    error = _STATUS_ERRORS.get(res.status_code, EngagementError)
    raise error(str(detail))


class VidshareClient:
    def __init__(self, base_url: str = "", token: str | None = None, http: httpx.Client | None = None):
        self._http = http or httpx.Client(base_url=base_url, timeout=30.0)
        self.token = token

    def close(self) -> None:
        self._http.close()

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, url: str, **kwargs) -> Any:
        res = self._http.request(method, url, headers=self._headers(), **kwargs)
        _raise_for_status(res)
        return res.json()

    # ---------- auth ----------

    def register(self, name: str, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/register", json={"name": name, "email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    # ---------- videos ----------

    def list_videos(self) -> list[dict]:
        return self._request("GET", "/api/videos")

    def get_video(self, video_id: str) -> dict:
        return self._request("GET", f"/api/videos/{video_id}")

    def dashboard(self) -> dict:
        return self._request("GET", "/api/videos/dashboard")

    def delete_video(self, video_id: str) -> dict:
        return self._request("DELETE", f"/api/videos/{video_id}")

    # ---------- engagement ----------

    def record_view(self, video_id: str) -> dict:
        return self._request("POST", f"/api/videos/{video_id}/view")

    def react(self, video_id: str, reaction_type: str) -> dict:
        return self._request("POST", f"/api/videos/{video_id}/react", json={"type": reaction_type})

    def reaction_status(self, video_id: str) -> dict:
        return self._request("GET", f"/api/videos/{video_id}/reaction-status")

    def toggle_subscription(self, video_id: str) -> dict:
        return self._request("POST", f"/api/videos/{video_id}/subscribe")

    def subscription_status(self, video_id: str) -> dict | None:
        return self._request("GET", f"/api/videos/{video_id}/subscription-status")
