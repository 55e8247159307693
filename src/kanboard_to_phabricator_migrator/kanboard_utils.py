from __future__ import annotations

import logging
from typing import Any, Final

import requests

from . import utils
from .exceptions import KanboardError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "KANBOARD_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "kanboard/jsonrpc/token"  # noqa: S105
DEFAULT_TIMEOUT: Final[int] = 60


class KanboardClient:
    """Minimal Kanboard JSON-RPC 2.0 client.

    Kanboard exposes its whole API on a single endpoint (``jsonrpc.php``) and
    authenticates application access with HTTP basic auth, user ``jsonrpc`` and
    the instance's API token as password.
    """

    def __init__(
        self,
        url: str,
        token: str | None,
        *,
        user: str = "jsonrpc",
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.url: str = url
        self.timeout: int = timeout
        self.session: requests.Session = session or requests.Session()
        if token:
            self.session.auth = (user, token)
        self._request_id: int = 0

    def call(self, method: str, **params: Any) -> Any:
        """Invoke a JSON-RPC method and return its ``result`` member."""
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "method": method, "id": self._request_id, "params": params}
        logger.debug(f"Kanboard call {method} {params}")

        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            msg = f"Kanboard request {method} failed: {e}"
            raise KanboardError(msg) from e
        except ValueError as e:
            msg = f"Kanboard returned invalid JSON for {method}: {e}"
            raise KanboardError(msg) from e

        if not isinstance(body, dict):
            msg = f"Kanboard returned an unexpected response for {method}: {body!r}"
            raise KanboardError(msg)

        error = body.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            msg = f"Kanboard {method} returned an error: {message}"
            raise KanboardError(msg)
        return body.get("result")

    def get_version(self) -> str:
        return self.call("getVersion")

    def get_all_tasks(self, project_id: str, status_id: int = 1) -> list[dict[str, Any]]:
        """Fetch all tasks of a project. status_id 1 means active tasks."""
        return self.call("getAllTasks", project_id=project_id, status_id=status_id) or []

    def get_all_comments(self, task_id: str) -> list[dict[str, Any]]:
        return self.call("getAllComments", task_id=task_id) or []

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Fetch a user record. Kanboard answers with a null result for unknown ids."""
        return self.call("getUser", user_id=user_id) or None


def get_token(pass_path: str | None = None) -> str | None:
    """Get Kanboard API token from pass path, env var KANBOARD_TOKEN, or default pass location."""
    return utils.resolve_token(
        pass_path=pass_path,
        env_var=_TOKEN_ENV_VAR,
        default_pass_path=_DEFAULT_TOKEN_PASS_PATH,
        system_name="Kanboard",
    )


def get_client(url: str, token: str | None = None, *, user: str = "jsonrpc") -> KanboardClient:
    """Get a Kanboard client using the token."""
    return KanboardClient(url, token, user=user)
