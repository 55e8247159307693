from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final

import requests

from . import utils
from .exceptions import ConduitError

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "PHABRICATOR_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "phabricator/conduit/token"  # noqa: S105
DEFAULT_TIMEOUT: Final[int] = 60


def flatten_params(params: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested params into PHP-style form fields.

    Conduit parses form bodies the way PHP does, so
    ``{"transactions": [{"type": "comment"}]}`` has to be sent as
    ``transactions[0][type]=comment``.
    """
    fields: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, Mapping):
            fields.extend(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            fields.extend(flatten_params(dict(enumerate(value)), name))
        elif value is None:
            continue
        else:
            fields.append((name, str(value)))
    return fields


class ConduitClient:
    """Minimal client for the Phabricator Conduit API.

    There is no reasonably maintained Phabricator client library, so this
    speaks to ``/api/<method>`` directly with a token in ``api.token``.
    """

    def __init__(
        self,
        url: str,
        token: str | None,
        *,
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_url: str = url.rstrip("/") + "/api"
        self.token: str | None = token
        self.timeout: int = timeout
        self.session: requests.Session = session or requests.Session()

    def call(self, method: str, **params: Any) -> Any:
        """Invoke a Conduit method and return its ``result`` member."""
        data = flatten_params(params)
        if self.token:
            data.append(("api.token", self.token))
        logger.debug(f"Conduit call {method} {params}")

        try:
            resp = self.session.post(f"{self.api_url}/{method}", data=data, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            msg = f"Conduit request {method} failed: {e}"
            raise ConduitError(msg) from e
        except ValueError as e:
            msg = f"Conduit returned invalid JSON for {method}: {e}"
            raise ConduitError(msg) from e

        if not isinstance(body, dict):
            msg = f"Conduit returned an unexpected response for {method}: {body!r}"
            raise ConduitError(msg)

        if body.get("error_code"):
            msg = f"Conduit {method} returned {body['error_code']}: {body.get('error_info')}"
            raise ConduitError(msg)
        return body.get("result")

    def whoami(self) -> dict[str, Any]:
        return self.call("user.whoami")

    def create_task(self, title: str, description: str, project_phids: list[str]) -> str | None:
        """Create a Maniphest task and return its PHID."""
        result = self.call(
            "maniphest.createtask",
            title=title,
            description=description,
            projectPHIDs=project_phids,
        )
        return (result or {}).get("phid")

    def query_tasks(self, project_phids: list[str]) -> Any:
        """Return all tasks tagged with any of the given projects.

        Conduit answers with a mapping of PHID to task record.
        """
        return self.call("maniphest.query", projectPHIDs=project_phids) or {}

    def edit_task(self, object_identifier: str, transactions: list[dict[str, Any]]) -> Any:
        """Apply a list of transactions to one Maniphest task."""
        return self.call(
            "maniphest.edit",
            objectIdentifier=object_identifier,
            transactions=transactions,
        )


def get_token(pass_path: str | None = None) -> str | None:
    """Get Conduit API token from pass path, env var PHABRICATOR_TOKEN, or default pass location."""
    return utils.resolve_token(
        pass_path=pass_path,
        env_var=_TOKEN_ENV_VAR,
        default_pass_path=_DEFAULT_TOKEN_PASS_PATH,
        system_name="Phabricator",
    )


def get_client(url: str, token: str | None = None) -> ConduitClient:
    """Get a Conduit client using the token."""
    return ConduitClient(url, token)
