"""
Tests for the Phabricator Conduit client.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from kanboard_to_phabricator_migrator import ConduitError
from kanboard_to_phabricator_migrator.phabricator_utils import ConduitClient, flatten_params, get_token


def _response(result: object = None, error_code: str | None = None, error_info: str | None = None) -> Mock:
    resp = Mock()
    resp.json.return_value = {"result": result, "error_code": error_code, "error_info": error_info}
    return resp


def _client(*responses: Mock) -> tuple[ConduitClient, Mock]:
    session = Mock()
    session.post.side_effect = list(responses)
    return ConduitClient("https://phabricator.example.org/", "api-token", session=session), session


@pytest.mark.unit
class TestFlattenParams:
    def test_scalars(self) -> None:
        assert flatten_params({"title": "A", "priority": 50}) == [("title", "A"), ("priority", "50")]

    def test_list(self) -> None:
        assert flatten_params({"projectPHIDs": ["P1", "P2"]}) == [
            ("projectPHIDs[0]", "P1"),
            ("projectPHIDs[1]", "P2"),
        ]

    def test_nested_transactions(self) -> None:
        params = {
            "objectIdentifier": "PHID-TASK-1",
            "transactions": [{"type": "subscribers.remove", "value": ["PHID-USER-1"]}],
        }
        assert flatten_params(params) == [
            ("objectIdentifier", "PHID-TASK-1"),
            ("transactions[0][type]", "subscribers.remove"),
            ("transactions[0][value][0]", "PHID-USER-1"),
        ]

    def test_none_values_are_dropped(self) -> None:
        assert flatten_params({"title": "A", "description": None}) == [("title", "A")]


@pytest.mark.unit
class TestConduitClient:
    def test_create_task_request(self) -> None:
        client, session = _client(_response({"phid": "PHID-TASK-new", "id": "12"}))

        phid = client.create_task("Title", "Body", ["PHID-PROJ-1"])

        assert phid == "PHID-TASK-new"
        url = session.post.call_args.args[0]
        data = session.post.call_args.kwargs["data"]
        assert url == "https://phabricator.example.org/api/maniphest.createtask"
        assert ("title", "Title") in data
        assert ("description", "Body") in data
        assert ("projectPHIDs[0]", "PHID-PROJ-1") in data
        assert ("api.token", "api-token") in data

    def test_query_tasks_returns_mapping(self) -> None:
        tasks = {"PHID-TASK-1": {"title": "A"}}
        client, session = _client(_response(tasks))
        assert client.query_tasks(["PHID-PROJ-1"]) == tasks
        assert session.post.call_args.args[0].endswith("/api/maniphest.query")

    def test_query_tasks_empty(self) -> None:
        client, _ = _client(_response([]))
        assert client.query_tasks(["PHID-PROJ-1"]) == {}

    def test_edit_task_comment(self) -> None:
        client, session = _client(_response({"object": {"phid": "PHID-TASK-1"}}))

        client.edit_task("PHID-TASK-1", [{"type": "comment", "value": "hello"}])

        data = session.post.call_args.kwargs["data"]
        assert ("objectIdentifier", "PHID-TASK-1") in data
        assert ("transactions[0][type]", "comment") in data
        assert ("transactions[0][value]", "hello") in data

    def test_error_envelope_raises(self) -> None:
        client, _ = _client(_response(None, "ERR-INVALID-AUTH", "API token is invalid."))
        with pytest.raises(ConduitError, match="ERR-INVALID-AUTH: API token is invalid"):
            client.whoami()

    def test_http_error_raises(self) -> None:
        resp = _response()
        resp.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")
        client, _ = _client(resp)
        with pytest.raises(ConduitError, match="maniphest.query failed"):
            client.query_tasks(["PHID-PROJ-1"])

    def test_timeout_raises(self) -> None:
        session = Mock()
        session.post.side_effect = requests.Timeout("read timed out")
        client = ConduitClient("https://phabricator.example.org", "api-token", session=session)
        with pytest.raises(ConduitError, match="read timed out"):
            client.whoami()

    def test_invalid_json_raises(self) -> None:
        resp = Mock()
        resp.json.side_effect = ValueError("Expecting value")
        client, _ = _client(resp)
        with pytest.raises(ConduitError, match="invalid JSON for user.whoami"):
            client.whoami()

    @pytest.mark.parametrize("body", [None, ["PHID-TASK-1"], "Maintenance"])
    def test_non_object_body_raises(self, body: object) -> None:
        resp = Mock()
        resp.json.return_value = body
        client, _ = _client(resp)
        with pytest.raises(ConduitError, match="unexpected response for maniphest.query"):
            client.query_tasks(["PHID-PROJ-1"])


@pytest.mark.unit
class TestGetToken:
    @patch("kanboard_to_phabricator_migrator.utils.get_pass_value")
    def test_env_var(self, mock_pass: Mock, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PHABRICATOR_TOKEN", "api-env")
        assert get_token() == "api-env"
        mock_pass.assert_not_called()

    @patch("kanboard_to_phabricator_migrator.utils.get_pass_value")
    def test_nothing_found(self, mock_pass: Mock, monkeypatch: pytest.MonkeyPatch) -> None:
        from kanboard_to_phabricator_migrator.utils import InvalidPassPathError

        monkeypatch.delenv("PHABRICATOR_TOKEN", raising=False)
        mock_pass.side_effect = InvalidPassPathError("Pass path 'phabricator/conduit/token' not found or invalid.")
        assert get_token() is None
        mock_pass.assert_called_once_with("phabricator/conduit/token")
