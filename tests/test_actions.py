"""Tests for action parsing, dispatch and the action handlers."""

from pathlib import Path

import pytest

from jira_ops.actions import (
    ACTIONS,
    Action,
    ActionRequest,
    dispatch,
    parse_source_keys,
)
from jira_ops.base import EXIT_FAILURE, EXIT_PARTIAL, EXIT_SUCCESS
from jira_ops.errors import InvalidArgumentError, RemoteUnavailableError
from jira_ops.exporter import read_dependency_csv
from jira_ops.resolver import ISSUE_E2E

WORKFLOW = {
    "Open": [
        {"id": "11", "name": "Start Progress", "to": "In Progress"},
        {"id": "12", "name": "Block", "to": "Blocked"},
    ],
    "In Progress": [
        {"id": "21", "name": "Send to Review", "to": "In Review"},
        {"id": "22", "name": "Stop Progress", "to": "Open"},
    ],
    "In Review": [
        {"id": "31", "name": "Reopen", "to": "Open"},
        {"id": "32", "name": "Close", "to": "Done"},
    ],
    "Blocked": [
        {"id": "41", "name": "Unblock", "to": "Open"},
    ],
}


@pytest.fixture
def workflow_client(fake_client):
    fake_client.workflow = WORKFLOW
    fake_client.add_issue("A-1")
    return fake_client


class TestActionParsing:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("GET", Action.GET),
            ("get_e2es", Action.GET_E2ES),
            ("auto-transition-issue", Action.AUTO_TRANSITION_ISSUE),
            ("  move ", Action.MOVE),
        ],
    )
    def test_from_name(self, name, expected) -> None:
        assert Action.from_name(name) is expected

    def test_unknown_action_lists_valid_names(self) -> None:
        with pytest.raises(InvalidArgumentError, match="Valid actions: GET, LINK"):
            Action.from_name("DELETE")

    def test_every_action_has_a_handler(self) -> None:
        assert set(ACTIONS) == set(Action)

    def test_parse_source_keys(self) -> None:
        assert parse_source_keys("a-1, B-2;c-3  a-1") == ["A-1", "B-2", "C-3"]

    @pytest.mark.parametrize("text", [None, "", " , ; "])
    def test_parse_source_keys_empty(self, text) -> None:
        assert parse_source_keys(text) == []


class TestDispatchValidation:
    def test_requires_source_key(self, fake_client, settings) -> None:
        with pytest.raises(InvalidArgumentError, match="at least one source"):
            dispatch(Action.GET, fake_client, ActionRequest(), settings)

    def test_link_requires_target_and_type(self, fake_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"])

        with pytest.raises(InvalidArgumentError, match="--target, --link-type"):
            dispatch(Action.LINK, fake_client, request, settings)

    def test_advance_requires_transition(self, fake_client, settings) -> None:
        with pytest.raises(InvalidArgumentError, match="--transition"):
            dispatch(Action.ADVANCE_ISSUE, fake_client, ActionRequest(source_keys=["A-1"]), settings)

    def test_single_key_action_rejects_many(self, fake_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1", "A-2"])

        with pytest.raises(InvalidArgumentError, match="single source key, got 2"):
            dispatch(Action.GET, fake_client, request, settings)

    def test_handler_not_called_on_invalid_request(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")

        with pytest.raises(InvalidArgumentError):
            dispatch(Action.LINK, fake_client, ActionRequest(source_keys=["A-1"], target="A-2"), settings)
        assert fake_client.created_links == []


class TestSingleKeyActions:
    def test_get(self, fake_client, settings, capsys) -> None:
        fake_client.add_issue("A-1", "Feature")
        fake_client.add_issue("B-1", "Backend")
        fake_client.add_link("Depends On", "A-1", "B-1")

        result = dispatch(Action.GET, fake_client, ActionRequest(source_keys=["A-1"]), settings)

        out = capsys.readouterr().out
        assert "A-1: Feature" in out
        assert "-> Depends On" in out
        assert "B-1" in out
        assert result.exit_code == EXIT_SUCCESS

    def test_link(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")
        request = ActionRequest(source_keys=["A-1"], target=" b-1 ", link_type="Depends On")

        result = dispatch(Action.LINK, fake_client, request, settings)

        assert fake_client.created_links == [("A-1", "B-1", "Depends On")]
        assert result.successes[0].data == "B-1"

    def test_link_to_self_rejected(self, fake_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"], target="a-1", link_type="Depends On")

        with pytest.raises(InvalidArgumentError, match="itself"):
            dispatch(Action.LINK, fake_client, request, settings)

    def test_get_transitions(self, workflow_client, settings, capsys) -> None:
        result = dispatch(Action.GET_TRANSITIONS, workflow_client,
                          ActionRequest(source_keys=["A-1"]), settings)

        assert [t["name"] for t in result.successes[0].data] == ["Start Progress", "Block"]
        assert "Total: 2 transitions" in capsys.readouterr().out

    def test_assign_defaults_to_me(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")

        dispatch(Action.ASSIGN_TO, fake_client, ActionRequest(source_keys=["A-1"]), settings)

        assert fake_client.assigned == {"A-1": "acct-me"}

    def test_assign_named_user(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")
        request = ActionRequest(source_keys=["A-1"], user="acct-42")

        dispatch(Action.ASSIGN_TO, fake_client, request, settings)

        assert fake_client.assigned == {"A-1": "acct-42"}

    def test_advance_with_comment(self, workflow_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"], transition="start progress", comment="picked up")

        dispatch(Action.ADVANCE_ISSUE, workflow_client, request, settings)

        assert workflow_client.issues["A-1"].status == "In Progress"
        assert workflow_client.comments == [("A-1", "picked up")]

    def test_advance_unknown_transition(self, workflow_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"], transition="Teleport")

        with pytest.raises(InvalidArgumentError):
            dispatch(Action.ADVANCE_ISSUE, workflow_client, request, settings)

    def test_block_then_unblock(self, workflow_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"])

        dispatch(Action.BLOCK_ISSUE, workflow_client, request, settings)
        assert workflow_client.issues["A-1"].status == "Blocked"

        dispatch(Action.UNBLOCK_ISSUE, workflow_client, request, settings)
        assert workflow_client.issues["A-1"].status == "Open"
        assert workflow_client.comments == []


class TestAutoTransition:
    def test_walks_to_target(self, workflow_client, settings, capsys) -> None:
        result = dispatch(Action.AUTO_TRANSITION_ISSUE, workflow_client,
                          ActionRequest(source_keys=["A-1"]), settings)

        assert result.successes[0].data == ["Open", "In Progress", "In Review", "Done"]
        assert workflow_client.issues["A-1"].status == "Done"
        assert "Open -> In Progress -> In Review -> Done" in capsys.readouterr().out

    def test_explicit_status(self, workflow_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"], status="in review")

        result = dispatch(Action.AUTO_TRANSITION_ISSUE, workflow_client, request, settings)

        assert result.successes[0].data[-1] == "In Review"

    def test_already_at_target(self, workflow_client, settings, capsys) -> None:
        request = ActionRequest(source_keys=["A-1"], status="Open")

        result = dispatch(Action.AUTO_TRANSITION_ISSUE, workflow_client, request, settings)

        assert result.successes[0].data == ["Open"]
        assert "already" in capsys.readouterr().out

    def test_stuck_workflow(self, workflow_client, settings) -> None:
        request = ActionRequest(source_keys=["A-1"], status="Released")

        with pytest.raises(InvalidArgumentError, match="no transition"):
            dispatch(Action.AUTO_TRANSITION_ISSUE, workflow_client, request, settings)

    def test_step_limit(self, workflow_client, settings) -> None:
        settings.auto_transition_max_steps = 2

        with pytest.raises(InvalidArgumentError, match="not reached within 2"):
            dispatch(Action.AUTO_TRANSITION_ISSUE, workflow_client,
                     ActionRequest(source_keys=["A-1"]), settings)


class TestGetE2es:
    @pytest.fixture
    def graph(self, fake_client):
        for key in ("A-1", "B-1"):
            fake_client.add_issue(key)
        fake_client.add_issue("T-1", issue_type=ISSUE_E2E)
        fake_client.add_link("Depends On", "A-1", "B-1")
        fake_client.add_link("Tests Writing", "B-1", "T-1")
        return fake_client

    def test_recursive_output(self, graph, settings, capsys) -> None:
        request = ActionRequest(source_keys=["A-1"], recursive=True)

        result = dispatch(Action.GET_E2ES, graph, request, settings)

        out = capsys.readouterr().out
        assert "    A-1 -> []" in out
        assert "    B-1 -> [T-1]" in out
        assert result.exit_code == EXIT_SUCCESS

    def test_dump_file(self, graph, settings, tmp_path: Path) -> None:
        request = ActionRequest(source_keys=["A-1"], recursive=True,
                                dump_file=str(tmp_path / "e2es"))

        dispatch(Action.GET_E2ES, graph, request, settings)

        with open(tmp_path / "e2es.csv", encoding="utf-8") as f:
            assert read_dependency_csv(f) == {"A-1": set(), "B-1": {"T-1"}}

    def test_stdout_dump_keeps_listing_on_stderr(self, graph, settings, capsys) -> None:
        request = ActionRequest(source_keys=["A-1"], recursive=True, dump_file="-")

        dispatch(Action.GET_E2ES, graph, request, settings)

        captured = capsys.readouterr()
        assert captured.out.splitlines()[0] == '"issue","summary","e2e"'
        assert "E2Es for A-1" not in captured.out
        assert "    B-1 -> [T-1]" in captured.err

    def test_failed_dependency_is_partial(self, graph, settings, capsys) -> None:
        graph.fail_on("B-1", RemoteUnavailableError("timeout", key="B-1"))
        request = ActionRequest(source_keys=["A-1"], recursive=True)

        result = dispatch(Action.GET_E2ES, graph, request, settings)

        assert "B-1 -> [] (FAILED)" in capsys.readouterr().out
        assert result.exit_code == EXIT_PARTIAL


class TestBatchActions:
    def test_clone_partial_success(self, fake_client, settings, capsys) -> None:
        """The second of three keys fails; the first and third still clone."""
        for key in ("A-1", "A-2", "A-3"):
            fake_client.add_issue(key)
        fake_client.fail_on("A-2", RemoteUnavailableError("Jira request failed: 503", key="A-2"))
        request = ActionRequest(source_keys=["A-1", "A-2", "A-3"])

        result = dispatch(Action.CLONE, fake_client, request, settings)

        assert [r.key for r in result.successes] == ["A-1", "A-3"]
        assert [r.key for r in result.failures] == ["A-2"]
        assert "503" in result.failures[0].error
        assert [source for source, _ in fake_client.clones] == ["A-1", "A-3"]
        assert result.exit_code == EXIT_PARTIAL
        assert "Completed: 2 successful, 1 failed" in capsys.readouterr().out

    def test_clone_into_project(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")
        request = ActionRequest(source_keys=["A-1"], project="OTHER")

        result = dispatch(Action.CLONE, fake_client, request, settings)

        assert result.successes[0].data.startswith("OTHER-")

    def test_all_failures_is_failure(self, fake_client, settings) -> None:
        request = ActionRequest(source_keys=["X-1", "X-2"])

        result = dispatch(Action.CLONE, fake_client, request, settings)

        assert result.exit_code == EXIT_FAILURE

    def test_move_uses_configured_project(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")
        fake_client.add_issue("A-2")

        result = dispatch(Action.MOVE, fake_client, ActionRequest(source_keys=["A-1", "A-2"]), settings)

        new_keys = [r.data for r in result.successes]
        assert all(k.startswith("JVCLD-") for k in new_keys)
        assert fake_client.comments == [
            ("A-1", f"Moved to {new_keys[0]}"),
            ("A-2", f"Moved to {new_keys[1]}"),
        ]

    def test_move_explicit_project(self, fake_client, settings) -> None:
        fake_client.add_issue("A-1")
        request = ActionRequest(source_keys=["A-1"], project="DEST")

        result = dispatch(Action.MOVE, fake_client, request, settings)

        assert result.successes[0].data.startswith("DEST-")
