"""Test configuration and fixtures."""

import dataclasses
import logging
from typing import Dict, List, Optional

import pytest

import config.settings
from config.settings import Settings
from jira_ops import console
from jira_ops.errors import InvalidArgumentError, IssueNotFoundError
from jira_ops.models import IssueRef, Link


class FakeIssueClient:
    """In-memory stand-in for IssueClient backed by a small issue graph."""

    def __init__(self) -> None:
        self.issues: Dict[str, IssueRef] = {}
        self.link_table: Dict[str, List[Link]] = {}
        self.failures: Dict[str, Exception] = {}
        self.workflow: Dict[str, List[Dict[str, str]]] = {}
        self.fetch_calls: List[str] = []
        self.created_links: List[tuple] = []
        self.comments: List[tuple] = []
        self.clones: List[tuple] = []
        self.assigned: Dict[str, Optional[str]] = {}
        self.closed = False
        self._next_id = 100

    # Graph construction -------------------------------------------------

    def add_issue(self, key: str, summary: str = "", status: str = "Open",
                  issue_type: str = "Story") -> IssueRef:
        issue = IssueRef(key, summary or f"Summary of {key}", status, issue_type)
        self.issues[key] = issue
        self.link_table.setdefault(key, [])
        return issue

    def add_link(self, link_type: str, from_key: str, to_key: str) -> None:
        link = Link(link_type, self.issues[from_key], self.issues[to_key])
        self.link_table[from_key].append(link)
        if to_key != from_key:
            self.link_table[to_key].append(link)

    def fail_on(self, key: str, error: Exception) -> None:
        self.failures[key] = error

    # IssueClient interface ----------------------------------------------

    def _check(self, key: str) -> None:
        if key in self.failures:
            raise self.failures[key]
        if key not in self.issues:
            raise IssueNotFoundError(key)

    def fetch(self, key: str) -> IssueRef:
        self.fetch_calls.append(key)
        self._check(key)
        return self.issues[key]

    def links(self, key: str) -> List[Link]:
        self._check(key)
        return list(self.link_table[key])

    def issue_details(self, key: str) -> Dict[str, str]:
        self._check(key)
        issue = self.issues[key]
        return {
            "key": key,
            "project": key.split("-")[0],
            "issue_type": issue.issue_type,
            "status": issue.status,
            "priority": "Major",
            "assignee": "",
            "summary": issue.summary,
        }

    def transitions(self, key: str) -> List[Dict[str, str]]:
        self._check(key)
        return list(self.workflow.get(self.issues[key].status, []))

    def transition(self, key: str, name: str) -> Dict[str, str]:
        for t in self.transitions(key):
            if t["name"].lower() == name.lower():
                self.issues[key] = dataclasses.replace(self.issues[key], status=t["to"])
                return t
        raise InvalidArgumentError(f'Transition "{name}" not available for {key}')

    def current_user(self) -> str:
        return "acct-me"

    def assign(self, key: str, user: Optional[str]) -> Optional[str]:
        self._check(key)
        assignee = "acct-me" if user == "me" else user
        self.assigned[key] = assignee
        return assignee

    def create_link(self, from_key: str, to_key: str, link_type: str) -> None:
        self._check(from_key)
        self.created_links.append((from_key, to_key, link_type))

    def add_comment(self, key: str, body: str) -> None:
        self._check(key)
        self.comments.append((key, body))

    def clone(self, key: str, project: Optional[str] = None) -> str:
        self._check(key)
        self._next_id += 1
        new_key = f"{project or key.split('-')[0]}-{self._next_id}"
        self.clones.append((key, new_key))
        return new_key

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeIssueClient":
        return self

    def __exit__(self, *exc) -> bool:
        self.close()
        return False


@pytest.fixture
def fake_client() -> FakeIssueClient:
    """Empty in-memory issue client."""
    return FakeIssueClient()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with defaults and a temporary log file."""
    return Settings(
        jira_url="https://jira.example.com",
        jira_email="tester@example.com",
        jira_api_token="token",
        log_file=str(tmp_path / "test.log"),
    )


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep log files, credentials and console state local to each test."""
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "jira_cli.log"))
    for name in ("JIRA_EMAIL", "JIRA_API_TOKEN", "JIRA_URL", "MOVE_PROJECT", "LOG_LEVEL",
                 "CONSOLE_LOG_LEVEL", "AUTO_TRANSITION_MAX_STEPS"):
        monkeypatch.delenv(name, raising=False)
    yield
    console.set_quiet_mode(False)
    console.set_file_handler(None)
    console.set_output_stream(None)
    root = logging.getLogger()
    for handler in config.settings._handlers:
        root.removeHandler(handler)
        handler.close()
    config.settings._handlers.clear()
