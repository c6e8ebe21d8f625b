"""Tests for issue, link and dependency map models."""

from jira_ops.models import DependencyMap, IssueRef, Link


class TestIssueRef:
    def test_equality_uses_key_only(self) -> None:
        a = IssueRef("T-1", "old summary", "Open")
        b = IssueRef("T-1", "new summary", "Closed")

        assert a == b
        assert len({a, b}) == 1

    def test_from_raw_full_payload(self) -> None:
        raw = {
            "key": "PROJ-7",
            "fields": {
                "summary": "Do things",
                "status": {"name": "In Progress"},
                "issuetype": {"name": "End-to-end Test"},
            },
        }

        issue = IssueRef.from_raw(raw)

        assert issue.key == "PROJ-7"
        assert issue.summary == "Do things"
        assert issue.status == "In Progress"
        assert issue.issue_type == "End-to-end Test"

    def test_from_raw_missing_fields(self) -> None:
        issue = IssueRef.from_raw({"key": "PROJ-8", "fields": {"status": None}})

        assert issue.summary == ""
        assert issue.status == ""
        assert issue.issue_type == ""


class TestLink:
    def test_direction_helpers(self) -> None:
        a, b = IssueRef("A-1"), IssueRef("B-1")
        link = Link("Depends On", a, b)

        assert link.is_outgoing("A-1")
        assert not link.is_outgoing("B-1")
        assert link.other_end("A-1") == b
        assert link.other_end("B-1") == a


class TestDependencyMap:
    def test_add_refuses_self_and_duplicates(self) -> None:
        dep_map = DependencyMap(source_key="A-1")

        assert dep_map.add("A-1", IssueRef("T-1"))
        assert not dep_map.add("A-1", IssueRef("T-1", "dup"))
        assert not dep_map.add("A-1", IssueRef("A-1"))
        assert dep_map.e2e_keys("A-1") == ["T-1"]

    def test_pairs_flatten_and_placeholder(self) -> None:
        dep_map = DependencyMap(source_key="A-1")
        dep_map.ensure("A-1")
        dep_map.add("B-1", IssueRef("T-2"))
        dep_map.add("B-1", IssueRef("T-1"))

        pairs = [(key, e2e.key if e2e else None) for key, e2e in dep_map.pairs()]

        assert pairs == [("A-1", None), ("B-1", "T-1"), ("B-1", "T-2")]

    def test_record_failure_creates_entry(self) -> None:
        dep_map = DependencyMap(source_key="A-1")

        dep_map.record_failure("A-1", RuntimeError("boom"))

        assert dep_map["A-1"] == set()
        assert dep_map.failures == {"A-1": "boom"}

    def test_to_dict(self) -> None:
        dep_map = DependencyMap(source_key="A-1", recursive=True)
        dep_map.issues["A-1"] = IssueRef("A-1", "Feature", "Open")
        dep_map.add("A-1", IssueRef("T-1", "Test one", "Done"))
        dep_map.add_dependency("A-1", "B-1")
        dep_map.record_failure("B-1", "gone")

        data = dep_map.to_dict()

        assert data["source_key"] == "A-1"
        assert data["recursive"] is True
        assert data["issues"][0] == {
            "key": "A-1",
            "summary": "Feature",
            "status": "Open",
            "depends_on": ["B-1"],
            "e2e": [{"key": "T-1", "summary": "Test one", "status": "Done"}],
        }
        assert data["issues"][1]["key"] == "B-1"
        assert data["failures"] == {"B-1": "gone"}
