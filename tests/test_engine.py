from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from conftest import FakeRepository
from gitit.engine import IssueTracker
from gitit.errors import ErrorCode, GitItError
from gitit.models import FilterRequest, SetFieldRequest, ShowRequest


def _set(tracker: IssueTracker, key: str, value: str) -> None:
    tracker.set_field(SetFieldRequest(key=key, value=value))


def _create_open_and_closed(tracker: IssueTracker) -> None:
    tracker.new_issue()
    _set(tracker, "summary", "Crash on start")
    _set(tracker, "status", "open")
    tracker.close_issue()
    tracker.new_issue()
    _set(tracker, "summary", "Typo in help")
    _set(tracker, "status", "closed")
    tracker.close_issue()


def test_initialize_commits_default_record(tmp_path: Path, fake_repo: FakeRepository) -> None:
    tracker = IssueTracker(tmp_path, repository=fake_repo, env={})

    response = tracker.initialize()

    assert response.status == "success"
    assert response.main_branch == "master"
    assert response.fields == ["summary", "type", "status", "assigned", "description"]
    assert fake_repo.log == [("master", "Issue repo initialized.")]
    assert fake_repo.commits["master"]["issue"] == (tmp_path / "issue").read_text(encoding="utf-8")
    assert tracker.current_issue() == ""
    assert not tracker.is_dirty()


def test_initialize_refuses_existing_repository(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as exc_info:
        tracker.initialize()

    assert exc_info.value.code == ErrorCode.REPO_ALREADY_EXISTS


def test_initialize_requires_existing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    tracker = IssueTracker(missing, repository=FakeRepository(missing), env={})

    with pytest.raises(GitItError) as exc_info:
        tracker.initialize()

    assert exc_info.value.code == ErrorCode.INVALID_INPUT


def test_operations_require_repository(tmp_path: Path, fake_repo: FakeRepository) -> None:
    tracker = IssueTracker(tmp_path, repository=fake_repo, env={})

    with pytest.raises(GitItError) as exc_info:
        tracker.new_issue()

    assert exc_info.value.code == ErrorCode.REPO_NOT_FOUND
    assert exc_info.value.message == "Issue tracker repository not found"


def test_new_issue_ids_are_sequential(tracker: IssueTracker) -> None:
    first = tracker.new_issue()
    tracker.close_issue()
    second = tracker.new_issue()

    assert first.issue_id == "0001"
    assert first.branch == "issue/0001"
    assert second.issue_id == "0002"
    assert tracker.current_issue() == "0002"


def test_new_issue_starts_from_main_branch(tracker: IssueTracker) -> None:
    tracker.new_issue()
    _set(tracker, "summary", "First issue")
    tracker.save_issue()

    response = tracker.new_issue()
    record = tracker.store.read_working_record()

    assert response.previous_issue == "0001"
    assert record.get("summary") == ""


def test_open_accepts_unpadded_id(tracker: IssueTracker) -> None:
    tracker.new_issue()
    tracker.close_issue()

    response = tracker.open_issue("1")

    assert response.issue_id == "0001"
    assert tracker.current_issue() == "0001"


def test_open_already_open_issue_is_noop(tracker: IssueTracker) -> None:
    tracker.new_issue()

    response = tracker.open_issue("0001")

    assert response.message == "Issue 0001 is already open"
    assert response.previous_issue == "0001"


def test_open_missing_issue(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as exc_info:
        tracker.open_issue("9")

    assert exc_info.value.code == ErrorCode.ISSUE_NOT_FOUND
    assert exc_info.value.message == "0009 is not a valid issue"


@pytest.mark.parametrize("issue_id", ["abc", "master"])
def test_open_rejects_invalid_ids(tracker: IssueTracker, issue_id: str) -> None:
    with pytest.raises(GitItError) as exc_info:
        tracker.open_issue(issue_id)

    assert exc_info.value.code == ErrorCode.INVALID_ID


def test_dirty_issue_blocks_open_and_new(tracker: IssueTracker) -> None:
    tracker.new_issue()
    tracker.close_issue()
    tracker.new_issue()
    _set(tracker, "status", "open")

    with pytest.raises(GitItError) as open_exc:
        tracker.open_issue("0001")
    with pytest.raises(GitItError) as new_exc:
        tracker.new_issue()

    assert open_exc.value.code == ErrorCode.DIRTY_WORKING_TREE
    assert new_exc.value.code == ErrorCode.DIRTY_WORKING_TREE
    assert tracker.current_issue() == "0002"
    assert tracker.store.read_working_record().get("status") == "open"


def test_save_commits_changes_once(tracker: IssueTracker, fake_repo: FakeRepository) -> None:
    tracker.new_issue()
    _set(tracker, "status", "open")

    first = tracker.save_issue()
    second = tracker.save_issue()

    assert first.committed is True
    assert first.closed is False
    assert second.committed is False
    assert fake_repo.log[-1] == ("issue/0001", "Updated issue.")
    assert len(fake_repo.log) == 2
    assert not tracker.is_dirty()
    assert tracker.current_issue() == "0001"


def test_save_without_open_issue(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as exc_info:
        tracker.save_issue()

    assert exc_info.value.code == ErrorCode.NO_OPEN_ISSUE


def test_close_saves_and_returns_to_main(tracker: IssueTracker, fake_repo: FakeRepository) -> None:
    tracker.new_issue()
    _set(tracker, "summary", "Crash on start")

    response = tracker.close_issue()

    assert response.closed is True
    assert response.committed is True
    assert response.current_branch == "master"
    assert tracker.current_issue() == ""
    assert "Crash on start" in fake_repo.commits["issue/0001"]["issue"]
    assert tracker.store.read_working_record().get("summary") == ""


def test_cancel_discards_uncommitted_changes(tracker: IssueTracker) -> None:
    tracker.new_issue()
    _set(tracker, "status", "open")

    response = tracker.cancel()

    assert response.discarded is True
    assert response.previous_issue == "0001"
    assert tracker.current_issue() == ""

    tracker.open_issue("0001")
    assert tracker.store.read_working_record().get("status") == ""


def test_cancel_on_main_is_harmless(tracker: IssueTracker) -> None:
    response = tracker.cancel()

    assert response.discarded is False
    assert response.current_branch == "master"


def test_close_on_save_policy_from_env(tmp_path: Path, fake_repo: FakeRepository, tracker: IssueTracker) -> None:
    tracker.new_issue()
    _set(tracker, "status", "open")
    closing = IssueTracker(tmp_path, repository=fake_repo, env={"GITIT_CLOSE_ON_SAVE": "true"})

    response = closing.save_issue()

    assert response.committed is True
    assert response.closed is True
    assert response.current_branch == "master"
    assert closing.current_issue() == ""


def test_set_field_requires_existing_key(tracker: IssueTracker) -> None:
    tracker.new_issue()

    with pytest.raises(GitItError) as exc_info:
        _set(tracker, "priority", "high")

    assert exc_info.value.code == ErrorCode.FIELD_NOT_FOUND
    assert not tracker.is_dirty()


def test_set_field_requires_open_issue(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as exc_info:
        _set(tracker, "status", "open")

    assert exc_info.value.code == ErrorCode.NO_OPEN_ISSUE


def test_set_field_request_validation() -> None:
    with pytest.raises(ValidationError):
        SetFieldRequest(key="", value="x")
    with pytest.raises(ValidationError):
        SetFieldRequest(key="a:b", value="x")


def test_list_filters_by_committed_field(tracker: IssueTracker) -> None:
    _create_open_and_closed(tracker)

    open_issues = tracker.list_issues(FilterRequest(key="status", value="open"))
    with_status = tracker.issue_ids(FilterRequest(key="status"))
    with_priority = tracker.issue_ids(FilterRequest(key="priority"))

    assert [issue.issue_id for issue in open_issues.issues] == ["0001"]
    assert open_issues.issues[0].summary == "Crash on start"
    assert with_status == ["0001", "0002"]
    assert with_priority == []


def test_matching_unknown_key_with_value_is_empty(tracker: IssueTracker) -> None:
    _create_open_and_closed(tracker)

    assert tracker.query.matching("nonexistent", "x") == []


def test_value_without_key_keeps_every_issue(tracker: IssueTracker) -> None:
    _create_open_and_closed(tracker)

    listed = tracker.list_issues(FilterRequest(key="", value="open"))

    assert [issue.issue_id for issue in listed.issues] == ["0001", "0002"]
    assert tracker.issue_ids(FilterRequest(value="closed")) == ["0001", "0002"]


@pytest.mark.parametrize(("key", "value"), [("", ""), ("status", ""), ("status", "open"), ("nonexistent", "x")])
def test_matching_is_idempotent(tracker: IssueTracker, key: str, value: str) -> None:
    _create_open_and_closed(tracker)

    first = tracker.query.matching(key, value)
    second = tracker.query.matching(key, value)

    assert first == second


def test_save_refuses_missing_record(tmp_path: Path, tracker: IssueTracker, fake_repo: FakeRepository) -> None:
    _create_open_and_closed(tracker)
    tracker.new_issue()
    (tmp_path / "issue").unlink()

    with pytest.raises(GitItError) as exc_info:
        tracker.save_issue()
    tracker.cancel()

    assert exc_info.value.code == ErrorCode.RECORD_NOT_FOUND
    assert "issue" in fake_repo.commits["issue/0003"]
    assert tracker.issue_ids(FilterRequest(key="status", value="open")) == ["0001"]


def test_list_marks_current_and_dirty_issue(tracker: IssueTracker) -> None:
    _create_open_and_closed(tracker)
    tracker.open_issue("0002")

    clean = tracker.list_issues()
    _set(tracker, "status", "reopened")
    dirty = tracker.list_issues()

    assert [(issue.issue_id, issue.current, issue.dirty) for issue in clean.issues] == [
        ("0001", False, False),
        ("0002", True, False),
    ]
    assert dirty.issues[1].dirty is True
    assert dirty.issues[1].status == "closed"


def test_issue_enumeration_ignores_foreign_branches(tracker: IssueTracker, fake_repo: FakeRepository) -> None:
    snapshot = dict(fake_repo.commits["master"])
    fake_repo.commits["issue/0010"] = snapshot
    fake_repo.commits["issue/0002"] = snapshot
    fake_repo.commits["issue/7"] = snapshot
    fake_repo.commits["feature/login"] = snapshot

    assert tracker.issue_ids() == ["0002", "0010"]
    assert tracker.new_issue().issue_id == "0011"


def test_show_defaults_to_open_issue_working_copy(tracker: IssueTracker) -> None:
    tracker.new_issue()
    _set(tracker, "summary", "Unsaved summary")

    response = tracker.show()

    assert response.count == 1
    assert response.issues[0].issue_id == "0001"
    assert response.issues[0].working_copy is True
    assert response.issues[0].fields["summary"] == "Unsaved summary"


def test_show_without_open_issue(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as exc_info:
        tracker.show()

    assert exc_info.value.code == ErrorCode.NO_OPEN_ISSUE


def test_show_all_and_specific_ids(tracker: IssueTracker) -> None:
    _create_open_and_closed(tracker)

    every = tracker.show(ShowRequest(ids=["all"]))
    single = tracker.show(ShowRequest(ids=["2"]))

    assert [issue.issue_id for issue in every.issues] == ["0001", "0002"]
    assert single.issues[0].fields["status"] == "closed"
    assert single.issues[0].working_copy is False


def test_show_validates_ids_before_reading(tracker: IssueTracker) -> None:
    _create_open_and_closed(tracker)

    with pytest.raises(GitItError) as exc_info:
        tracker.show(ShowRequest(ids=["1", "nope"]))

    assert exc_info.value.code == ErrorCode.INVALID_ID


def test_status_reports_working_copy(tracker: IssueTracker) -> None:
    idle = tracker.get_status()
    tracker.new_issue()
    _set(tracker, "summary", "Working summary")
    active = tracker.get_status()

    assert idle.current_issue == ""
    assert idle.issue is None
    assert idle.current_branch == "master"
    assert active.current_issue == "0001"
    assert active.dirty is True
    assert active.issue.summary == "Working summary"


def test_blame_defaults_to_main_branch(tracker: IssueTracker) -> None:
    response = tracker.blame()

    assert response.branch == "master"
    assert "summary:" in response.text


def test_blame_for_issue(tracker: IssueTracker) -> None:
    tracker.new_issue()
    tracker.close_issue()

    response = tracker.blame("1")

    assert response.branch == "issue/0001"
    assert response.issue_id == "0001"


def test_attach_stages_files_with_issue(tmp_path: Path, tracker: IssueTracker, fake_repo: FakeRepository) -> None:
    tracker.new_issue()
    (tmp_path / "trace.log").write_text("stack trace\n", encoding="utf-8")

    response = tracker.attach(["trace.log"])
    saved = tracker.save_issue()

    assert response.files == ["trace.log"]
    assert saved.committed is True
    assert fake_repo.commits["issue/0001"]["trace.log"] == "stack trace\n"


def test_attach_requires_files_and_open_issue(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as empty_exc:
        tracker.attach([])
    with pytest.raises(GitItError) as closed_exc:
        tracker.attach(["trace.log"])

    assert empty_exc.value.code == ErrorCode.INVALID_INPUT
    assert closed_exc.value.code == ErrorCode.NO_OPEN_ISSUE


def test_prepare_edit_opens_target_issue(tracker: IssueTracker, tmp_path: Path) -> None:
    tracker.new_issue()
    tracker.close_issue()

    response = tracker.prepare_edit("1")

    assert response.opened is True
    assert response.issue_id == "0001"
    assert Path(response.path) == (tmp_path / "issue").resolve()
    assert tracker.current_issue() == "0001"


def test_prepare_edit_requires_open_issue_without_id(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as exc_info:
        tracker.prepare_edit()

    assert exc_info.value.code == ErrorCode.NO_OPEN_ISSUE


def test_config_persists_policy(tmp_path: Path, tracker: IssueTracker, fake_repo: FakeRepository) -> None:
    config = tracker.set_config("close_on_save", "yes")

    stored = yaml.safe_load((tmp_path / ".git" / "gitit.yaml").read_text(encoding="utf-8"))
    overridden = IssueTracker(tmp_path, repository=fake_repo, env={"GITIT_CLOSE_ON_SAVE": "0"})

    assert config == {"close_on_save": True}
    assert stored == {"close_on_save": True}
    assert tracker.effective_settings().close_on_save is True
    assert overridden.effective_settings().close_on_save is False


def test_config_rejects_unknown_keys_and_bad_values(tracker: IssueTracker) -> None:
    with pytest.raises(GitItError) as key_exc:
        tracker.set_config("main_branch", "trunk")
    with pytest.raises(GitItError) as value_exc:
        tracker.set_config("require_clean_checkout", "maybe")

    assert key_exc.value.code == ErrorCode.INVALID_INPUT
    assert value_exc.value.code == ErrorCode.INVALID_INPUT
    assert tracker.get_config() == {}


def test_invalid_env_setting_is_reported(tmp_path: Path, fake_repo: FakeRepository) -> None:
    tracker = IssueTracker(tmp_path, repository=fake_repo, env={"GITIT_MAIN_BRANCH": "issue/main"})

    with pytest.raises(GitItError) as exc_info:
        tracker.initialize()

    assert exc_info.value.code == ErrorCode.INVALID_INPUT
