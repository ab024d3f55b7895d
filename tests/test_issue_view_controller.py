from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from textual import events

from issuedash.action import IssueActionType
from issuedash.config import AppConfig
from issuedash.context import ProgramContext, TaskState
from issuedash.github import Comment, Label, Review, ReviewThread, Subject
from issuedash.issueview import (
    COMMENT_PROMPT,
    CONFIRM_DISCARD_PROMPT,
    QUOTE_REPLY_PROMPT,
    InteractionMode,
    IssueViewController,
    quote_comment,
)
from issuedash.labels import LabelFetchCoordinator
from issuedash.messages import (
    ClearFetchStatus,
    FetchSuggestionsRequested,
    LabelsFetched,
    LabelsFetchFailed,
    TaskFinished,
)
from issuedash.tasks import GhTasks
from issuedash.ui.autocomplete import FetchStatus

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


def make_subject(
    number: int = 1,
    repo: str = "o/r",
    comments: list[Comment] | None = None,
    labels: list[str] | None = None,
    assignees: list[str] | None = None,
    is_pr: bool = False,
) -> Subject:
    return Subject(
        repo=repo,
        number=number,
        title="Title",
        body="Body",
        state="OPEN",
        author="alice",
        is_pr=is_pr,
        labels=labels or [],
        assignees=assignees or [],
        comments=comments or [],
    )


def three_comments() -> list[Comment]:
    # Deliberately out of order; navigation follows update time.
    return [
        Comment(author="u3", body="third", updated_at=at(3)),
        Comment(author="u1", body="first", updated_at=at(1)),
        Comment(author="u2", body="second", updated_at=at(2)),
    ]


class FakeFetcher:
    def __init__(self, names: list[str] | None = None) -> None:
        self.names = names or []
        self.calls: list[str] = []

    async def __call__(self, repo: str) -> list[Label]:
        self.calls.append(repo)
        return [Label(name=n) for n in self.names]


class RecordingRunner:
    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def __call__(self, args: list[str]) -> None:
        self.calls.append(args)


def make_controller(
    subject: Subject | None = None,
    user: str = "me",
    fetcher: FakeFetcher | None = None,
    keymap: dict[str, str] | None = None,
) -> IssueViewController:
    ctx = ProgramContext(config=AppConfig(keymap=keymap or {}), user=user)
    coordinator = LabelFetchCoordinator(fetcher or FakeFetcher())
    tasks = GhTasks(ctx, runner=RecordingRunner())
    controller = IssueViewController(ctx, coordinator, tasks)
    controller.set_subject(subject)
    return controller


def key(name: str, character: str | None = None) -> events.Key:
    return events.Key(name, character)


def type_text(controller: IssueViewController, text: str) -> None:
    for ch in text:
        controller.update(key(ch, ch))


# ---------------- Comment navigation ----------------


def test_scenario_a_navigation_follows_update_time() -> None:
    controller = make_controller(make_subject(comments=three_comments()))

    assert controller.update(key("tab")).handled is True
    assert controller.mode is InteractionMode.COMMENT_NAVIGATION
    assert controller.selected_comment().author == "u1"

    controller.update(key("j", "j"))
    controller.update(key("down"))
    assert controller.selected_comment().author == "u3"

    controller.update(key("j", "j"))
    assert controller.selected_comment_index == 2


def test_prev_is_noop_at_first_comment() -> None:
    controller = make_controller(make_subject(comments=three_comments()))
    controller.enter_comment_nav_mode()
    controller.update(key("k", "k"))
    controller.update(key("up"))
    assert controller.selected_comment_index == 0


def test_enter_nav_without_comments_is_noop_and_unhandled() -> None:
    controller = make_controller(make_subject())
    update = controller.update(key("tab"))
    assert controller.mode is InteractionMode.BROWSING
    assert controller.selected_comment_index == -1
    assert update.handled is False


def test_enter_nav_keeps_previous_selection() -> None:
    controller = make_controller(make_subject(comments=three_comments()))
    controller.selected_comment_index = 2
    controller.enter_comment_nav_mode()
    assert controller.selected_comment_index == 2


def test_escape_and_tab_leave_navigation() -> None:
    controller = make_controller(make_subject(comments=three_comments()))
    controller.enter_comment_nav_mode()
    controller.update(key("escape"))
    assert controller.mode is InteractionMode.BROWSING
    assert controller.selected_comment_index == -1

    controller.enter_comment_nav_mode()
    controller.update(key("tab"))
    assert controller.mode is InteractionMode.BROWSING


def test_pr_navigation_counts_thread_comments_but_not_reviews() -> None:
    subject = make_subject(is_pr=True, comments=[Comment(author="top", body="", updated_at=at(5))])
    subject.review_threads = [
        ReviewThread(path="a.py", line=3, comments=[Comment(author="inline", body="", updated_at=at(1))])
    ]
    subject.reviews = [Review(author="rev", body="", state="APPROVED", updated_at=at(2))]
    controller = make_controller(subject)

    assert controller.num_comments() == 2
    controller.enter_comment_nav_mode()
    first = controller.selected_comment()
    assert (first.author, first.path, first.line) == ("inline", "a.py", 3)


def test_comment_scroll_percent() -> None:
    controller = make_controller(make_subject(comments=three_comments()))
    assert controller.comment_scroll_percent() == -1
    controller.enter_comment_nav_mode()
    assert controller.comment_scroll_percent() == pytest.approx(0.30)


# ---------------- Subject replacement ----------------


def test_same_identity_refresh_preserves_mode_and_selection() -> None:
    subject = make_subject(comments=three_comments())
    controller = make_controller(subject)
    controller.enter_comment_nav_mode()
    controller.select_next_comment()

    controller.set_subject(replace(subject, title="Renamed"))

    assert controller.mode is InteractionMode.COMMENT_NAVIGATION
    assert controller.selected_comment_index == 1


def test_same_identity_refresh_clamps_selection() -> None:
    subject = make_subject(comments=three_comments())
    controller = make_controller(subject)
    controller.enter_comment_nav_mode()
    controller.selected_comment_index = 2

    controller.set_subject(replace(subject, comments=subject.comments[:1]))

    assert controller.selected_comment_index == 0


def test_same_identity_refresh_keeps_text_input() -> None:
    subject = make_subject()
    controller = make_controller(subject)
    controller.start_commenting()
    type_text(controller, "draft")

    controller.set_subject(replace(subject, body="edited"))

    assert controller.mode is InteractionMode.COMMENTING
    assert controller.input_box.value == "draft"


def test_different_identity_resets_state() -> None:
    controller = make_controller(make_subject(comments=three_comments()))
    controller.enter_comment_nav_mode()

    controller.set_subject(make_subject(number=2, comments=three_comments()))

    assert controller.mode is InteractionMode.BROWSING
    assert controller.selected_comment_index == -1


# ---------------- Commenting ----------------


def test_comment_key_enters_commenting_with_large_input() -> None:
    controller = make_controller(make_subject())
    controller.ctx.main_content_height = 40

    assert controller.update(key("c", "c")).handled is True

    assert controller.mode is InteractionMode.COMMENTING
    assert controller.is_text_input_focused()
    assert controller.input_box.focused
    assert controller.input_box.prompt == COMMENT_PROMPT
    assert controller.input_box.height == 30


def test_text_input_receives_mode_keys_verbatim() -> None:
    controller = make_controller(make_subject())
    controller.start_commenting()
    type_text(controller, "cLaxq")
    controller.update(key("enter", "\r"))
    assert controller.input_box.value == "cLaxq\n"
    assert controller.mode is InteractionMode.COMMENTING


@pytest.mark.asyncio
async def test_submit_comment_issues_task_and_returns_to_browsing() -> None:
    controller = make_controller(make_subject(number=42))
    controller.start_commenting()
    type_text(controller, "hi")

    update = controller.update(key("ctrl+d"))

    assert controller.mode is InteractionMode.BROWSING
    assert not controller.input_box.focused
    assert controller.ctx.tasks["issue_comment_42"].state is TaskState.STARTED
    result = await update.command()
    assert isinstance(result, TaskFinished)
    assert result.error is None
    assert result.update.new_comment.author == "me"
    assert controller.tasks._runner.calls == [["issue", "comment", "42", "-R", "o/r", "-b", "hi"]]


def test_submit_whitespace_comment_issues_nothing() -> None:
    controller = make_controller(make_subject())
    controller.start_commenting()
    type_text(controller, "   ")

    update = controller.update(key("ctrl+d"))

    assert update.command is None
    assert controller.mode is InteractionMode.BROWSING
    assert controller.ctx.tasks == {}


def test_first_cancel_asks_for_confirmation() -> None:
    controller = make_controller(make_subject())
    controller.start_commenting()
    type_text(controller, "draft")

    controller.update(key("escape"))

    assert controller.mode is InteractionMode.COMMENTING
    assert controller.show_confirm_cancel is True
    assert controller.input_box.prompt == CONFIRM_DISCARD_PROMPT


@pytest.mark.parametrize("confirm", [key("y", "y"), key("Y", "Y"), key("escape"), key("ctrl+c")])
def test_confirming_discard_returns_to_browsing(confirm: events.Key) -> None:
    controller = make_controller(make_subject())
    controller.start_commenting()
    type_text(controller, "draft")
    controller.update(key("escape"))

    controller.update(confirm)

    assert controller.mode is InteractionMode.BROWSING
    assert controller.show_confirm_cancel is False


def test_declining_discard_keeps_text() -> None:
    controller = make_controller(make_subject())
    controller.start_commenting()
    type_text(controller, "draft")
    controller.update(key("escape"))

    controller.update(key("n", "n"))

    assert controller.mode is InteractionMode.COMMENTING
    assert controller.show_confirm_cancel is False
    assert controller.input_box.prompt == COMMENT_PROMPT
    assert controller.input_box.value == "draft"


def test_other_key_dismisses_confirmation_and_is_typed() -> None:
    controller = make_controller(make_subject())
    controller.start_commenting()
    controller.update(key("escape"))

    controller.update(key("z", "z"))

    assert controller.show_confirm_cancel is False
    assert controller.input_box.value == "z"


# ---------------- Quote reply ----------------


def test_quote_comment_format() -> None:
    comment = Comment(author="bob", body="line one\nline two", updated_at=T0)
    assert quote_comment(comment).split("\n") == [
        "> @bob wrote:",
        ">",
        "> line one",
        "> line two",
        "",
        "",
    ]


def test_quote_key_emits_action_then_reply_seeds_input() -> None:
    controller = make_controller(make_subject(comments=three_comments()))
    controller.enter_comment_nav_mode()

    update = controller.update(key("q", "q"))

    assert update.action.type is IssueActionType.QUOTE_REPLY
    assert update.action.comment.author == "u1"
    assert controller.mode is InteractionMode.COMMENT_NAVIGATION

    controller.start_quote_reply(update.action.comment)
    assert controller.mode is InteractionMode.COMMENTING
    assert controller.input_box.prompt == QUOTE_REPLY_PROMPT
    assert controller.input_box.value.startswith("> @u1 wrote:\n>\n> first")
    assert controller.input_box.cursor == len(controller.input_box.value)
    assert controller.selected_comment_index == -1

    controller.update(key("escape"))
    controller.update(key("y", "y"))
    assert controller.mode is InteractionMode.BROWSING
    assert controller.selected_comment_index == -1


# ---------------- Labeling ----------------


@pytest.mark.asyncio
async def test_scenario_b_labeling_uncached_repo() -> None:
    fetcher = FakeFetcher(["bug", "ui", "wip"])
    controller = make_controller(make_subject(labels=["bug", "ui"]), fetcher=fetcher)
    controller.autocomplete.clear_delay = 0

    update = controller.update(key("L", "L"))

    assert controller.mode is InteractionMode.LABELING
    assert controller.input_box.value == "bug, ui, "
    assert controller.autocomplete.status is FetchStatus.LOADING
    assert update.command is not None

    msg = await update.command()
    assert fetcher.calls == ["o/r"]
    after = controller.update(msg)

    assert controller.autocomplete.filtered == ["wip"]
    assert controller.autocomplete.selected_suggestion() == "wip"
    assert controller.autocomplete.status is FetchStatus.SUCCESS
    assert controller.labels.cached("o/r") is not None
    # The success status clears itself later
    assert isinstance(await after.command(), ClearFetchStatus)


def test_second_labeling_entry_uses_cache() -> None:
    fetcher = FakeFetcher()
    controller = make_controller(make_subject(labels=["bug"]), fetcher=fetcher)
    controller.labels.handle_fetched(LabelsFetched(repo="o/r", labels=[Label("bug"), Label("docs")]))

    update = controller.update(key("L", "L"))

    assert update.command is None
    assert fetcher.calls == []
    assert controller.autocomplete.filtered == ["docs"]


@pytest.mark.asyncio
async def test_scenario_c_forced_refresh_evicts_and_fetches_once() -> None:
    fetcher = FakeFetcher(["bug", "docs"])
    controller = make_controller(make_subject(), fetcher=fetcher)
    controller.labels.handle_fetched(LabelsFetched(repo="o/r", labels=[Label("bug")]))
    controller.start_labeling()

    update = controller.update(key("ctrl+f"))
    assert update.handled is True
    request = await update.command()
    assert isinstance(request, FetchSuggestionsRequested) and request.force
    # Nothing is evicted until the request comes back through the update loop
    assert controller.labels.cached("o/r") is not None

    update = controller.update(request)

    assert controller.labels.cached("o/r") is None
    assert controller.autocomplete.is_loading
    fetched = await update.command()
    assert fetcher.calls == ["o/r"]
    assert isinstance(fetched, LabelsFetched)


def test_fetch_suggestions_requested_only_applies_while_labeling() -> None:
    controller = make_controller(make_subject())
    assert controller.update(FetchSuggestionsRequested(force=True)).command is None

    controller.labels.handle_fetched(LabelsFetched(repo="o/r", labels=[Label("bug")]))
    controller.start_labeling()
    assert controller.update(FetchSuggestionsRequested(force=True)).command is not None


def test_typing_filters_suggestions_and_tab_accepts() -> None:
    controller = make_controller(make_subject())
    controller.labels.handle_fetched(
        LabelsFetched(repo="o/r", labels=[Label("bug"), Label("build"), Label("docs")])
    )
    controller.start_labeling()
    assert controller.input_box.value == ""

    type_text(controller, "bu")
    assert controller.autocomplete.filtered == ["bug", "build"]

    controller.update(key("down"))
    controller.update(key("tab"))

    assert controller.input_box.value == "build, "
    assert controller.autocomplete.filtered == ["bug", "docs"]


def test_fetch_failure_is_shown_inline_and_cache_untouched() -> None:
    controller = make_controller(make_subject())
    controller.start_labeling()

    update = controller.update(LabelsFetchFailed(repo="o/r", error=RuntimeError("offline")))

    assert controller.autocomplete.status is FetchStatus.ERROR
    assert str(controller.autocomplete.error) == "offline"
    assert controller.labels.cached("o/r") is None
    assert update.command is not None


def test_clear_status_is_ignored_while_loading() -> None:
    controller = make_controller(make_subject())
    controller.start_labeling()
    controller.update(ClearFetchStatus())
    assert controller.autocomplete.is_loading


@pytest.mark.asyncio
async def test_submit_labels_diffs_against_current() -> None:
    controller = make_controller(make_subject(number=9, labels=["bug", "ui"]))
    controller.labels.handle_fetched(LabelsFetched(repo="o/r", labels=[]))
    controller.start_labeling()
    controller.input_box.set_value("bug, wip")

    update = controller.update(key("ctrl+d"))
    await update.command()

    assert controller.mode is InteractionMode.BROWSING
    assert controller.tasks._runner.calls == [
        ["issue", "edit", "9", "-R", "o/r", "--add-label", "wip", "--remove-label", "ui"]
    ]


def test_labeling_cancel_discards_without_confirmation() -> None:
    controller = make_controller(make_subject(labels=["bug"]))
    controller.start_labeling()
    controller.update(key("escape"))
    assert controller.mode is InteractionMode.BROWSING
    assert controller.show_confirm_cancel is False


# ---------------- Assigning ----------------


def test_assign_prefills_current_user() -> None:
    controller = make_controller(make_subject(), user="me")
    controller.update(key("a", "a"))
    assert controller.mode is InteractionMode.ASSIGNING
    assert controller.input_box.value == "me"


def test_assign_does_not_prefill_when_already_assigned() -> None:
    controller = make_controller(make_subject(assignees=["me"]), user="me")
    controller.start_assigning()
    assert controller.input_box.value == ""


def test_unassign_prefills_assignees_one_per_line() -> None:
    controller = make_controller(make_subject(assignees=["bob", "carol"]))
    controller.update(key("A", "A"))
    assert controller.mode is InteractionMode.UNASSIGNING
    assert controller.input_box.value == "bob\ncarol"


@pytest.mark.asyncio
async def test_submit_unassign_passes_each_user() -> None:
    controller = make_controller(make_subject(number=3, assignees=["bob", "carol"]))
    controller.start_unassigning()

    update = controller.update(key("ctrl+d"))
    result = await update.command()

    assert controller.tasks._runner.calls == [
        ["issue", "edit", "3", "-R", "o/r", "--remove-assignee", "bob", "--remove-assignee", "carol"]
    ]
    assert result.update.removed_assignees == ["bob", "carol"]


def test_assign_cancel_returns_immediately() -> None:
    controller = make_controller(make_subject())
    controller.start_assigning()
    update = controller.update(key("escape"))
    assert update.command is None
    assert controller.mode is InteractionMode.BROWSING


# ---------------- Browsing actions ----------------


@pytest.mark.parametrize(
    ("pressed", "expected"),
    [
        (key("x", "x"), IssueActionType.CLOSE),
        (key("X", "X"), IssueActionType.REOPEN),
        (key("e", "e"), IssueActionType.EDITOR_COMMENT),
    ],
)
def test_browsing_keys_emit_one_action(pressed: events.Key, expected: IssueActionType) -> None:
    controller = make_controller(make_subject())
    update = controller.update(pressed)
    assert update.action.type is expected
    assert update.command is None
    assert controller.mode is InteractionMode.BROWSING


def test_unbound_key_is_not_handled() -> None:
    controller = make_controller(make_subject())
    assert controller.update(key("r", "r")).handled is False


def test_no_subject_ignores_keys() -> None:
    controller = make_controller(None)
    assert controller.update(key("c", "c")).handled is False
    assert controller.mode is InteractionMode.BROWSING


def test_keymap_overrides_defaults() -> None:
    controller = make_controller(make_subject(comments=three_comments()), keymap={"next_comment": "n"})
    controller.enter_comment_nav_mode()
    controller.update(key("j", "j"))
    assert controller.selected_comment_index == 0
    controller.update(key("n", "n"))
    assert controller.selected_comment_index == 1
