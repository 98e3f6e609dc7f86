import random

import pytest

from models import User
from results_service import compute_summaries, get_participant_summary, list_participants


@pytest.fixture
def event_data(make_user, make_question, add_attempt, add_telemetry):
    q1 = make_question("cp-1", 1, correct="A")
    q2 = make_question("cp-2", 2, correct="B")
    q3 = make_question("cp-3", 3, correct="C")

    both = make_user(name="12", phone_number="+70000000012", user_id="u-both")
    quiz_only = make_user(name="13", phone_number="+70000000013", user_id="u-quiz")
    telemetry_only = make_user(name="14", phone_number="+70000000014", user_id="u-tele")
    make_user(name="15", user_id="u-idle")

    add_attempt(both, q1, "A")
    add_attempt(both, q2, "X")
    add_attempt(both, q3, "C")
    add_attempt(quiz_only, q1, "A")

    add_telemetry("12", "M21", 5)
    add_telemetry("12", "M21", 3)
    add_telemetry("14", "W21", 40)
    add_telemetry("99", "M21", 100)
    return {"q1": q1, "q2": q2, "q3": q3}


def _by_user(summaries):
    return {s.user_id: s for s in summaries}


def test_summaries_join_quiz_and_telemetry(db, event_data):
    summaries = _by_user(compute_summaries(db))

    both = summaries["u-both"]
    assert both.start_number == "12"
    assert both.group_name == "M21"
    assert both.total_questions == 3
    assert both.quiz_points == 2
    assert both.telemetry_points == 8
    assert both.total_points == 10


def test_missing_side_counts_as_zero(db, event_data):
    summaries = _by_user(compute_summaries(db))

    assert summaries["u-quiz"].telemetry_points == 0
    assert summaries["u-quiz"].total_points == 1
    assert summaries["u-quiz"].group_name is None
    assert summaries["u-tele"].quiz_points == 0
    assert summaries["u-tele"].total_questions == 0
    assert summaries["u-tele"].total_points == 40


def test_only_participants_with_records_appear(db, event_data):
    user_ids = [s.user_id for s in compute_summaries(db)]

    assert sorted(user_ids) == ["u-both", "u-quiz", "u-tele"]


def test_summaries_are_ordered_by_total(db, event_data):
    totals = [s.total_points for s in compute_summaries(db)]

    assert totals == sorted(totals, reverse=True)


def test_filter_by_group_and_start_number(db, event_data):
    assert [s.user_id for s in compute_summaries(db, group="w2")] == ["u-tele"]
    assert [s.user_id for s in compute_summaries(db, start_number="13")] == ["u-quiz"]


def test_telemetry_join_is_exact(db, make_user, add_telemetry):
    make_user(name="12 ", user_id="u-space")
    add_telemetry("12", "M", 5)

    assert compute_summaries(db) == []


def test_participant_summary_without_records(db, make_user):
    user = make_user(name="77", user_id="u-new")

    summary = get_participant_summary(db, user)

    assert summary.start_number == "77"
    assert summary.total_points == 0


def test_participant_summary_matches_aggregate(db, event_data):
    user = db.query(User).filter(User.id == "u-both").one()

    assert get_participant_summary(db, user) == _by_user(compute_summaries(db))["u-both"]


@pytest.mark.parametrize("seed", range(5))
def test_generated_totals_are_consistent(db, make_user, make_question, add_attempt, add_telemetry, seed):
    rng = random.Random(seed)
    questions = [make_question(f"cp-{n}", n, correct="A") for n in range(1, 6)]
    users = [make_user(name=str(100 + i), user_id=f"u-{i}") for i in range(8)]
    expected = {}
    for user in users:
        answered = rng.sample(questions, rng.randint(0, len(questions)))
        quiz = 0
        for question in answered:
            answer = rng.choice(["A", "B"])
            add_attempt(user, question, answer)
            quiz += answer == "A"
        telemetry = 0
        for _ in range(rng.randint(0, 3)):
            points = rng.randint(0, 20)
            add_telemetry(user.name, "G", points)
            telemetry += points
        expected[user.id] = (len(answered), quiz, telemetry)

    summaries = compute_summaries(db)

    user_ids = [s.user_id for s in summaries]
    assert len(user_ids) == len(set(user_ids))
    for summary in summaries:
        answered, quiz, telemetry = expected[summary.user_id]
        assert summary.total_questions == answered
        assert summary.quiz_points == quiz
        assert summary.telemetry_points == telemetry
        assert summary.total_points == summary.quiz_points + summary.telemetry_points
    present = {uid for uid, (answered, _, _) in expected.items() if answered}
    assert present <= set(user_ids)


# Results table

def test_answer_slots_follow_question_numbers(db, event_data):
    page = list_participants(db, max_questions=5)
    row = next(r for r in page.users if r.user_id == "u-both")

    assert len(row.questions) == 5
    assert (row.questions[0].answer, row.questions[0].correct) == ("A", 1)
    assert (row.questions[1].answer, row.questions[1].correct) == ("X", 0)
    assert (row.questions[2].answer, row.questions[2].correct) == ("C", 1)
    assert (row.questions[3].answer, row.questions[3].correct) == ("", 0)
    assert row.correct_count == 2


def test_default_slot_count(db, event_data):
    page = list_participants(db)

    assert all(len(r.questions) == 50 for r in page.users)


def test_table_lists_only_participants_with_attempts(db, event_data):
    page = list_participants(db)

    assert sorted(r.user_id for r in page.users) == ["u-both", "u-quiz"]


def test_search_matches_name_or_phone(db, event_data):
    assert [r.user_id for r in list_participants(db, search="0013").users] == ["u-quiz"]
    assert [r.user_id for r in list_participants(db, search="12").users] == ["u-both"]


def test_search_treats_wildcards_literally(db, make_user, make_question, add_attempt):
    question = make_question("cp-1", 1)
    add_attempt(make_user(name="12", user_id="u-plain"), question, "A")
    add_attempt(make_user(name="m_12", user_id="u-under"), question, "A")
    add_attempt(make_user(name="50%", user_id="u-pct"), question, "A")

    assert [r.user_id for r in list_participants(db, search="_").users] == ["u-under"]
    assert [r.user_id for r in list_participants(db, search="%").users] == ["u-pct"]


def test_summary_filters_treat_wildcards_literally(db, make_user, add_telemetry):
    make_user(name="12", user_id="u-12")
    make_user(name="13", user_id="u-13")
    add_telemetry("12", "M_21", 5)
    add_telemetry("13", "M21", 7)

    assert [s.user_id for s in compute_summaries(db, group="_")] == ["u-12"]
    assert compute_summaries(db, start_number="%") == []


def test_correct_count_bounds(db, event_data):
    assert [r.user_id for r in list_participants(db, min_correct=2).users] == ["u-both"]
    assert [r.user_id for r in list_participants(db, max_correct=1).users] == ["u-quiz"]


def test_sort_by_correct_count_desc(db, event_data):
    page = list_participants(db, sort_by="correct_count", sort_order="desc")

    assert [r.correct_count for r in page.users] == [2, 1]
    assert page.filters.sort_order.value == "desc"


def test_string_sort_ignores_case(db, make_user, make_question, add_attempt):
    question = make_question("cp-1", 1)
    for name in ["bravo", "Alpha", "charlie"]:
        add_attempt(make_user(name=name, user_id=f"u-{name}"), question, "A")

    page = list_participants(db, sort_by="full_name")

    assert [r.full_name for r in page.users] == ["Alpha", "bravo", "charlie"]


def test_unknown_sort_field_falls_back_to_name(db, event_data):
    page = list_participants(db, sort_by="password")

    assert page.filters.sort_by == "full_name"
    assert [r.full_name for r in page.users] == ["12", "13"]


@pytest.fixture
def many_participants(make_user, make_question, add_attempt):
    question = make_question("cp-1", 1)
    for i in range(101):
        add_attempt(make_user(name=f"{i:03d}", user_id=f"u-{i:03d}"), question, "A")


def test_pagination_boundaries(db, many_participants):
    first = list_participants(db, page=1, limit=50)
    last = list_participants(db, page=3, limit=50)

    assert first.pagination.total_items == 101
    assert first.pagination.total_pages == 3
    assert first.pagination.has_next is True
    assert first.pagination.has_prev is False
    assert len(last.users) == 1
    assert last.users[0].row_number == 101
    assert last.pagination.has_next is False
    assert last.pagination.has_prev is True


def test_limit_and_page_are_clamped(db, many_participants):
    page = list_participants(db, page=0, limit=200)

    assert page.pagination.limit == 100
    assert page.pagination.page == 1
    assert len(page.users) == 100

    assert list_participants(db, limit=0).pagination.limit == 1


def test_empty_table(db):
    page = list_participants(db)

    assert page.users == []
    assert page.pagination.total_pages == 0
    assert page.pagination.has_next is False
