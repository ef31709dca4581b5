import pytest
from sqlalchemy import select, func

from core.exceptions import InvalidInputError, NotFoundError
from models.session import UserAnswer
from services.pool_service import QuestionPoolService
from services.progress_service import ProgressService, evaluate_answer
from services.session_service import SessionService


async def option_split(db, question_id):
    """Return (is_multiple_choice, correct ids, wrong ids) for a question."""
    is_multiple, options = await QuestionPoolService(db).option_facts(question_id)
    correct = sorted(option_id for option_id, is_answer in options.items() if is_answer)
    wrong = sorted(option_id for option_id, is_answer in options.items() if not is_answer)
    return is_multiple, correct, wrong


@pytest.fixture
def start_session(db, owner, quiz_factory):
    async def factory(questions=5, name="practice", multiple_every=0):
        quiz = await quiz_factory(questions, multiple_every=multiple_every)
        created = await SessionService(db).create_session(name, quiz.id, questions, "random", owner.id)
        return created.session_id
    return factory


def test_evaluate_single_select():
    assert evaluate_answer(False, [3], [3])
    assert not evaluate_answer(False, [4], [3])
    assert evaluate_answer(False, [4], [3, 4])


def test_evaluate_multi_select_needs_exact_set():
    assert evaluate_answer(True, [2, 1], [1, 2])
    assert evaluate_answer(True, [1, 2, 2], [2, 1])
    assert not evaluate_answer(True, [1], [1, 2])
    assert not evaluate_answer(True, [1, 2, 3], [1, 2])


async def test_single_select_correct_and_incorrect(db, start_session):
    session_id = await start_session()
    progress = ProgressService(db)
    first = await progress.question_id_at(session_id, 0)
    second = await progress.question_id_at(session_id, 1)
    _, correct, wrong = await option_split(db, first)
    _, _, wrong_second = await option_split(db, second)

    right = await progress.record_answer(session_id, first, [correct[0]], duration_ms=1500)
    missed = await progress.record_answer(session_id, second, [wrong_second[0]])

    assert right.is_correct and right.question_number == 0 and not right.is_last
    assert not missed.is_correct and missed.question_number == 1
    assert await progress.correct_answer_count(session_id) == 1
    assert await progress.incorrect_question_ids(session_id) == [second]


async def test_multi_select_partial_is_incorrect(db, start_session):
    session_id = await start_session(questions=6, multiple_every=1)
    progress = ProgressService(db)
    first = await progress.question_id_at(session_id, 0)
    second = await progress.question_id_at(session_id, 1)
    is_multiple, correct, _ = await option_split(db, first)
    _, correct_second, _ = await option_split(db, second)
    assert is_multiple and len(correct) == 2

    partial = await progress.record_answer(session_id, first, [correct[0]])
    exact = await progress.record_answer(session_id, second, list(reversed(correct_second)))

    assert not partial.is_correct
    assert exact.is_correct

    result = await db.execute(
        select(func.count(UserAnswer.id)).filter(
            UserAnswer.session_id == session_id, UserAnswer.question_id == second
        )
    )
    assert result.scalar() == 2
    assert sorted(await progress.selected_option_ids(session_id, second)) == correct_second


async def test_current_index_advances_once_per_question(db, start_session):
    session_id = await start_session(questions=5)
    progress = ProgressService(db)
    pool = QuestionPoolService(db)
    assert await progress.current_question_index(session_id) == 0

    for number in range(5):
        index = await progress.current_question_index(session_id)
        assert index == number
        question_id = await progress.question_id_at(session_id, index)
        result = await progress.record_answer(session_id, question_id, list(await pool.correct_option_ids(question_id)))
        assert result.is_last == (number == 4)
        assert await progress.current_question_index(session_id) == number + 1

    assert await progress.current_question_index(session_id) == await progress.total_questions(session_id)
    summary = await progress.session_progress(session_id)
    assert summary.is_complete
    assert summary.correct == 5
    assert summary.score_percent == 100.0


async def test_repeated_submission_appends_and_last_write_wins(db, start_session):
    session_id = await start_session()
    progress = ProgressService(db)
    question_id = await progress.question_id_at(session_id, 0)
    _, correct, wrong = await option_split(db, question_id)

    await progress.record_answer(session_id, question_id, [wrong[0]])
    await progress.record_answer(session_id, question_id, [correct[0]])

    assert await progress.current_question_index(session_id) == 1
    assert await progress.correct_answer_count(session_id) == 1
    assert await progress.incorrect_question_ids(session_id) == []
    assert await progress.selected_option_ids(session_id, question_id) == [wrong[0], correct[0]]

    result = await db.execute(
        select(UserAnswer.is_correct).filter(UserAnswer.session_id == session_id).order_by(UserAnswer.id)
    )
    assert result.scalars().all() == [False, True]


async def test_is_answered(db, start_session):
    session_id = await start_session()
    progress = ProgressService(db)
    question_id = await progress.question_id_at(session_id, 0)
    _, correct, _ = await option_split(db, question_id)

    assert not await progress.is_answered(session_id, question_id)
    await progress.record_answer(session_id, question_id, correct[:1])
    assert await progress.is_answered(session_id, question_id)


async def test_invalid_submissions(db, start_session, quiz_factory):
    session_id = await start_session()
    progress = ProgressService(db)
    question_id = await progress.question_id_at(session_id, 0)
    other_question = await progress.question_id_at(session_id, 1)
    _, other_correct, _ = await option_split(db, other_question)

    with pytest.raises(InvalidInputError):
        await progress.record_answer(session_id, question_id, [])
    with pytest.raises(InvalidInputError):
        await progress.record_answer(session_id, question_id, other_correct)

    stranger = await quiz_factory(5, name="elsewhere")
    stranger_question = (await QuestionPoolService(db).all_question_ids(stranger.id))[0]
    with pytest.raises(NotFoundError):
        await progress.record_answer(session_id, stranger_question, [1])

    assert await progress.current_question_index(session_id) == 0


async def test_single_select_rejects_several_options(db, start_session):
    session_id = await start_session()
    progress = ProgressService(db)
    question_id = await progress.question_id_at(session_id, 0)
    is_multiple, correct, wrong = await option_split(db, question_id)
    assert not is_multiple

    with pytest.raises(InvalidInputError):
        await progress.record_answer(session_id, question_id, [correct[0], wrong[0]])
    with pytest.raises(InvalidInputError):
        await progress.record_answer(session_id, question_id, [wrong[0], correct[0]])

    result = await db.execute(select(func.count(UserAnswer.id)).filter(UserAnswer.session_id == session_id))
    assert result.scalar() == 0
    assert not await progress.is_answered(session_id, question_id)

    # The same option twice is still one pick
    repeated = await progress.record_answer(session_id, question_id, [correct[0], correct[0]])
    assert repeated.is_correct


async def test_question_id_at_out_of_range(db, start_session):
    session_id = await start_session(questions=5)

    with pytest.raises(NotFoundError):
        await ProgressService(db).question_id_at(session_id, 5)


async def test_toggle_bookmark_flips_only_target(db, start_session):
    session_id = await start_session()
    progress = ProgressService(db)
    target = await progress.question_id_at(session_id, 2)
    neighbour = await progress.question_id_at(session_id, 3)

    assert not await progress.is_bookmarked(session_id, target)
    assert await progress.toggle_bookmark(session_id, target) is True
    assert await progress.is_bookmarked(session_id, target)
    assert not await progress.is_bookmarked(session_id, neighbour)
    assert await progress.bookmarked_question_ids(session_id) == [target]

    assert await progress.toggle_bookmark(session_id, target) is False
    assert await progress.bookmarked_question_ids(session_id) == []


async def test_answered_summaries(db, start_session):
    session_id = await start_session()
    progress = ProgressService(db)
    first = await progress.question_id_at(session_id, 0)
    third = await progress.question_id_at(session_id, 2)
    _, correct, _ = await option_split(db, first)
    _, _, wrong = await option_split(db, third)

    await progress.record_answer(session_id, third, [wrong[0]])
    await progress.record_answer(session_id, first, [correct[0]])
    await progress.toggle_bookmark(session_id, third)

    summaries = await progress.answered_summaries(session_id)

    assert [s.question_number for s in summaries] == [0, 2]
    assert [s.is_correct for s in summaries] == [True, False]
    assert [s.is_bookmarked for s in summaries] == [False, True]
    assert all(s.question_text.startswith("Question ") for s in summaries)


async def test_session_progress_partial(db, start_session):
    session_id = await start_session(questions=5)
    progress = ProgressService(db)
    question_id = await progress.question_id_at(session_id, 0)
    _, correct, _ = await option_split(db, question_id)
    await progress.record_answer(session_id, question_id, correct[:1])

    summary = await progress.session_progress(session_id)

    assert (summary.total, summary.answered, summary.correct) == (5, 1, 1)
    assert not summary.is_complete
    assert summary.score_percent == 20.0
