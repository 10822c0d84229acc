import pytest

from collector import (ANSWERING, COMPLETE, IDENTIFICATION,
                       RespondentSession, ResponseCollector, submit)
from config import QUESTIONS
from errors import AlreadyRespondedError, StoreError, ValidationError
from store import SUBMISSIONS
from tests.conftest import SMALL_BANK, FailingStore


def _started(bank=SMALL_BANK):
    c = ResponseCollector(bank)
    c.start("Logística", "Motorista")
    return c


def test_starts_in_identification():
    c = ResponseCollector()
    assert c.state == IDENTIFICATION
    assert c.current_question is None
    assert c.progress() == 0.0


@pytest.mark.parametrize("sector,function", [("", "Motorista"), ("Logística", ""), (None, None), ("  ", "x")])
def test_identification_requires_sector_and_function(sector, function):
    c = ResponseCollector(SMALL_BANK)
    with pytest.raises(ValidationError):
        c.start(sector, function)
    assert c.state == IDENTIFICATION


def test_identification_checks_registered_lists():
    c = ResponseCollector(SMALL_BANK)
    with pytest.raises(ValidationError):
        c.start("Vendas", "Motorista", sectors=["Logística"], functions=["Motorista"])
    c.start("Logística", "Motorista", sectors=["Logística"], functions=["Motorista"])
    assert c.state == ANSWERING
    assert c.index == 0


def test_answering_every_question_in_order_fills_all_keys():
    c = ResponseCollector()
    c.start("Logística", "Motorista")
    for i in range(len(QUESTIONS)):
        assert c.current_question is QUESTIONS[i]
        c.answer(i % 5)
    assert c.state == COMPLETE
    assert c.is_complete
    assert sorted(c.answers, key=lambda k: int(k[1:])) == [f"P{i + 1}" for i in range(len(QUESTIONS))]
    assert c.progress() == 1.0


def test_back_keeps_answer_and_reanswer_overwrites_only_that_key():
    c = _started()
    c.answer(1)
    c.answer(2)
    assert c.index == 2
    c.back()
    assert c.index == 1
    assert c.current_answer() == 2
    c.answer(4)
    assert c.answers == {"P1": 1, "P2": 4}
    assert c.index == 2


def test_back_from_first_question_returns_to_identification():
    c = _started()
    c.back()
    assert c.state == IDENTIFICATION
    with pytest.raises(ValidationError):
        c.back()


@pytest.mark.parametrize("value", [-1, 5, None, "3"])
def test_invalid_answer_is_rejected(value):
    c = _started()
    with pytest.raises(ValidationError):
        c.answer(value)
    assert c.answers == {}
    assert c.index == 0


def test_answer_outside_answering_state_is_rejected():
    with pytest.raises(ValidationError):
        ResponseCollector(SMALL_BANK).answer(2)


def test_submission_only_once_complete():
    c = _started()
    with pytest.raises(ValidationError):
        c.build_submission("org-1")
    for v in (0, 1, 2):
        c.answer(v)
    sub = c.build_submission("org-1", now=123)
    assert sub.answers == {"P1": 0, "P2": 1, "P3": 2}
    assert (sub.sector, sub.function, sub.submitted_at) == ("Logística", "Motorista", 123)


def test_reopen_returns_to_last_question():
    c = _started()
    for v in (0, 1, 2):
        c.answer(v)
    c.reopen()
    assert c.state == ANSWERING
    assert c.index == 2
    assert c.current_answer() == 2


def test_dict_round_trip_and_reset():
    c = _started()
    c.answer(3)
    restored = ResponseCollector.from_dict(c.to_dict(), SMALL_BANK)
    assert restored.to_dict() == c.to_dict()
    restored.reset()
    assert restored.to_dict() == ResponseCollector(SMALL_BANK).to_dict()


def test_respondent_session_gate_and_kiosk():
    s = RespondentSession()
    assert s.can_start("#EMP AAAAAA")
    s.mark_responded("#EMP AAAAAA")
    assert not s.can_start("#EMP AAAAAA")
    assert s.can_start("#EMP BBBBBB")
    s.enable_kiosk("#EMP AAAAAA")
    assert s.can_start("#EMP AAAAAA")
    s.disable_kiosk()
    assert not s.can_start("#EMP AAAAAA")
    assert RespondentSession.from_dict(s.to_dict()).responded == {"#EMP AAAAAA"}


def _complete(org):
    c = ResponseCollector(SMALL_BANK)
    c.start(org.sectors[0], org.functions[0])
    for v in (4, 4, 2):
        c.answer(v)
    return c


def test_submit_writes_one_submission_and_marks_session(store, org):
    session = RespondentSession()
    saved = submit(store, _complete(org), org, session)
    docs = store.query(SUBMISSIONS, {"organization_id": org.id})
    assert len(docs) == 1
    assert docs[0]["id"] == saved.id
    assert docs[0]["answers"] == {"P1": 4, "P2": 4, "P3": 2}
    assert session.has_responded(org.access_code)


def test_submit_failure_leaves_session_unmarked(org):
    session = RespondentSession()
    with pytest.raises(StoreError):
        submit(FailingStore(), _complete(org), org, session)
    assert not session.has_responded(org.access_code)


def test_second_submit_without_kiosk_is_rejected(store, org):
    session = RespondentSession()
    submit(store, _complete(org), org, session)
    with pytest.raises(AlreadyRespondedError):
        submit(store, _complete(org), org, session)
    session.enable_kiosk(org.access_code)
    submit(store, _complete(org), org, session)
    assert len(store.query(SUBMISSIONS)) == 2


def test_partial_answers_never_become_a_submission(store, org):
    c = ResponseCollector.from_dict(
        {"state": COMPLETE, "index": 2, "sector": "Logística", "function": "Motorista", "answers": {"P1": 2}},
        SMALL_BANK,
    )
    with pytest.raises(ValidationError):
        c.build_submission("org-1")
    session = RespondentSession()
    with pytest.raises(ValidationError):
        submit(store, c, org, session)
    assert store.query(SUBMISSIONS) == []
    assert not session.has_responded(org.access_code)


@pytest.mark.parametrize(
    "data",
    [
        {"state": "done"},
        {"state": ANSWERING, "index": "first"},
        {"state": ANSWERING, "answers": {"P4": 1}},
        {"state": ANSWERING, "answers": {"P1": 7}},
        {"state": ANSWERING, "answers": {"P1": "2"}},
        {"state": ANSWERING, "answers": [2, 2]},
    ],
)
def test_restored_state_is_checked(data):
    with pytest.raises(ValidationError):
        ResponseCollector.from_dict(data, SMALL_BANK)


@pytest.mark.parametrize("index,expected", [(99, 2), (-4, 0)])
def test_restored_index_is_clamped_to_the_bank(index, expected):
    c = ResponseCollector.from_dict({"state": ANSWERING, "index": index}, SMALL_BANK)
    assert c.index == expected
    assert c.current_question is SMALL_BANK[expected]
