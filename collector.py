# collector.py
"""
Survey walk for a single respondent.

The collector moves through three states:

    identification -> answering(i) -> complete

Answers are kept locally, keyed ``P1..Pn``, and only written to the store as
one submission once every question has been answered.
"""
import time

from config import QUESTIONS, VALID_ANSWERS, question_key
from errors import AlreadyRespondedError, ValidationError
from logger import get_logger
from models import AssessmentSubmission
from store import SUBMISSIONS

log = get_logger("collector")

IDENTIFICATION = "identification"
ANSWERING = "answering"
COMPLETE = "complete"
STATES = (IDENTIFICATION, ANSWERING, COMPLETE)


def _now_ms():
    return int(time.time() * 1000)


class ResponseCollector:
    def __init__(self, questions=QUESTIONS):
        self.questions = questions
        self.state = IDENTIFICATION
        self.index = 0
        self.sector = ""
        self.function = ""
        self.answers = {}

    # --- transitions -------------------------------------------------------
    def start(self, sector, function, sectors=None, functions=None):
        """
        Leave identification once both sector and function are chosen.

        When the organization's registered lists are given, the choices must
        belong to them.
        """
        if self.state != IDENTIFICATION:
            raise ValidationError("A identificação já foi concluída.")
        sector = (sector or "").strip()
        function = (function or "").strip()
        if not sector or not function:
            raise ValidationError("Selecione seu setor e função.")
        if sectors is not None and sector not in sectors:
            raise ValidationError("Setor não cadastrado para esta empresa.")
        if functions is not None and function not in functions:
            raise ValidationError("Função não cadastrada para esta empresa.")
        self.sector, self.function = sector, function
        self.state = ANSWERING
        self.index = 0

    def answer(self, value):
        if self.state != ANSWERING:
            raise ValidationError("Nenhuma pergunta em andamento.")
        if value not in VALID_ANSWERS:
            raise ValidationError(f"Resposta inválida: {value!r}")
        self.answers[question_key(self.index)] = int(value)
        if self.index < len(self.questions) - 1:
            self.index += 1
        else:
            self.state = COMPLETE

    def back(self):
        """Step back one question, or to identification from the first one."""
        if self.state != ANSWERING:
            raise ValidationError("Nenhuma pergunta em andamento.")
        if self.index > 0:
            self.index -= 1
        else:
            self.state = IDENTIFICATION

    def reopen(self):
        """Return from complete to the last question, keeping every answer."""
        if self.state != COMPLETE:
            raise ValidationError("A avaliação ainda não foi concluída.")
        self.state = ANSWERING
        self.index = len(self.questions) - 1

    def reset(self):
        self.state = IDENTIFICATION
        self.index = 0
        self.sector = ""
        self.function = ""
        self.answers = {}

    # --- queries -----------------------------------------------------------
    def keys(self):
        return [question_key(i) for i in range(len(self.questions))]

    @property
    def is_complete(self):
        return self.state == COMPLETE

    @property
    def current_question(self):
        if self.state != ANSWERING:
            return None
        return self.questions[self.index]

    def current_answer(self):
        return self.answers.get(question_key(self.index))

    def progress(self):
        """Fraction of the bank reached, counting the question on screen."""
        if self.state == COMPLETE:
            return 1.0
        if self.state == IDENTIFICATION:
            return 0.0
        return (self.index + 1) / len(self.questions)

    def build_submission(self, organization_id, now=None):
        if self.state != COMPLETE:
            raise ValidationError("A avaliação ainda não foi concluída.")
        if set(self.answers) != set(self.keys()):
            raise ValidationError("Responda todas as perguntas antes de enviar.")
        return AssessmentSubmission(
            organization_id=organization_id,
            sector=self.sector,
            function=self.function,
            submitted_at=now if now is not None else _now_ms(),
            answers=dict(self.answers),
        )

    # --- dcc.Store round trip ---------------------------------------------
    def to_dict(self):
        return {
            "state": self.state,
            "index": self.index,
            "sector": self.sector,
            "function": self.function,
            "answers": dict(self.answers),
        }

    @classmethod
    def from_dict(cls, data, questions=QUESTIONS):
        """
        Rebuild a collector from browser-side state.

        An unknown state, a non-integer index or an answer outside the bank
        or the scale is a validation error. The index is clamped to the bank.
        """
        c = cls(questions)
        data = data or {}
        state = data.get("state", IDENTIFICATION)
        if state not in STATES:
            raise ValidationError("Estado da avaliação inválido.")
        try:
            index = int(data.get("index", 0))
        except (TypeError, ValueError):
            raise ValidationError("Estado da avaliação inválido.")
        answers = data.get("answers") or {}
        if not isinstance(answers, dict):
            raise ValidationError("Estado da avaliação inválido.")
        keys = set(c.keys())
        for key, value in answers.items():
            if key not in keys or not isinstance(value, int) or value not in VALID_ANSWERS:
                raise ValidationError("Estado da avaliação inválido.")
        c.state = state
        c.index = min(max(index, 0), len(questions) - 1)
        c.sector = data.get("sector") or ""
        c.function = data.get("function") or ""
        c.answers = {k: int(v) for k, v in answers.items()}
        return c


class RespondentSession:
    """
    Per-browser markers: which access codes were already answered here, and
    which code (if any) the device is running in kiosk mode for.
    """

    def __init__(self, responded=None, kiosk_code=None):
        self.responded = set(responded or [])
        self.kiosk_code = kiosk_code or None

    def has_responded(self, code):
        return code in self.responded

    def mark_responded(self, code):
        self.responded.add(code)

    def enable_kiosk(self, code):
        self.kiosk_code = code

    def disable_kiosk(self):
        self.kiosk_code = None

    def is_kiosk(self, code):
        return self.kiosk_code is not None and self.kiosk_code == code

    def can_start(self, code):
        return self.is_kiosk(code) or not self.has_responded(code)

    def to_dict(self):
        return {"responded": sorted(self.responded), "kiosk_code": self.kiosk_code}

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(data.get("responded"), data.get("kiosk_code"))


def submit(store, collector, organization, session, now=None):
    """
    Write the completed survey as one submission and mark the session.

    A store failure propagates and leaves the session unmarked.
    """
    if not session.can_start(organization.access_code):
        raise AlreadyRespondedError()
    submission = collector.build_submission(organization.id, now=now)
    doc_id = store.create(SUBMISSIONS, submission.model_dump(exclude={"id"}))
    session.mark_responded(organization.access_code)
    log.info("Submission %s stored for organization %s", doc_id, organization.id)
    return submission.model_copy(update={"id": doc_id})
