import io
from datetime import datetime

import pytest
from pptx import Presentation

import exports
from errors import ValidationError
from models import DomainResult, Organization, RiskLevel, TechnicalReviewer
from tests.conftest import make_submission

ORG = Organization(
    id="org-1",
    name="Transportes  Rápidos ",
    cnpj="12.345.678/0001-90",
    access_code="#EMP AAAAAA",
    created_at=0,
)
REVIEWER = TechnicalReviewer(name="Ana <Souza>", registration_number="CRP 06/12345", updated_at=0)
RESULTS = [
    DomainResult(domain="Carga", score=40, classification=RiskLevel.HIGH),
    DomainResult(domain="Apoio", score=80, classification=RiskLevel.LOW),
]


def test_export_filename():
    assert exports.export_filename("Relatorio_NR1", ORG.name, "pdf") == "Relatorio_NR1_Transportes_Rápidos.pdf"


def test_csv_layout():
    subs = [
        make_submission({"P1": 3, "P3": 0}, sector="Logística"),
        make_submission({"P2": 4}, sector="Administrativo"),
    ]
    text = exports.submissions_csv(subs, keys=["P1", "P2", "P3"])
    assert text.startswith("\ufeff")
    lines = text[1:].splitlines()
    assert lines == [
        "DATA;SETOR;P1;P2;P3",
        "15/03/2024;Logística;3;;0",
        "15/03/2024;Administrativo;;4;",
    ]


def test_csv_without_submissions_is_rejected():
    with pytest.raises(ValidationError):
        exports.submissions_csv([])


def test_csv_has_a_column_per_bank_question():
    text = exports.submissions_csv([make_submission({"P1": 1})])
    header = text[1:].splitlines()[0].split(";")
    assert header[:3] == ["DATA", "SETOR", "P1"]
    assert len(header) == 2 + len(exports.QUESTION_KEYS)


@pytest.mark.parametrize("reviewer,results", [(None, RESULTS), (REVIEWER, [])])
def test_reports_need_reviewer_and_results(reviewer, results):
    with pytest.raises(ValidationError):
        exports.write_pdf_bytes(io.BytesIO(), ORG, reviewer, results, include_charts=False)
    with pytest.raises(ValidationError):
        exports.write_pptx_bytes(io.BytesIO(), ORG, reviewer, results)


def test_pdf_without_charts():
    buf = io.BytesIO()
    exports.write_pdf_bytes(buf, ORG, REVIEWER, RESULTS, include_charts=False)
    assert buf.getvalue().startswith(b"%PDF")


def test_pdf_still_written_when_chart_capture_fails(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("no renderer")

    monkeypatch.setattr(exports, "_img_from_fig", broken)
    buf = io.BytesIO()
    exports.write_pdf_bytes(buf, ORG, REVIEWER, RESULTS)
    assert buf.getvalue().startswith(b"%PDF")


def test_pptx_slides():
    buf = io.BytesIO()
    exports.write_pptx_bytes(buf, ORG, REVIEWER, RESULTS, report_date=datetime(2024, 3, 15))
    assert buf.getvalue().startswith(b"PK")
    buf.seek(0)
    prs = Presentation(buf)
    assert len(prs.slides) == 3
    table = next(s for s in prs.slides[1].shapes if s.has_table).table
    assert table.cell(1, 0).text == "Carga"
    assert table.cell(1, 2).text == RiskLevel.HIGH.label
    body = prs.slides[2].placeholders[1].text_frame.text
    assert f"{RiskLevel.HIGH.label}: 1" in body
