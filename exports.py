# exports.py
"""CSV, PDF and PPTX exports of an organization's submissions and results."""
import io
import re
from datetime import datetime
from xml.sax.saxutils import escape

import pandas as pd
import plotly.io as pio
from pptx import Presentation
from pptx.util import Inches
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Image as RLImage
from reportlab.platypus import (Paragraph, SimpleDocTemplate, Spacer, Table,
                                TableStyle)

from charts import (distribution_pie_figure, domain_bar_figure,
                    sector_heatmap_figure)
from config import CSV_DELIMITER, DATE_FORMAT, QUESTION_KEYS
from errors import ValidationError
from logger import get_logger
from scoring import classification_distribution

log = get_logger("exports")

REPORT_TITLE = "RELATÓRIO DE ANÁLISE DE RISCOS PSICOSSOCIAIS (NR-1)"


def export_filename(prefix, org_name, ext):
    name = re.sub(r"\s+", "_", org_name.strip())
    return f"{prefix}_{name}.{ext}"


def _format_date(ms):
    return datetime.fromtimestamp(ms / 1000).strftime(DATE_FORMAT)


def _field(sub, name):
    return sub[name] if isinstance(sub, dict) else getattr(sub, name)


def submissions_frame(submissions, keys=QUESTION_KEYS):
    """
    One row per submission: DATA, SETOR and the raw answer of every question.
    Unanswered questions are left blank.
    """
    rows = []
    for sub in submissions:
        answers = _field(sub, "answers") or {}
        row = {
            "DATA": _format_date(_field(sub, "submitted_at")),
            "SETOR": _field(sub, "sector"),
        }
        for key in keys:
            v = answers.get(key)
            row[key] = "" if v is None else str(v)
        rows.append(row)
    return pd.DataFrame(rows, columns=["DATA", "SETOR"] + list(keys))


def submissions_csv(submissions, keys=QUESTION_KEYS):
    """
    Semicolon-delimited CSV with a UTF-8 BOM so spreadsheet tools in pt-BR
    locales split the columns and keep accents.
    """
    submissions = list(submissions)
    if not submissions:
        raise ValidationError("Nenhuma avaliação encontrada para exportar.")
    df = submissions_frame(submissions, keys)
    return "\ufeff" + df.to_csv(sep=CSV_DELIMITER, index=False, lineterminator="\n")


def check_report_inputs(reviewer, results):
    if reviewer is None or not results:
        raise ValidationError("Dados insuficientes para gerar o relatório.")


def _img_from_fig(fig, width=720, height=420, scale=2):
    """Render a figure to PNG through kaleido, returned as a BytesIO ready for reportlab."""
    png_bytes = pio.to_image(fig, format="png", width=width, height=height, scale=scale)
    return io.BytesIO(png_bytes)


def _report_figures(results, matrix, theme):
    figs = [
        ("Figura 1: Domínios de Risco", domain_bar_figure(results, theme)),
        (
            "Figura 2: Distribuição de Riscos",
            distribution_pie_figure(classification_distribution(results), theme),
        ),
    ]
    if matrix is not None and not matrix.empty:
        figs.append(("Figura 3: Score por Setor e Domínio", sector_heatmap_figure(matrix, theme)))
    return figs


def _chart_images(results, matrix, theme, width, height):
    """Render the report charts; a chart that fails to render is left out."""
    images = []
    for caption, fig in _report_figures(results, matrix, theme):
        try:
            images.append((caption, _img_from_fig(fig, width=width, height=height)))
        except Exception as exc:
            log.warning("Chart capture failed for %r, omitting it: %s", caption, exc)
    return images


def _results_rows(results):
    return [["Domínio", "Score", "Classificação"]] + [
        [r.domain, str(r.score), r.classification.label] for r in results
    ]


def write_pdf_bytes(
    buf,
    organization,
    reviewer,
    results,
    matrix=None,
    theme="light",
    include_charts=True,
    report_date=None,
):
    """
    Write the technical report as a PDF.

    Layout: title, organization and CNPJ, report date, technical reviewer,
    chart images (when they can be rendered) and the per-domain results table.
    """
    check_report_inputs(reviewer, results)
    report_date = report_date or datetime.now()

    doc = SimpleDocTemplate(
        buf, pagesize=A4, leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36
    )
    styles = getSampleStyleSheet()
    title_style = styles["Title"]
    title_style.alignment = TA_CENTER
    story = [Paragraph(f"<b>{REPORT_TITLE}</b>", title_style), Spacer(1, 14)]

    story += [
        Paragraph(f"<b>Empresa:</b> {escape(organization.name)}", styles["Normal"]),
        Paragraph(f"CNPJ: {escape(organization.cnpj)}", styles["Normal"]),
        Paragraph(
            f"Data do Relatório: {report_date.strftime(DATE_FORMAT)}", styles["Normal"]
        ),
        Spacer(1, 12),
        Paragraph("<b>RESPONSÁVEL TÉCNICO</b>", styles["Heading3"]),
        Paragraph(f"Nome: {escape(reviewer.name)}", styles["Normal"]),
        Paragraph(f"Registro Profissional: {escape(reviewer.registration_number)}", styles["Normal"]),
        Spacer(1, 14),
    ]

    if include_charts:
        images = _chart_images(results, matrix, theme, width=500, height=300)
        if images:
            story += [Paragraph("<b>GRÁFICOS DE ANÁLISE</b>", styles["Heading3"]), Spacer(1, 6)]
        for caption, img_buf in images:
            story += [
                RLImage(img_buf, width=450, height=270),
                Paragraph(caption, styles["Italic"]),
                Spacer(1, 12),
            ]

    avail = A4[0] - 72
    tbl = Table(
        _results_rows(results),
        colWidths=[avail - 200, 80, 120],
        hAlign="LEFT",
    )
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e9ebf3")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor("#0b1020")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 1), (1, -1), "RIGHT"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("TOPPADDING", (0, 0), (-1, 0), 6),
    ]
    for i, r in enumerate(results, start=1):
        style.append(("TEXTCOLOR", (2, i), (2, i), colors.HexColor(r.classification.color)))
    tbl.setStyle(TableStyle(style))
    story += [
        Paragraph("<b>TABELA DE RESULTADOS POR DOMÍNIO</b>", styles["Heading3"]),
        Spacer(1, 6),
        tbl,
    ]
    doc.build(story)


def write_pptx_bytes(buf, organization, reviewer, results, report_date=None):
    """
    Write a short slide deck:

    1. Title slide with organization, CNPJ and technical reviewer.
    2. Per-domain results table.
    3. Number of domains per risk tier.
    """
    check_report_inputs(reviewer, results)
    report_date = report_date or datetime.now()

    prs = Presentation()
    slide = prs.slides.add_slide(prs.slide_layouts[0])
    slide.shapes.title.text = "Análise de Riscos Psicossociais (NR-1)"
    slide.placeholders[1].text = (
        f"Empresa: {organization.name}\n"
        f"CNPJ: {organization.cnpj}\n"
        f"Responsável Técnico: {reviewer.name} ({reviewer.registration_number})\n"
        f"Data: {report_date.strftime(DATE_FORMAT)}"
    )

    slide = prs.slides.add_slide(prs.slide_layouts[5])
    slide.shapes.title.text = "Resultados por Domínio"
    rows = _results_rows(results)
    table = slide.shapes.add_table(
        len(rows), 3, Inches(0.6), Inches(1.5), Inches(8.8), Inches(0.4 * len(rows))
    ).table
    for i, row in enumerate(rows):
        for j, text in enumerate(row):
            table.cell(i, j).text = text

    slide = prs.slides.add_slide(prs.slide_layouts[1])
    slide.shapes.title.text = "Distribuição de Riscos"
    tf = slide.placeholders[1].text_frame
    tf.clear()
    dist = classification_distribution(results)
    first = True
    for level, n in dist.items():
        p = tf.paragraphs[0] if first else tf.add_paragraph()
        p.text = f"{level.label}: {n} domínio(s)"
        first = False
    prs.save(buf)
