"""Review document rendering.

The unsigned review sheet is an A4 PDF drawn with reportlab. The reviewer (or
a team member signing off a stage) downloads it, signs it outside the system
and uploads the signed copy.
"""

import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from thesisflow.schemas.assessment import CRITERIA_KEYS, Rubric
from thesisflow.utils.storage import FileStore

logger = logging.getLogger(__name__)

FALLBACK_FONT = "Helvetica"
CUSTOM_FONT = "ThesisflowReview"
MARGIN = 20 * mm
LINE = 6 * mm


class DocumentRenderer(Protocol):
    def render(self, rubric: Optional[Rubric], metadata: Dict[str, Any]) -> str: ...


def _register_font(font_path: Optional[Path]) -> str:
    """Use a configured TTF (e.g. one with Cyrillic glyphs), else Helvetica."""
    if font_path is None:
        return FALLBACK_FONT
    try:
        pdfmetrics.registerFont(TTFont(CUSTOM_FONT, str(font_path)))
    except (OSError, TTFError) as exc:
        logger.warning("Review font %s unusable, using %s: %s", font_path, FALLBACK_FONT, exc)
        return FALLBACK_FONT
    return CUSTOM_FONT


def _yes_no(value) -> str:
    if value is None:
        return "-"
    return "yes" if value else "no"


def _label(key: str) -> str:
    return key.replace("_", " ").capitalize()


class _Sheet:
    """Top-down cursor over a canvas; breaks pages before the footer area."""

    def __init__(self, c: canvas.Canvas, font: str):
        self.c = c
        self.font = font
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def _ensure(self, needed: float) -> None:
        if self.y - needed < MARGIN + 15 * mm:
            self.finish_page()
            self.y = self.height - MARGIN

    def finish_page(self) -> None:
        c = self.c
        c.setStrokeColor(colors.grey)
        c.setLineWidth(0.6)
        c.line(MARGIN, 18 * mm, self.width - MARGIN, 18 * mm)
        c.setFont(self.font, 8)
        c.setFillColor(colors.grey)
        c.drawRightString(self.width - MARGIN, 13 * mm, f"Page {c.getPageNumber()}")
        c.setFillColor(colors.black)
        c.showPage()

    def heading(self, text: str, size: float = 12) -> None:
        self._ensure(2 * LINE)
        self.y -= 2 * mm
        self.c.setFont(self.font, size)
        self.c.drawString(MARGIN, self.y, text)
        self.y -= 2 * mm
        self.c.setStrokeColor(colors.grey)
        self.c.setLineWidth(0.6)
        self.c.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= LINE

    def text(self, value: Any, size: float = 10.5, indent: float = 0) -> None:
        max_width = self.width - 2 * MARGIN - indent
        for line in simpleSplit(str(value), self.font, size, max_width) or ["-"]:
            self._ensure(LINE)
            self.c.setFont(self.font, size)
            self.c.drawString(MARGIN + indent, self.y, line)
            self.y -= LINE

    def key_value(self, key: str, value: Any) -> None:
        self.text(f"{key}: {value if value not in (None, '') else '-'}")

    def signature_box(self, label: str, name: str) -> None:
        box_h = 25 * mm
        self._ensure(box_h + LINE)
        self.y -= 4 * mm
        c = self.c
        c.setStrokeColor(colors.black)
        c.setLineWidth(0.8)
        c.rect(MARGIN, self.y - box_h, 90 * mm, box_h, stroke=1, fill=0)
        c.setFont(self.font, 9)
        c.setFillColor(colors.gray)
        c.drawString(MARGIN + 4 * mm, self.y - 8 * mm, f"Name: {name}")
        c.drawString(MARGIN + 4 * mm, self.y - 14 * mm, "Signature:")
        c.drawString(MARGIN + 4 * mm, self.y - 20 * mm, "Date:")
        c.setFillColor(colors.black)
        c.setFont(self.font, 10)
        c.drawString(MARGIN, self.y - box_h - 5 * mm, label)
        self.y -= box_h + LINE + 5 * mm


def _draw_rubric(sheet: _Sheet, rubric: Rubric) -> None:
    sheet.heading("Section I. Assessment criteria")
    for key in CRITERIA_KEYS:
        level = rubric.section_one.get(key)
        sheet.key_value(_label(key), level.value.replace("_", " ") if level else None)

    two = rubric.section_two
    sheet.heading("Section II. Commentary")
    sheet.text("Questions:")
    for number, question in enumerate(two.questions, start=1):
        sheet.text(f"{number}. {question}", indent=5 * mm)
    sheet.key_value("Advantages", two.advantages)
    sheet.key_value("Disadvantages", two.disadvantages)
    if two.critique:
        sheet.text("Critique:")
        for remark in two.critique:
            sheet.text(f"- {remark}", indent=5 * mm)
    sheet.key_value("Conclusion", two.conclusion.final_assessment)
    sheet.key_value("Work complete", _yes_no(two.conclusion.is_complete))
    sheet.key_value("Degree worthy", _yes_no(two.conclusion.degree_worthy))


class PdfReviewRenderer:
    """Renders review sheets and keeps them in the file store.

    ``metadata`` carries ``thesis_id``, ``iteration``, ``title``,
    ``student_name`` and ``reviewer_name``; optionally ``role_label``
    (defaults to "Reviewer"), ``grade``, ``comments``, ``notes`` and
    ``category`` (file store folder, defaults to "reviews").
    """

    def __init__(self, store: FileStore, font_path: Optional[Path] = None, compress: bool = True):
        self.store = store
        self.font = _register_font(font_path)
        self.compress = compress

    def build(self, rubric: Optional[Rubric], metadata: Dict[str, Any]) -> bytes:
        role = metadata.get("role_label", "Reviewer")
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4, pageCompression=1 if self.compress else 0)
        c.setTitle(f"{role} review - {metadata.get('title', '')}")
        c.setAuthor(metadata.get("reviewer_name", ""))
        c.setSubject(f"Thesis #{metadata['thesis_id']}, iteration {metadata['iteration']}")
        c.setCreator("thesisflow")

        sheet = _Sheet(c, self.font)
        sheet.heading(f"{role.upper()} REVIEW", size=16)
        sheet.key_value("Thesis", f"#{metadata['thesis_id']} {metadata.get('title', '')}")
        sheet.key_value("Iteration", metadata["iteration"])
        sheet.key_value("Student", metadata.get("student_name"))
        sheet.key_value(role, metadata.get("reviewer_name"))
        for note in metadata.get("notes") or []:
            sheet.text(note)

        if rubric is not None:
            _draw_rubric(sheet, rubric)
        if metadata.get("comments"):
            sheet.heading("Comments")
            sheet.text(metadata["comments"])
        if metadata.get("grade"):
            sheet.heading(f"Final grade: {metadata['grade']}")

        sheet.signature_box(role, metadata.get("reviewer_name", ""))
        sheet.finish_page()
        c.save()
        return buffer.getvalue()

    def render(self, rubric: Optional[Rubric], metadata: Dict[str, Any]) -> str:
        data = self.build(rubric, metadata)
        file_ref = self.store.store(data, category=metadata.get("category", "reviews"), suffix=".pdf")
        logger.info(
            "Rendered %s review for thesis %s iteration %s",
            metadata.get("role_label", "reviewer").lower(),
            metadata["thesis_id"],
            metadata["iteration"],
        )
        return file_ref
