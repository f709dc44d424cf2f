"""DOCX rendering of a stored case report."""

import logging
import re

from docx import Document
from docx.shared import Pt

from casecite.core.errors import NotFound
from casecite.core.models import Case, ReportKind

logger = logging.getLogger(__name__)

REPORT_TITLES = {
    "initial": "Initial expert opinion analysis",
    "comparison": "Expert opinion comparison",
}

_HEADING_RE = re.compile(r"^(#{1,4})\s+(.*)$")
_BULLET_RE = re.compile(r"^\s*[-*]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+(.*)$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")


def export_report_docx(case: Case, kind: ReportKind, output_path: str) -> None:
    """Write one stored report as DOCX, mapping markdown structure to Word styles."""
    text = case.report(kind)
    if not text:
        raise NotFound(f"Case {case.id} has no {kind} report")

    doc = Document()

    title_para = doc.add_paragraph()
    run = title_para.add_run(f"{REPORT_TITLES[kind]}: {case.name}")
    run.bold = True
    run.font.size = Pt(14)
    title_para.add_run(f"\nOwner: {case.owner}")

    for line in text.splitlines():
        _add_line(doc, line)

    doc.save(output_path)
    logger.info("%s report DOCX exported to %s", kind.capitalize(), output_path)


def _add_line(doc, line: str) -> None:
    if not line.strip():
        return

    heading = _HEADING_RE.match(line)
    if heading:
        level = len(heading.group(1))
        doc.add_heading(_BOLD_RE.sub(r"\1", heading.group(2)).strip(), level=level)
        return

    bullet = _BULLET_RE.match(line)
    numbered = _NUMBERED_RE.match(line)
    if bullet:
        para = doc.add_paragraph(style="List Bullet")
        content = bullet.group(1)
    elif numbered:
        para = doc.add_paragraph(style="List Number")
        content = numbered.group(1)
    else:
        para = doc.add_paragraph()
        content = line

    _add_runs(para, content)


def _add_runs(para, content: str) -> None:
    """Split on **bold** markers; odd segments are bold."""
    for i, segment in enumerate(_BOLD_RE.split(content)):
        if not segment:
            continue
        run = para.add_run(segment)
        run.bold = i % 2 == 1
