"""Export convenience function."""

import logging
from pathlib import Path

from casecite.core.database import CaseDatabase
from casecite.core.errors import NotFound
from casecite.exporters.report_docx import export_report_docx
from casecite.exporters.usage_table import export_usage_csv, export_usage_excel

logger = logging.getLogger(__name__)


def export_case(
    db: CaseDatabase,
    case_id: str,
    output_dir: str | None = None,
) -> dict:
    """Write every stored report plus the case usage log; return the paths."""
    case = db.get_case(case_id)
    if case is None:
        raise NotFound(f"Case {case_id} not found")

    if output_dir is None:
        output_dir = str(Path(db.db_path).parent / "exports" / case_id)

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    paths = {}

    for kind in ("initial", "comparison"):
        if case.report(kind):
            docx_path = str(out / f"{kind}_report.docx")
            export_report_docx(case, kind, docx_path)
            paths[f"{kind}_docx"] = docx_path

    usage_csv_path = str(out / "usage_log.csv")
    export_usage_csv(db, usage_csv_path, case_id=case_id)
    paths["usage_csv"] = usage_csv_path

    usage_xlsx_path = str(out / "usage_log.xlsx")
    export_usage_excel(db, usage_xlsx_path, case_id=case_id)
    paths["usage_xlsx"] = usage_xlsx_path

    logger.info("Case %s exports written to %s", case_id, output_dir)
    return paths
