"""Excel export of the currently filtered articles.

One bold header row on a dark fill, one row per article, rows tinted by
score band and the URL column written as a clickable hyperlink. The
workbook is built completely in memory before anything is handed back,
so a failure never leaves a partial file behind.
"""

import logging
import os
import tempfile
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ..aggregation.labels import group_display_name, score_band
from ..errors import ExportError
from ..models import Article

logger = logging.getLogger(__name__)

SHEET_TITLE = "Leads"
HEADER_FILL = PatternFill(start_color="1F2937", end_color="1F2937", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
LINK_FONT = Font(color="0563C1", underline="single")


def _humanize(moment: Optional[datetime]) -> str:
    return moment.strftime("%d %b %Y") if moment else ""


def _joined(values: Iterable[str]) -> str:
    return ", ".join(v for v in values if v)


# (header, width, value getter taking the article and the group id -> name mapping)
COLUMNS: list[tuple[str, int, Callable[[Article, Optional[Mapping[str, str]]], Any]]] = [
    ("Score", 8, lambda a, groups: a.lead_score),
    ("Band", 18, lambda a, groups: score_band(a.lead_score).label),
    ("Title", 50, lambda a, groups: a.title),
    ("Company", 25, lambda a, groups: a.company),
    ("Buyer", 25, lambda a, groups: a.buyer),
    ("Sectors", 30, lambda a, groups: _joined(a.sector)),
    ("Signals", 30, lambda a, groups: _joined(a.trigger_signal)),
    ("Solution", 30, lambda a, groups: a.solution),
    ("Amount", 15, lambda a, groups: a.amount),
    ("Why This Matters", 50, lambda a, groups: a.why_this_matters or ""),
    ("Outreach Angle", 50, lambda a, groups: a.outreach_angle or ""),
    ("Additional Details", 50, lambda a, groups: a.additional_details or ""),
    ("Group", 25, lambda a, groups: group_display_name(a.group_name, groups)),
    ("Source", 20, lambda a, groups: a.source),
    ("URL", 40, lambda a, groups: a.url),
    ("Published", 14, lambda a, groups: _humanize(a.date)),
    ("Processed", 14, lambda a, groups: _humanize(a.processed_at)),
    ("Region", 15, lambda a, groups: a.location_region or ""),
    ("Country", 15, lambda a, groups: a.location_country or ""),
    ("Tags", 25, lambda a, groups: _joined(a.tag_names)),
    ("Note", 40, lambda a, groups: a.note.content if a.note else ""),
]

URL_COLUMN = [header for header, _, _ in COLUMNS].index("URL") + 1


def _cell_value(value: Any) -> Any:
    """Control characters are not allowed in worksheets and are dropped."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def build_workbook(
    articles: Iterable[Article],
    group_mapping: Optional[Mapping[str, str]] = None,
) -> Workbook:
    """Build the export workbook: header row plus one row per article.

    Every value is written as data; text starting with "=" stays text.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    for col, (header, width, _) in enumerate(COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = "A2"

    for row, article in enumerate(articles, start=2):
        band = score_band(article.lead_score)
        fill = PatternFill(start_color=band.fill, end_color=band.fill, fill_type="solid") if band.fill else None
        for col, (_, _, getter) in enumerate(COLUMNS, start=1):
            value = _cell_value(getter(article, group_mapping))
            cell = ws.cell(row=row, column=col, value=value)
            if isinstance(value, str) and value.startswith("="):
                cell.data_type = "s"
            if fill is not None:
                cell.fill = fill
        if article.url:
            link = ws.cell(row=row, column=URL_COLUMN)
            link.hyperlink = article.url
            link.font = LINK_FONT

    return wb


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"leads-export-{today.isoformat()}.xlsx"


def export_to_bytes(
    articles: Iterable[Article],
    group_mapping: Optional[Mapping[str, str]] = None,
) -> bytes:
    """Serialize the articles to an .xlsx payload.

    Raises:
        ExportError: if building or serializing the workbook fails.
    """
    articles = list(articles)
    try:
        buffer = BytesIO()
        build_workbook(articles, group_mapping).save(buffer)
    except Exception as exc:
        logger.error("Export of %d articles failed: %s", len(articles), exc)
        raise ExportError(f"Could not build spreadsheet: {exc}") from exc
    logger.info("Exported %d articles", len(articles))
    return buffer.getvalue()


def save_export(
    articles: Iterable[Article],
    directory: str,
    today: Optional[date] = None,
    group_mapping: Optional[Mapping[str, str]] = None,
) -> Path:
    """Write the export into ``directory``; the file appears only once complete."""
    payload = export_to_bytes(articles, group_mapping)
    target = Path(directory) / export_filename(today)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, suffix=".xlsx.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.replace(tmp_path, target)
    except OSError as exc:
        Path(tmp_path).unlink(missing_ok=True)
        raise ExportError(f"Could not write {target}: {exc}") from exc
    return target
