from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

PARTICIPANT_COLUMNS = ["Name", "Email", "Phone", "Sex", "Registered At"]


def participants_to_rows(event) -> List[Dict[str, Any]]:
    rows = []
    for reg in event.registrations:
        p = reg.participant
        rows.append({
            "Name": p.name,
            "Email": p.email,
            "Phone": p.phone,
            "Sex": p.sex,
            "Registered At": reg.created_at.strftime("%Y-%m-%d %H:%M") if reg.created_at else None,
        })
    return rows


def rows_to_xlsx_bytes(rows: List[Dict[str, Any]], headers: List[str], sheet_name: str = "Participants") -> bytes:
    wb = Workbook()
    ws = wb.active
    # Excel caps sheet titles at 31 chars
    ws.title = sheet_name[:31]

    ws.append(headers)

    header_font = Font(bold=True)
    for col_idx, _h in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for r in rows:
        ws.append([r.get(h) for h in headers])

    # autosize columns
    for col_idx, h in enumerate(headers, start=1):
        max_len = len(str(h))
        for row_idx in range(2, ws.max_row + 1):
            v = ws.cell(row=row_idx, column=col_idx).value
            if v is None:
                continue
            max_len = max(max_len, len(str(v)))
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 2, 60)

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def make_filename(prefix: str = "participants") -> str:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{ts}.xlsx"
