"""CSV template downloads: the header row each upload endpoint expects."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from app.core.response import DataResponse, csv_download
from app.schemas.upload import TemplateOut, UploadKind
from app.services.templates import build_template, render_template_csv

router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("/{kind}", response_model=DataResponse[TemplateOut])
async def get_template(
    kind: UploadKind,
    line_of_business: Optional[str] = Query(
        default=None, alias="lineOfBusiness", description="Policy templates only; defaults to Health"
    ),
    output: str = Query(default="json", alias="format", pattern="^(json|csv)$"),
):
    """Columns and a sample row for *kind*. ``?format=csv`` downloads the file."""
    template = build_template(kind, line_of_business)
    if output == "csv":
        suffix = f"-{template.line_of_business.lower()}" if template.line_of_business else ""
        return csv_download(render_template_csv(template), f"{kind.value}{suffix}-template.csv")
    return {"data": template}
