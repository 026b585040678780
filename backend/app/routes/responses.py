"""JSON envelope shared by all API routes.

Success: ``{"success": true, "data": ..., "message"?: ..., "warnings"?: [...]}``.
Failure: ``{"success": false, "error": ..., "field"?: ...}``.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import status
from fastapi.responses import JSONResponse


def ok(
    data: Any = None,
    *,
    message: Optional[str] = None,
    warnings: Optional[List[str]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    if warnings:
        body["warnings"] = warnings
    return body


def error_response(
    error: str,
    *,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    field: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "error": error}
    if field:
        body["field"] = field
    return JSONResponse(status_code=status_code, content=body, headers=headers)
