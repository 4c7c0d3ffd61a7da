"""
Shared JSON plumbing for the blueprints.

Routes return `json_ok(...)`; failures are raised as `treeofhope.errors`
and rendered by the app-level handler.
"""

from __future__ import annotations

from typing import Any, Dict, cast

from flask import jsonify, request


def request_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict) and data:
        return cast(Dict[str, Any], data)
    if request.form:
        return cast(Dict[str, Any], request.form.to_dict(flat=True))
    return {}


def json_response(payload: Dict[str, Any], status: int = 200):
    resp = jsonify(payload)
    resp.status_code = int(status)
    resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
    return resp


def json_ok(payload: Dict[str, Any], status: int = 200):
    payload.setdefault("ok", True)
    return json_response(payload, status)
