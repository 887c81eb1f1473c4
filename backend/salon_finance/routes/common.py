# Overview: Request helpers shared by the finance blueprints.

"""
Request context and error translation.

There is no authentication layer: the caller names the company and the
acting staff member explicitly on every request, either as headers
(X-Company-Id, X-Actor-Id) or as company_id / actor_id in the query
string or JSON body.
"""

from flask import jsonify, request

from ..services.errors import FinanceError, ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def get_company_id() -> int:
    raw = (
        request.headers.get("X-Company-Id")
        or request.args.get("company_id")
        or json_body().get("company_id")
    )
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("company_id is required") from exc


def get_actor_id(required: bool = True) -> str | None:
    actor = request.headers.get("X-Actor-Id") or json_body().get("actor_id")
    if required and not actor:
        raise ValidationError("actor_id is required")
    return str(actor) if actor is not None else None


def error_response(exc: FinanceError):
    return jsonify(exc.to_dict()), exc.status_code
