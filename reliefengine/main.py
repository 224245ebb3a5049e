"""Cloud Function Entry Point.

This module provides the entry point for Google Cloud Functions.
It's a thin wrapper that loads configuration, decodes a JSON action and
hands it to the coordinator.

Request body:
    {"action": "assign", "request_id": "...", "volunteer_id": "..."}
    {"action": "transition", "request_id": "...", "status": "resolved"}
    {"action": "unassign", "request_id": "..."}
    {"action": "match", "donation_id": "...", "ask_ids": [...]}
    {"action": "occupancy", "shelter_id": "...", "delta": 3}
    {"action": "claim", "donation_id": "...", "requester_id": "..."}
    {"action": "approve_booking", "booking_id": "...", "volunteer_id": "...", "notes": "..."}
    {"action": "reject_booking", "booking_id": "...", "volunteer_id": "...", "notes": "..."}
    {"action": "complete_booking", "booking_id": "..."}
    {"action": "cancel_booking", "booking_id": "..."}
"""

import logging
import os
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

import functions_framework
from flask import Request

from reliefengine.coordinator import Coordinator, OperationResult
from reliefengine.core.errors import ErrorKind
from reliefengine.core.models import RequestStatus
from reliefengine.shell.config_loader import load_config, load_config_from_env


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


ERROR_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.TERMINAL_STATE_VIOLATION: 409,
}

_coordinator: Coordinator | None = None


def _get_config():
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("FIRESTORE_PROJECT"):
        # Simple env-based config
        return load_config_from_env()
    else:
        # Try default config path
        return load_config()


def _get_coordinator() -> Coordinator:
    """Create the coordinator once per function instance."""
    global _coordinator
    if _coordinator is None:
        _coordinator = Coordinator(_get_config())
    return _coordinator


def _to_jsonable(value: Any) -> Any:
    """Convert entities and decisions into JSON-serializable data."""
    if is_dataclass(value):
        return _to_jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def _parse_delta(value: Any) -> int:
    """Read an occupancy delta, refusing fractional values."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid delta: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        return int(value)
    raise ValueError(f"Delta must be a whole number, got {value!r}")


def dispatch(coordinator: Coordinator, payload: dict[str, Any]) -> OperationResult:
    """Route a decoded action to the coordinator.

    Raises:
        KeyError: If a required field is missing
        ValueError: If a field has an invalid value or the action is unknown
    """
    action = payload.get("action")

    if action == "assign":
        return coordinator.assign_volunteer(payload["request_id"], payload["volunteer_id"])
    if action == "transition":
        return coordinator.transition_request(
            payload["request_id"],
            RequestStatus(payload["status"]),
            payload.get("volunteer_id"),
        )
    if action == "unassign":
        return coordinator.unassign(payload["request_id"])
    if action == "match":
        return coordinator.match_donation(payload["donation_id"], payload.get("ask_ids"))
    if action == "occupancy":
        return coordinator.change_occupancy(payload["shelter_id"], _parse_delta(payload["delta"]))
    if action == "claim":
        return coordinator.claim_donation(payload["donation_id"], payload["requester_id"])
    if action == "approve_booking":
        return coordinator.approve_booking(
            payload["booking_id"], payload["volunteer_id"], payload.get("notes")
        )
    if action == "reject_booking":
        return coordinator.reject_booking(
            payload["booking_id"], payload["volunteer_id"], payload.get("notes")
        )
    if action == "complete_booking":
        return coordinator.complete_booking(payload["booking_id"])
    if action == "cancel_booking":
        return coordinator.cancel_booking(payload["booking_id"])

    raise ValueError(f"Unknown action: {action!r}")


def build_response(result: OperationResult) -> tuple[dict[str, Any], int]:
    """Turn an operation result into a response body and status code."""
    if result.success:
        return {
            "status": "success",
            "attempts": result.attempts,
            "entity": _to_jsonable(result.entity),
        }, 200

    return {
        "status": "error",
        "error": result.error.kind.value,
        "message": result.error.message,
        "attempts": result.attempts,
        "entity": _to_jsonable(result.entity),
    }, ERROR_STATUS_CODES.get(result.error.kind, 500)


@functions_framework.http
def relief_engine(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point.

    Args:
        request: Flask request object carrying a JSON action

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"status": "error", "message": "Expected a JSON object body"}, 400

    logger.info("Handling action %s", payload.get("action"))

    try:
        result = dispatch(_get_coordinator(), payload)
    except KeyError as e:
        return {"status": "error", "message": f"Missing field: {e.args[0]}"}, 400
    except ValueError as e:
        return {"status": "error", "message": str(e)}, 400
    except Exception as e:
        logger.exception("Unexpected error in relief engine")
        return {"status": "error", "message": str(e)}, 500

    return build_response(result)
