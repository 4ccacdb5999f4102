import base64
import binascii
import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from bindays.collectors.collector_factory import create_collector, get_collectors
from bindays.collectors.govuk import get_collector
from bindays.data_models import Address, InteractionResponse
from bindays.errors import (CollectorNotFoundError, ContractViolationError, InvalidPostcodeError, ParseError,
                            UnsupportedCollectorError)

# --- Basic Lambda Logging Setup ---
log_level_str = os.environ.get('LOG_LEVEL', 'INFO').upper()
log_level = getattr(logging, log_level_str, logging.INFO)
logger = logging.getLogger(__name__)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(level=log_level, stream=sys.stdout, format='%(levelname)s:%(name)s: %(message)s')
else:
    logger.setLevel(log_level)


class BadRequestError(ValueError):
    """Raised for a malformed request body or missing query parameter."""


class RouteNotFoundError(LookupError):
    pass


# --- Helper Functions ---
def create_error_response(status_code: int, message: str) -> Dict[str, Any]:
    logger.error(f"Returning error {status_code}: {message}")
    return {"statusCode": status_code, "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"error": message}), "isBase64Encoded": False}


def create_json_response(payload: Any) -> Dict[str, Any]:
    return {"statusCode": 200, "headers": {"Content-Type": "application/json"},
            "body": json.dumps(payload), "isBase64Encoded": False}


def parse_previous_response(event: Dict[str, Any]) -> Optional[InteractionResponse]:
    """The body is the driver's InteractionResponse as JSON, or empty on the first call."""
    body = event.get("body")
    if not body:
        return None
    try:
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body).decode("utf-8")
        data = json.loads(body)
        if not data:
            return None
        return InteractionResponse.from_dict(data)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError,
            AttributeError) as e:
        raise BadRequestError(f"Invalid request body: {e}") from e


def require_param(params: Dict[str, str], name: str) -> str:
    value = params.get(name)
    if not value:
        raise BadRequestError(f"Missing required query parameter: {name}")
    return value


def route(method: str, path: str, params: Dict[str, str], previous: Optional[InteractionResponse]) -> Any:
    """Dispatches a request to the collectors and returns the JSON-ready result."""
    parts = [part for part in path.split("/") if part]

    if method == "GET" and parts == ["collectors"]:
        return {"collectors": [collector.to_dict() for collector in get_collectors()]}

    if method == "POST" and parts == ["collector"]:
        return get_collector(require_param(params, "postcode"), previous).to_dict()

    if method == "POST" and len(parts) == 2 and parts[1] == "addresses":
        collector = create_collector(parts[0])
        return collector.get_addresses(require_param(params, "postcode"), previous).to_dict()

    if method == "POST" and len(parts) == 2 and parts[1] == "bin-days":
        collector = create_collector(parts[0])
        address = Address(postcode=require_param(params, "postcode"), uid=require_param(params, "uid"))
        return collector.get_bin_days(address, previous).to_dict()

    raise RouteNotFoundError(f"No route for {method} /{'/'.join(parts)}")


# --- Lambda Handler ---
def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    handler_logger = logging.getLogger(f"{__name__}.lambda_handler")
    event = event or {}
    method = (event.get("httpMethod") or "GET").upper()
    path = event.get("path") or "/"
    params = event.get("queryStringParameters") or {}
    handler_logger.info(f"Received {method} {path} {params}")

    try:
        previous = parse_previous_response(event)
        result = route(method, path, params, previous)
    except (RouteNotFoundError, CollectorNotFoundError, UnsupportedCollectorError) as e:
        return create_error_response(404, str(e))
    except (BadRequestError, InvalidPostcodeError, ContractViolationError) as e:
        return create_error_response(400, str(e))
    except ParseError as e:
        return create_error_response(502, str(e))
    except Exception:
        handler_logger.exception(f"Error handling {method} {path}")
        return create_error_response(500, "Internal server error.")

    return create_json_response(result)
