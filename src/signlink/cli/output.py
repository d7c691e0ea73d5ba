"""JSON response envelopes for CLI output.

Every command prints exactly one envelope:

    {"success": bool, "data": {...}, "error": str | null, "meta": {"version": "response-v2"}}
"""

import json
import sys
from typing import Any, Dict, NoReturn, Optional

import click

RESPONSE_VERSION = "response-v2"


def _envelope(
    success: bool,
    data: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "success": success,
        "data": data or {},
        "error": error,
        "meta": {"version": RESPONSE_VERSION},
    }


def emit_success(data: Dict[str, Any], exit_code: int = 0) -> None:
    """Print a success envelope. A non-zero ``exit_code`` ends the command."""
    click.echo(json.dumps(_envelope(True, data), indent=2))
    if exit_code:
        sys.exit(exit_code)


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str,
    remediation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 2."""
    data: Dict[str, Any] = {"error_code": code, "error_type": error_type}
    if remediation:
        data["remediation"] = remediation
    if details:
        data["details"] = details
    click.echo(json.dumps(_envelope(False, data, message), indent=2))
    sys.exit(2)
