import inspect
import logging
import os

from flask import Flask, request, jsonify
from pydantic import ValidationError

from rfpengine.utils.core.log import setup_logging, bind_tool_logger
from rfpengine.utils.core.errors import RequestError, _make_error_payload
from rfpengine.tools.rfp.rfp import (
    list_vendors_main,
    create_vendor_main,
    list_rfps_main,
    create_rfp_main,
    create_rfp_from_text_main,
    list_proposals_main,
    create_proposal_main,
    list_rfp_emails_main,
    compare_rfp_main,
)
from rfpengine.tools.inbox.email_intake import (
    email_webhook_main,
    proposal_from_text_main,
    list_emails_main,
)

app = Flask(__name__)
setup_logging()
logger = logging.getLogger("RfpEngine")

"""
API for the RFP Engine

pip install flask
"""


def handle(tool_func, *args, failure: str = "Request failed", status: int = 200, **kwargs):
    """
    Universal wrapper for all endpoint tools.

    - Each route passes ALL parameters required by the tool function
      through *args / **kwargs.
    - remote_ip / request_method are injected when the tool accepts them.
    - RequestError (and subclasses) become their own status and payload.
    - pydantic ValidationError on request data becomes a 400.
    - Anything else is logged with its traceback and becomes a 500 carrying
      the route's failure message.
    """
    remote_ip = request.remote_addr
    tool_name = tool_func.__name__
    method = request.method

    context = {
        "tool_name": tool_name,
        "ip_address": remote_ip,
        "rfp_id": kwargs.get("rfp_id") or "N/A",
        "request_type": method,
    }
    log = logging.LoggerAdapter(logging.getLogger("RfpEngine"), context)

    if method == "POST":
        log.info("Process started")

    call_kwargs = dict(kwargs)
    sig = inspect.signature(tool_func)
    if "remote_ip" in sig.parameters:
        call_kwargs["remote_ip"] = remote_ip
    if "request_method" in sig.parameters:
        call_kwargs["request_method"] = method

    try:
        result = tool_func(*args, **call_kwargs)
    except RequestError as exc:
        log.warning(f"{tool_name} rejected request: {exc.message}")
        return jsonify(exc.to_payload()), exc.status_code
    except ValidationError as exc:
        log.warning(f"{tool_name} invalid request data: {exc}")
        return jsonify({"error": "Invalid request data", "details": str(exc)}), 400
    except Exception as exc:
        log.exception(f"{tool_name} crashed")
        return jsonify(_make_error_payload(tool_name, failure, {"detail": str(exc)})), 500

    return jsonify(result), status


def get_payload() -> dict:
    """Request body as a dict; anything that is not a JSON object reads as {}."""
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def health_main(remote_ip: str | None = None, request_method: str | None = None) -> dict:
    """
    Healthcheck tool.
    - Returns {"status": "ok", "message": "Server Running"}.
    - Logs a DEBUG line into the SYSTEM/health tool log.
    """
    log = bind_tool_logger("health", None, remote_ip, request_method)
    log.debug("Health check received")
    return {"status": "ok", "message": "Server Running"}


@app.route("/health", methods=["GET"])
def HEALTH():
    return handle(health_main)


@app.route("/vendors", methods=["GET"])
def LIST_VENDORS():
    return handle(list_vendors_main, failure="Failed to fetch vendors")


@app.route("/vendors", methods=["POST"])
def CREATE_VENDOR():
    data = get_payload()
    return handle(
        create_vendor_main,
        failure="Failed to create vendor",
        status=201,
        name=data.get("name"),
        email=data.get("email"),
        contact_person=data.get("contactPerson"),
        notes=data.get("notes"),
    )


@app.route("/rfps", methods=["GET"])
def LIST_RFPS():
    return handle(list_rfps_main, failure="Failed to fetch RFPs")


@app.route("/rfps", methods=["POST"])
def CREATE_RFP():
    return handle(
        create_rfp_main,
        failure="Failed to create RFP",
        status=201,
        body=get_payload(),
    )


@app.route("/rfps/from-text", methods=["POST"])
def CREATE_RFP_FROM_TEXT():
    data = get_payload()
    return handle(
        create_rfp_from_text_main,
        failure="Failed to create RFP from text",
        status=201,
        natural_language_input=data.get("naturalLanguageInput"),
        title=data.get("title"),
    )


@app.route("/rfps/<rfp_id>/proposals", methods=["GET"])
def LIST_PROPOSALS(rfp_id):
    return handle(list_proposals_main, failure="Failed to fetch proposals", rfp_id=rfp_id)


@app.route("/rfps/<rfp_id>/proposals", methods=["POST"])
def CREATE_PROPOSAL(rfp_id):
    return handle(
        create_proposal_main,
        failure="Failed to create proposal",
        status=201,
        rfp_id=rfp_id,
        body=get_payload(),
    )


@app.route("/rfps/<rfp_id>/compare", methods=["GET"])
def COMPARE_PROPOSALS(rfp_id):
    return handle(compare_rfp_main, failure="Failed to compare proposals", rfp_id=rfp_id)


@app.route("/rfps/<rfp_id>/proposals/from-text", methods=["POST"])
def CREATE_PROPOSAL_FROM_TEXT(rfp_id):
    data = get_payload()
    return handle(
        proposal_from_text_main,
        failure="Failed to create proposal from text",
        status=201,
        rfp_id=rfp_id,
        vendor_id=data.get("vendorId"),
        text=data.get("text"),
        email_meta=data.get("emailMeta") or {},
    )


@app.route("/rfps/<rfp_id>/emails", methods=["GET"])
def LIST_RFP_EMAILS(rfp_id):
    return handle(list_rfp_emails_main, failure="Failed to fetch emails for RFP", rfp_id=rfp_id)


@app.route("/emails", methods=["GET"])
def LIST_EMAILS():
    return handle(list_emails_main, failure="Failed to fetch emails")


@app.route("/webhooks/email", methods=["POST"])
def EMAIL_WEBHOOK():
    return handle(
        email_webhook_main,
        failure="Failed to process email webhook",
        payload=get_payload(),
    )


if __name__ == "__main__":
    from rfpengine.utils.db import init_db

    init_db()
    port = int(os.getenv("PORT", "4000"))
    if os.path.exists("crt.pem") and os.path.exists("key.pem"):
        app.run(host="0.0.0.0", port=port, ssl_context=("crt.pem", "key.pem"))
    else:
        app.run(host="0.0.0.0", port=port)
