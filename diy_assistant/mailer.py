from __future__ import annotations

import logging
import re
from typing import List, Tuple

from .affiliate import attach_affiliate_links
from .config import DEFAULT_AFFILIATE_TAG, DEFAULT_SEARCH_URL
from .errors import InvalidRequestError
from .models import EmailRequest, EmailResponse, ProductItem, Recommendations

logger = logging.getLogger("diyassist.mailer")

TOOL_HINTS = ("tool", "cutter", "knife", "measure")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def mask_email(value: str) -> str:
    """Keep the first character and the domain so logs never hold full addresses."""
    if not value or "@" not in value:
        return "***"
    local, _, domain = value.partition("@")
    return f"{local[:1]}***@{domain}"


def split_items(items: List[ProductItem]) -> Tuple[List[ProductItem], List[ProductItem]]:
    """Purpose: Categorize a flat item list into materials and tools by name.
    Inputs/Outputs: Input is a list of ProductItem; output is (materials, tools).
    Side Effects / State: None; pure function.
    Dependencies: Uses TOOL_HINTS substrings.
    Failure Modes: None; names without a hint are treated as materials.
    Testing Notes: "Utility Knife" is a tool, "Grout" is a material.
    """
    tools = [item for item in items if any(hint in item.name.lower() for hint in TOOL_HINTS)]
    materials = [item for item in items if item not in tools]
    return materials, tools


def prepare_shopping_list(
    request: EmailRequest,
    tag: str = DEFAULT_AFFILIATE_TAG,
    base_url: str = DEFAULT_SEARCH_URL,
) -> Recommendations:
    """Purpose: Validate an email request and build the categorized shopping list.
    Inputs/Outputs: Input is EmailRequest; output is Recommendations with links filled.
    Side Effects / State: None.
    Dependencies: Uses split_items and attach_affiliate_links.
    Failure Modes: InvalidRequestError for blank names, a malformed address, or no items.
    Testing Notes: Items without affiliate_url come back with one.
    """
    if not request.first_name.strip() or not request.last_name.strip():
        raise InvalidRequestError("firstName and lastName are required")
    if not _EMAIL_RE.match(request.email.strip()):
        raise InvalidRequestError("A valid email address is required")
    if not request.items:
        raise InvalidRequestError("items must contain at least one product")

    if request.recommendations is not None:
        grouped = request.recommendations
    else:
        materials, tools = split_items(request.items)
        grouped = Recommendations(materials=materials, tools=tools)
    return attach_affiliate_links(grouped, tag, base_url)


def render_shopping_list(request: EmailRequest, shopping_list: Recommendations) -> str:
    lines = [f"Hi {request.first_name.strip()},", "", f"Here is your shopping list for {request.project_title}.", ""]
    for heading, items in (("Materials", shopping_list.materials), ("Tools", shopping_list.tools)):
        if not items:
            continue
        lines.append(f"{heading}:")
        lines.extend(f"  - {item.name}: {item.affiliate_url}" for item in items)
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class LogOnlyMailer:
    """Email collaborator that records the rendered list in the log instead of sending."""

    def __init__(self, tag: str = DEFAULT_AFFILIATE_TAG, base_url: str = DEFAULT_SEARCH_URL) -> None:
        self._tag = tag
        self._base_url = base_url

    def send(self, request: EmailRequest) -> EmailResponse:
        shopping_list = prepare_shopping_list(request, self._tag, self._base_url)
        body = render_shopping_list(request, shopping_list)
        logger.info(
            "email to=%s project=%s materials=%d tools=%d",
            mask_email(request.email),
            request.project_title,
            len(shopping_list.materials),
            len(shopping_list.tools),
        )
        logger.debug("email body:\n%s", body)
        return EmailResponse(success=True, message=f"Shopping list prepared for {request.email.strip()}")
