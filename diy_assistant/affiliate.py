from __future__ import annotations

from urllib.parse import quote

from .config import DEFAULT_AFFILIATE_TAG, DEFAULT_SEARCH_URL
from .models import ProductItem, Recommendations

# Characters left unescaped by JavaScript's encodeURIComponent.
_UNRESERVED = "-_.!~*'()"


def build_affiliate_link(
    product_name: str,
    tag: str = DEFAULT_AFFILIATE_TAG,
    base_url: str = DEFAULT_SEARCH_URL,
) -> str:
    """Purpose: Build a marketplace search URL for a product name.
    Inputs/Outputs: Input is a product name plus optional tag/base URL; returns the URL.
    Side Effects / State: None; pure function.
    Dependencies: Uses urllib.parse.quote.
    Failure Modes: None; any string, including symbols, yields a valid URL.
    Testing Notes: Names with spaces become "+", symbols are percent-encoded.
    """
    # Percent-encode the name, then use "+" for spaces as search pages expect.
    encoded = quote(product_name, safe=_UNRESERVED).replace("%20", "+")
    return f"{base_url}?k={encoded}&tag={quote(tag, safe=_UNRESERVED)}"


def attach_affiliate_links(
    recommendations: Recommendations,
    tag: str = DEFAULT_AFFILIATE_TAG,
    base_url: str = DEFAULT_SEARCH_URL,
) -> Recommendations:
    """Return a copy where every item without a URL gets a built affiliate link."""

    def _resolve(item: ProductItem) -> ProductItem:
        if item.affiliate_url and item.affiliate_url.strip():
            return item.model_copy()
        return item.model_copy(update={"affiliate_url": build_affiliate_link(item.name, tag, base_url)})

    return Recommendations(
        materials=[_resolve(item) for item in recommendations.materials],
        tools=[_resolve(item) for item in recommendations.tools],
    )
