from urllib.parse import parse_qs, urlparse

import pytest

from diy_assistant.affiliate import attach_affiliate_links, build_affiliate_link
from diy_assistant.models import ProductItem, Recommendations


def test_spaces_become_plus_and_tag_is_appended():
    assert build_affiliate_link("Drywall Saw") == "https://www.amazon.com/s?k=Drywall+Saw&tag=aiconstructio-20"


@pytest.mark.parametrize(
    "name",
    ["Tile", "Notched Trowel 1/4\"", "Grout & Sealer", "50% off? #1 choice", "  padded  ", "Ångström level", "a+b=c"],
)
def test_any_name_yields_a_tagged_url_without_spaces(name):
    url = build_affiliate_link(name)

    assert " " not in url
    query = parse_qs(urlparse(url).query)
    assert query["tag"] == ["aiconstructio-20"]
    # parse_qs decodes "+" back to spaces, so the search term survives the trip.
    assert query["k"] == [name]


def test_symbols_are_percent_encoded_like_encode_uri_component():
    url = build_affiliate_link("Grout & Sealer (white)")

    assert "k=Grout+%26+Sealer+(white)&" in url


def test_custom_tag_and_base_url():
    url = build_affiliate_link("Level", tag="partner-7", base_url="https://example.test/search")

    assert url == "https://example.test/search?k=Level&tag=partner-7"


def test_attach_fills_only_missing_links():
    recommendations = Recommendations(
        materials=[ProductItem(name="Tile"), ProductItem(name="Grout", affiliate_url="https://shop.test/grout")],
        tools=[ProductItem(name="Trowel", affiliate_url="   ")],
    )

    resolved = attach_affiliate_links(recommendations)

    assert resolved.materials[0].affiliate_url == build_affiliate_link("Tile")
    assert resolved.materials[1].affiliate_url == "https://shop.test/grout"
    assert resolved.tools[0].affiliate_url == build_affiliate_link("Trowel")
    # The input is left untouched.
    assert recommendations.materials[0].affiliate_url is None
