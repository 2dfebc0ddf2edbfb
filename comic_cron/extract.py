"""Field extraction from the markup embedded in RSS descriptions."""

from collections.abc import Iterable

from .errors import ExtractionError
from .markup import Element, MarkupParser

DEFAULT_VOID_ELEMENTS = ("img", "!doctype")


def first_image_src(fragment: Element) -> str:
    """Return the ``src`` of the first ``img`` element anywhere in ``fragment``.

    Raises:
        ExtractionError: If there is no ``img`` element or it has no ``src``
    """
    image = fragment.find("img")
    if image is None:
        raise ExtractionError("No img element in description")
    src = image.get("src")
    if src is None:
        raise ExtractionError("First img element has no src attribute")
    return src


def extract_description_image(
    description: str, void_elements: Iterable[str] = DEFAULT_VOID_ELEMENTS
) -> tuple[str, str]:
    """Extract the image URL and alt text from a description's markup.

    The description is parsed as a fragment under a synthetic root. Alt text
    is never taken from the description, so the second value is always empty.

    Args:
        description: Raw description markup
        void_elements: Element names that never need a closing tag

    Returns:
        Tuple of (image_url, alt_text)

    Raises:
        ParseError: If the markup is malformed
        ExtractionError: If no image URL can be found
    """
    fragment = MarkupParser(void_elements).parse_fragment(description)
    return first_image_src(fragment), ""
