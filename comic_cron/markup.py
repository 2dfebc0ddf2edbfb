"""Lenient markup parser for RSS documents and the HTML embedded in them.

Only enough of XML/HTML is understood to walk a feed and pull attributes out
of its descriptions. Elements listed as *void* never need a closing tag; any
other element left open or closed out of order makes the whole parse fail
with :class:`~comic_cron.errors.ParseError` instead of producing a wrong tree.
"""

import html
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .errors import ParseError

SYNTHETIC_ROOT = "root"

_NAME = r"[A-Za-z_:][-A-Za-z0-9_:.]*"
_ATTRIBUTE = re.compile(
    r"""([^\s=/>"']+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+)))?"""
)
_ATTRIBUTE_SYNTAX = r"""[^\s=/>"']+(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?"""
_START_TAG = re.compile(rf"<({_NAME})((?:\s+{_ATTRIBUTE_SYNTAX})*)\s*(/?)>")
_END_TAG = re.compile(rf"</\s*({_NAME})\s*>")
_DECLARATION = re.compile(rf"<(!{_NAME})([^>]*)>")


@dataclass
class Text:
    """Character data; ``cdata`` is set for ``<![CDATA[...]]>`` sections."""

    content: str
    cdata: bool = False


@dataclass
class Element:
    """An element with its attributes and child nodes."""

    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list["Element | Text"] = field(default_factory=list)

    def is_named(self, name: str) -> bool:
        return self.name.lower() == name.lower()

    def get(self, attribute: str, default: str | None = None) -> str | None:
        """Return an attribute value by name, ignoring case."""
        return self.attributes.get(attribute.lower(), default)

    def elements(self, name: str | None = None) -> list["Element"]:
        """Direct child elements, optionally filtered by name."""
        return [
            child
            for child in self.children
            if isinstance(child, Element) and (name is None or child.is_named(name))
        ]

    def iter(self, name: str | None = None) -> Iterator["Element"]:
        """Yield descendant elements in document order."""
        for child in self.children:
            if isinstance(child, Element):
                if name is None or child.is_named(name):
                    yield child
                yield from child.iter(name)

    def find_all(self, name: str) -> list["Element"]:
        return list(self.iter(name))

    def find(self, name: str) -> "Element | None":
        return next(self.iter(name), None)

    def only(self, name: str) -> "Element | None":
        """The single direct child element called ``name``, if there is exactly one."""
        matches = self.elements(name)
        return matches[0] if len(matches) == 1 else None

    @property
    def text(self) -> str | None:
        """Content of an element whose only child is text, else None."""
        if len(self.children) == 1 and isinstance(self.children[0], Text):
            return self.children[0].content
        return None

    def child_text(self, name: str) -> str | None:
        child = self.only(name)
        return child.text if child is not None else None


@dataclass
class Document:
    """A parsed document: prolog declarations plus a single root element."""

    root: Element
    prolog: list[str] = field(default_factory=list)


class MarkupParser:
    """Tokenizer and tree builder with a configurable void-element set."""

    def __init__(self, void_elements: Iterable[str] = ()):
        """Initialize the parser.

        Args:
            void_elements: Element names (e.g. ``img``, ``!doctype``) that
                never require a closing tag. Compared case-insensitively.
        """
        self.void_elements = frozenset(name.lower() for name in void_elements)

    def parse_document(self, text: str) -> Document:
        """Parse a complete document such as an RSS feed body.

        Raises:
            ParseError: If the markup is malformed or has no single root
        """
        prolog: list[str] = []
        top = self._build(text.lstrip("\ufeff"), prolog=prolog)
        roots = top.elements()
        if len(roots) != 1:
            raise ParseError(f"Expected one root element, found {len(roots)}")
        return Document(root=roots[0], prolog=prolog)

    def parse_fragment(self, text: str) -> Element:
        """Parse a fragment wrapped in a synthetic ``<root>`` element.

        Raises:
            ParseError: If the fragment is malformed
        """
        top = self._build(f"<{SYNTHETIC_ROOT}>{text}</{SYNTHETIC_ROOT}>")
        roots = top.elements()
        if len(roots) != 1 or any(isinstance(c, Text) for c in top.children):
            raise ParseError("Fragment closes its synthetic root early")
        return roots[0]

    def _is_void(self, name: str) -> bool:
        return name.lower() in self.void_elements

    def _build(self, text: str, prolog: list[str] | None = None) -> Element:
        top = Element("#top")
        stack = [top]
        pos = 0
        length = len(text)

        while pos < length:
            if text[pos] != "<":
                end = text.find("<", pos)
                if end == -1:
                    end = length
                content = text[pos:end]
                if content.strip() and len(stack) == 1 and prolog is not None:
                    raise ParseError(f"Text outside the root element at offset {pos}")
                pos = end
                if not content.strip():
                    continue
                stack[-1].children.append(Text(html.unescape(content)))
                continue

            if text.startswith("<!--", pos):
                end = text.find("-->", pos + 4)
                if end == -1:
                    raise ParseError(f"Unterminated comment at offset {pos}")
                pos = end + 3
                continue

            if text.startswith("<![CDATA[", pos):
                end = text.find("]]>", pos + 9)
                if end == -1:
                    raise ParseError(f"Unterminated CDATA section at offset {pos}")
                if prolog is not None and len(stack) == 1:
                    raise ParseError(f"CDATA outside the root element at offset {pos}")
                stack[-1].children.append(Text(text[pos + 9 : end], cdata=True))
                pos = end + 3
                continue

            if text.startswith("<?", pos):
                end = text.find("?>", pos + 2)
                if end == -1:
                    raise ParseError(
                        f"Unterminated processing instruction at offset {pos}"
                    )
                if prolog is not None and len(stack) == 1:
                    prolog.append(text[pos : end + 2])
                pos = end + 2
                continue

            if text.startswith("</", pos):
                match = _END_TAG.match(text, pos)
                if not match:
                    raise ParseError(f"Malformed end tag at offset {pos}")
                name = match.group(1)
                pos = match.end()
                if len(stack) > 1 and stack[-1].is_named(name):
                    stack.pop()
                elif self._is_void(name):
                    continue
                else:
                    open_name = stack[-1].name if len(stack) > 1 else None
                    raise ParseError(
                        f"End tag </{name}> does not match open element "
                        f"<{open_name}> at offset {match.start()}"
                    )
                continue

            if text.startswith("<!", pos):
                match = _DECLARATION.match(text, pos)
                if not match:
                    raise ParseError(f"Malformed declaration at offset {pos}")
                pos = match.end()
                if prolog is not None and len(stack) == 1:
                    prolog.append(match.group(0))
                    continue
                element = Element(
                    match.group(1).lower(), self._attributes(match.group(2))
                )
                stack[-1].children.append(element)
                if not self._is_void(element.name):
                    stack.append(element)
                continue

            match = _START_TAG.match(text, pos)
            if not match:
                raise ParseError(f"Malformed tag at offset {pos}")
            pos = match.end()
            element = Element(match.group(1), self._attributes(match.group(2)))
            stack[-1].children.append(element)
            self_closing = match.group(3) == "/"
            if not self_closing and not self._is_void(element.name):
                stack.append(element)

        if len(stack) > 1:
            raise ParseError(f"Unclosed element <{stack[-1].name}>")
        return top

    @staticmethod
    def _attributes(raw: str) -> dict[str, str]:
        attributes: dict[str, str] = {}
        for match in _ATTRIBUTE.finditer(raw):
            name, double, single, bare = match.groups()
            value = next((v for v in (double, single, bare) if v is not None), "")
            attributes.setdefault(name.lower(), html.unescape(value))
        return attributes


def parse_document(text: str) -> Document:
    """Parse a full document with no void elements."""
    return MarkupParser().parse_document(text)


def parse_fragment(text: str, void_elements: Iterable[str]) -> Element:
    """Parse a fragment wrapped in a synthetic root with the given void set."""
    return MarkupParser(void_elements).parse_fragment(text)
