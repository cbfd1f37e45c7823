"""
Formatters for XML nodes.

Renders xml.etree.ElementTree and xml.dom.minidom nodes as short one-line summaries
suitable for failure messages. Child elements are never expanded.
"""

# Standard library -----------------------------------------------------------------------------------------------------
import xml.dom.minidom as minidom
import xml.etree.ElementTree as ET

from typing import Any
from xml.sax.saxutils import escape

NO_ROOT_TEXT = "[XML document without root element]"

_TEXT_NODES = (minidom.Node.TEXT_NODE, minidom.Node.CDATA_SECTION_NODE)


# Methods --------------------------------------------------------------------------------------------------------------

def is_xml_attribute(value: Any) -> bool:
    return isinstance(value, minidom.Attr)


def is_xml_element(value: Any) -> bool:
    return isinstance(value, (ET.Element, minidom.Element))


def is_xml_document(value: Any) -> bool:
    return isinstance(value, (ET.ElementTree, minidom.Document))


def format_xml_attribute(attr: minidom.Attr) -> str:
    """
    Format an attribute node as name="value".

    Examples:
        >>> element = minidom.parseString('<user id="42"/>').documentElement
        >>> format_xml_attribute(element.getAttributeNode("id"))
        'id="42"'
    """
    return f'{attr.name}="{_escape_attr(attr.value)}"'


def format_xml_element(element: ET.Element | minidom.Element) -> str:
    """
    Format an element without expanding its children.

    An element with child elements collapses to `<tag attrs>...</tag>`. A leaf element is
    rendered in full, either `<tag attrs />` or `<tag attrs>text</tag>`. In both cases double
    quotes are escaped with a backslash so the result can be embedded in a quoted message.

    Examples:
        >>> format_xml_element(ET.fromstring('<user id="42"/>'))
        '<user id=\\\\"42\\\\" />'
        >>> format_xml_element(ET.fromstring('<users><user/></users>'))
        '<users>...</users>'
    """
    tag, attributes, text, has_children = _element_parts(element)
    opening = " ".join([f"<{tag}", *(f'{name}="{_escape_attr(value)}"' for name, value in attributes)])

    if has_children:
        rendered = f"{opening}>...</{tag}>"
    elif text:
        rendered = f"{opening}>{escape(text)}</{tag}>"
    else:
        rendered = f"{opening} />"
    return rendered.replace('"', '\\"')


def format_xml_document(document: ET.ElementTree | minidom.Document) -> str:
    """
    Format a document as its root tag, or a fixed notice when it has no root.

    Examples:
        >>> format_xml_document(ET.ElementTree(ET.fromstring("<config><a/></config>")))
        '<config>...</config>'
        >>> format_xml_document(ET.ElementTree())
        '[XML document without root element]'
    """
    if isinstance(document, ET.ElementTree):
        root = document.getroot()
        tag = root.tag if root is not None else None
    else:
        root = document.documentElement
        tag = root.tagName if root is not None else None

    if tag is None:
        return NO_ROOT_TEXT
    return f"<{tag}>...</{tag}>"


# Private Methods ------------------------------------------------------------------------------------------------------

def _element_parts(element: ET.Element | minidom.Element) -> tuple[str, list[tuple[str, str]], str, bool]:
    """Return tag, attributes, stripped text and whether any child element exists."""
    if isinstance(element, minidom.Element):
        children = element.childNodes
        has_children = any(node.nodeType == minidom.Node.ELEMENT_NODE for node in children)
        text = "".join(node.data for node in children if node.nodeType in _TEXT_NODES)
        return element.tagName, list(element.attributes.items()), text.strip(), has_children

    return element.tag, list(element.attrib.items()), (element.text or "").strip(), len(element) > 0


def _escape_attr(value: str) -> str:
    return escape(value, {'"': "&quot;"})
