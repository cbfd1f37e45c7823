#
# FluentCore - XML Formatters Tests
#

# Standard library -----------------------------------------------------------------------------------------------------
import xml.dom.minidom as minidom
import xml.etree.ElementTree as ET

# Third Party ----------------------------------------------------------------------------------------------------------
import pytest

# Local ----------------------------------------------------------------------------------------------------------------
from fluentcore.formatters import to_display_string
from fluentcore.xml import (
    NO_ROOT_TEXT,
    format_xml_attribute,
    format_xml_document,
    format_xml_element,
    is_xml_attribute,
    is_xml_document,
    is_xml_element,
)


# Tests ----------------------------------------------------------------------------------------------------------------

class TestFormatXmlAttribute:
    def test_attribute(self):
        """Render name="value"."""
        element = minidom.parseString('<user id="42"/>').documentElement
        assert format_xml_attribute(element.getAttributeNode("id")) == 'id="42"'

    def test_escaped_value(self):
        """Escape quotes and ampersands inside the value."""
        element = minidom.parseString('<a title="say &quot;hi&quot; &amp; go"/>').documentElement
        assert format_xml_attribute(element.getAttributeNode("title")) == 'title="say &quot;hi&quot; &amp; go"'


class TestFormatXmlElement:
    @pytest.mark.parametrize(
        "source, expected",
        [
            pytest.param('<user id="42"/>', r'<user id=\"42\" />', id="attributes"),
            pytest.param('<user id="42" role="admin"/>', r'<user id=\"42\" role=\"admin\" />', id="many_attributes"),
            pytest.param("<user/>", "<user />", id="bare"),
            pytest.param("<name>Ann</name>", "<name>Ann</name>", id="text"),
            pytest.param('<name lang="en">Ann</name>', r'<name lang=\"en\">Ann</name>', id="text_attributes"),
            pytest.param('<users count="2"><user/><user/></users>', r'<users count=\"2\">...</users>', id="children"),
            pytest.param("<users>text<user/></users>", "<users>...</users>", id="mixed_content"),
        ],
    )
    def test_etree(self, source, expected):
        """Render ElementTree elements."""
        assert format_xml_element(ET.fromstring(source)) == expected

    @pytest.mark.parametrize(
        "source, expected",
        [
            pytest.param('<user id="42"/>', r'<user id=\"42\" />', id="attributes"),
            pytest.param("<name>Ann</name>", "<name>Ann</name>", id="text"),
            pytest.param('<users count="2"><user/></users>', r'<users count=\"2\">...</users>', id="children"),
        ],
    )
    def test_minidom(self, source, expected):
        """Render minidom elements."""
        assert format_xml_element(minidom.parseString(source).documentElement) == expected

    def test_children_never_expanded(self):
        """Collapse children regardless of their content."""
        shallow = ET.fromstring("<root><a/></root>")
        deep = ET.fromstring('<root><a><b x="1"><c>text</c></b></a></root>')
        assert format_xml_element(shallow) == format_xml_element(deep) == "<root>...</root>"

    @pytest.mark.parametrize(
        "element",
        [
            pytest.param(ET.fromstring('<a id="1"><b/></a>'), id="etree"),
            pytest.param(minidom.parseString('<a id="1"><b/></a>').documentElement, id="minidom"),
        ],
    )
    def test_children_escape_quotes(self, element):
        """Escape attribute quotes of collapsed elements like those of leaf elements."""
        assert format_xml_element(element) == r'<a id=\"1\">...</a>'
        assert format_xml_element(ET.fromstring('<a id="1"/>')) == r'<a id=\"1\" />'


class TestFormatXmlDocument:
    @pytest.mark.parametrize(
        "document, expected",
        [
            pytest.param(ET.ElementTree(ET.fromstring("<config><a/></config>")), "<config>...</config>", id="etree"),
            pytest.param(ET.ElementTree(ET.fromstring("<config/>")), "<config>...</config>", id="etree_leaf_root"),
            pytest.param(ET.ElementTree(), NO_ROOT_TEXT, id="etree_empty"),
            pytest.param(minidom.parseString("<config><a/></config>"), "<config>...</config>", id="minidom"),
            pytest.param(minidom.Document(), NO_ROOT_TEXT, id="minidom_empty"),
        ],
    )
    def test_documents(self, document, expected):
        """Render the root tag or the no-root notice."""
        assert format_xml_document(document) == expected

    def test_no_root_literal(self):
        """Use the fixed notice text."""
        assert NO_ROOT_TEXT == "[XML document without root element]"


class TestXmlRouting:
    def test_predicates(self):
        """Recognize each node kind."""
        document = minidom.parseString('<user id="1"/>')
        element = document.documentElement
        attribute = element.getAttributeNode("id")
        assert is_xml_document(document) and not is_xml_element(document)
        assert is_xml_element(element) and not is_xml_attribute(element)
        assert is_xml_attribute(attribute) and not is_xml_document(attribute)

    @pytest.mark.parametrize(
        "value, expected",
        [
            pytest.param(ET.fromstring('<user id="42"/>'), r'<user id=\"42\" />', id="element"),
            pytest.param(ET.ElementTree(), NO_ROOT_TEXT, id="document"),
            pytest.param([ET.fromstring("<a><b/></a>")], "[<a>...</a>]", id="nested"),
        ],
    )
    def test_to_display_string(self, value, expected):
        """Route XML nodes to the XML formatters."""
        assert to_display_string(value) == expected
