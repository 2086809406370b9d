"""Small XML serialization helpers for the RSS2 and Atom writers."""

import re
from datetime import datetime, timezone
from email.utils import format_datetime
from xml.sax.saxutils import escape, quoteattr

# Characters outside the XML 1.0 Char production
INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def xml_safe(text: str) -> str:
    return INVALID_XML_CHARS.sub("", text or "")


def cdata(text: str) -> str:
    """Wrap text in CDATA. A literal ``]]>`` becomes ``]]&gt;`` first."""
    return "<![CDATA[" + xml_safe(text).replace("]]>", "]]&gt;") + "]]>"


def text(value: str) -> str:
    """Escape character data."""
    return escape(xml_safe(value))


def attr(value: str) -> str:
    """Quoted, escaped attribute value."""
    return quoteattr(xml_safe(value))


def rfc2822(value: datetime) -> str:
    return format_datetime(value.astimezone(timezone.utc))


def rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
