"""
Minimal, library-independent XML node tree.

The UDDF heuristics only need a node's local name, attributes, children and
text, so they operate on XmlNode rather than on ElementTree elements. Trees
can be built by hand in tests or converted from a parsed document with
from_element().
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union

from dive_logbook.errors import MalformedDocument


def local_name(tag: str) -> str:
    """Strip a '{namespace}' or 'prefix:' qualifier and lower-case the name."""
    if tag.startswith('{'):
        tag = tag.rsplit('}', 1)[-1]
    return tag.rsplit(':', 1)[-1].lower()


@dataclass
class XmlNode:
    """An element reduced to the parts the importers look at.

    name is the lower-cased local name; attribute keys are lower-cased local
    names too. text is the element's full text content (its own text plus
    that of all descendants), as XPath string() would return it.
    """

    name: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["XmlNode"] = field(default_factory=list)
    text: str = ""

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name.lower())

    def descendants(self) -> Iterator["XmlNode"]:
        """All descendants in document order, excluding the node itself."""
        for child in self.children:
            yield child
            yield from child.descendants()

    def find_all(self, *names: str) -> Iterator["XmlNode"]:
        wanted = {n.lower() for n in names}
        return (node for node in self.descendants() if node.name in wanted)

    def find_first(self, *names: str) -> Optional["XmlNode"]:
        """First descendant (depth-first) whose name matches any of names."""
        return next(self.find_all(*names), None)

    def first_text(self, *names: str) -> Optional[str]:
        """Stripped text of the first descendant matching the first name that exists.

        Names are tried in order, so first_text('gas', 'gasname') prefers a
        <gas> element anywhere below over an earlier <gasname>.
        """
        for name in names:
            node = self.find_first(name)
            if node is not None:
                return node.text.strip()
        return None


def from_element(element: ET.Element) -> XmlNode:
    """Convert an ElementTree element (and its subtree) into XmlNode."""
    return XmlNode(
        name=local_name(element.tag),
        attributes={local_name(k): v for k, v in element.attrib.items()},
        children=[from_element(child) for child in element],
        text="".join(element.itertext()),
    )


def parse_document(content: Union[str, bytes]) -> XmlNode:
    """
    Parse XML text into an XmlNode tree.

    Text content is kept verbatim, whitespace included.

    Raises:
        MalformedDocument: if the text is not well-formed XML
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise MalformedDocument(f"Failed to parse XML: {e}") from e
    return from_element(root)
