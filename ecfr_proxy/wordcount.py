"""
Word counting for full eCFR title documents.

A word is a whitespace-delimited run of the document text (markup removed,
character data concatenated in document order) containing at least one letter
or digit. Punctuation-only runs such as "§" or "—" are not counted. The
streaming and DOM counters both follow this rule so they agree on any
well-formed document.
"""
import logging
import re
from collections.abc import AsyncIterable, Iterable

from lxml import etree

from ecfr_proxy.errors import ParseFailure

logger = logging.getLogger("ecfr")

_ALNUM = re.compile(r"[^\W_]")
_NON_WORD_CHARS = re.compile(r"[^\w\s]|_")


def is_word(token: str) -> bool:
    return _ALNUM.search(token) is not None


class StreamingWordCounter:
    """
    Incremental whitespace tokenizer.

    Holds at most the trailing partial token between feeds, so arbitrarily
    large text can be counted chunk by chunk with the same result as splitting
    the concatenated text at once.
    """

    def __init__(self):
        self.total = 0
        self._buffer = ""

    def feed(self, text: str):
        if not text:
            return
        text = self._buffer + text
        fragments = text.split()
        if fragments and not text[-1].isspace():
            # may continue in the next chunk
            self._buffer = fragments.pop()
        else:
            self._buffer = ""
        self.total += sum(1 for fragment in fragments if is_word(fragment))

    def close(self) -> int:
        if self._buffer and is_word(self._buffer):
            self.total += 1
        self._buffer = ""
        return self.total


def count_words(chunks: Iterable[str]) -> int:
    counter = StreamingWordCounter()
    for chunk in chunks:
        counter.feed(chunk)
    return counter.close()


class _TextTarget:
    """lxml parser target forwarding character data to a word counter"""

    def __init__(self, counter: StreamingWordCounter):
        self.counter = counter

    def data(self, data):
        self.counter.feed(data)

    def close(self):
        return self.counter.close()


def _xml_parser(**kwargs) -> etree.XMLParser:
    return etree.XMLParser(huge_tree=True, resolve_entities=False, no_network=True, **kwargs)


async def count_xml_stream(chunks: AsyncIterable[bytes]) -> int:
    """Count words in an XML document delivered as byte chunks, e.g. an HTTP body"""
    parser = _xml_parser(target=_TextTarget(StreamingWordCounter()))
    received = 0
    try:
        async for chunk in chunks:
            received += len(chunk)
            parser.feed(chunk)
        count = parser.close()
    except etree.XMLSyntaxError as e:
        raise ParseFailure("Failed to parse document", f"after {received} bytes: {e}") from e
    logger.debug("Counted %d words in %d bytes of XML", count, received)
    return count


def count_xml_document(payload: bytes | str) -> int:
    """Count words by parsing the whole document first. Needs the full payload in memory."""
    if isinstance(payload, str):
        payload = payload.encode()
    try:
        doc = etree.fromstring(payload, _xml_parser(remove_comments=True, remove_pis=True))
    except etree.XMLSyntaxError as e:
        raise ParseFailure("Failed to parse document", str(e)) from e
    text = _NON_WORD_CHARS.sub("", "".join(doc.itertext()))
    return len([word for word in text.split() if word])
