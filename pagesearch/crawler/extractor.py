"""
Content extraction: turns a fetched response into a title and plain-text body.
"""

import asyncio
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup


class ExtractionError(Exception):
    """Raised when a response cannot be converted to text."""
    pass


class UnsupportedMediaTypeError(ExtractionError):
    """Raised for media types with no extraction rule."""

    def __init__(self, media_type: str):
        super().__init__(f"Unsupported media type: {media_type or 'unknown'}")
        self.media_type = media_type


@dataclass
class ExtractedContent:
    """Title and normalized text of one response."""
    title: str
    body: str


class TextConverter:
    """Converts raw document bytes into plain text."""

    name = "converter"

    async def convert(self, raw: bytes) -> str:
        raise NotImplementedError


class SubprocessConverter(TextConverter):
    """
    Runs an external program that reads the document on stdin and writes
    plain text to stdout. A non-zero exit status is a failure.
    """

    def __init__(self, command: List[str], timeout: Optional[float] = 60):
        if not command:
            raise ValueError("Converter command must not be empty")
        self.command = list(command)
        self.timeout = timeout
        self.name = command[0]
        self.logger = logging.getLogger(__name__)

    async def convert(self, raw: bytes) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExtractionError(f"{self.name}: could not start: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(raw), self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ExtractionError(f"{self.name}: timed out after {self.timeout}s")
        except OSError as e:
            raise ExtractionError(f"{self.name}: I/O error: {e}")

        if process.returncode != 0:
            message = stderr.decode('utf-8', errors='replace').strip()
            raise ExtractionError(f"{self.name}: exited with status {process.returncode}: {message}")

        return stdout.decode('utf-8', errors='replace')


def parse_media_type(content_type: Optional[str]) -> str:
    """Media type of a Content-Type header value, parameters dropped."""
    if not content_type:
        return ''
    return content_type.split(';', 1)[0].strip().lower()


def url_basename(url: str) -> str:
    """Last element of the URL path, '/' for the root."""
    path = unquote(urlparse(url).path)
    stripped = path.rstrip('/')
    if not stripped:
        return '/' if path else '.'
    return posixpath.basename(stripped)


class ContentExtractor:
    """
    Dispatches on media type:

    - ``text/html``: body from the HTML converter, title from ``<title>`` or the first ``<h1>``
    - ``application/pdf``: body from the PDF converter, title from the URL path
    - ``text/plain``: body is the decoded response, title from the URL path

    Anything else raises UnsupportedMediaTypeError.
    """

    def __init__(self, html_converter: TextConverter, pdf_converter: TextConverter):
        self.html_converter = html_converter
        self.pdf_converter = pdf_converter
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    async def extract(self, url: str, media_type: str, raw: bytes,
                      encoding: Optional[str] = None) -> ExtractedContent:
        """
        Extract title and body from a response.

        Args:
            url: Final URL of the response, used for path-derived titles
            media_type: Declared media type; parameters are ignored
            raw: Response body
            encoding: Charset declared by the response, if any

        Returns:
            ExtractedContent

        Raises:
            ExtractionError: converter failure or unparseable markup
            UnsupportedMediaTypeError: no rule for ``media_type``
        """
        media_type = parse_media_type(media_type)

        if media_type == 'text/html':
            body = await self.html_converter.convert(raw)
            title = self._html_title(raw)
        elif media_type == 'application/pdf':
            body = await self.pdf_converter.convert(raw)
            title = url_basename(url)
        elif media_type == 'text/plain':
            body = self._decode_text(raw, encoding)
            title = url_basename(url)
        else:
            raise UnsupportedMediaTypeError(media_type)

        self.logger.debug(f"Extracted {len(body)} chars from {url}, title={title!r}")
        return ExtractedContent(title=title, body=body)

    def _html_title(self, raw: bytes) -> str:
        """First non-empty of <title> or the first <h1>, whitespace-trimmed."""
        try:
            soup = BeautifulSoup(raw, 'lxml')
        except Exception as e:
            raise ExtractionError(f"Could not parse HTML: {e}")

        title = ''
        title_tag = soup.find('title')
        if title_tag:
            title = title_tag.get_text()
        if not title.strip():
            h1_tag = soup.find('h1')
            if h1_tag:
                title = h1_tag.get_text()
        return self.whitespace_pattern.sub(' ', title).strip()

    def _decode_text(self, raw: bytes, encoding: Optional[str]) -> str:
        """Decode a text body, trying the declared charset first."""
        for candidate in (encoding, 'utf-8', 'cp1252'):
            if not candidate:
                continue
            try:
                return raw.decode(candidate)
            except (UnicodeDecodeError, LookupError):
                continue
        return raw.decode('latin-1')
