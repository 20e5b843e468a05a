"""Metadata extraction for uploaded MusicXML scores.

Hey future me - this is the ONLY place that knows where a MusicXML document hides its title
and composer. Everything here is pure (bytes in, dataclass out, no I/O) so the ingestion use
case can push it onto a worker thread with asyncio.to_thread while the hash is computed.

The search order for the title matters! Lots of exports (MuseScore, Finale) leave
<work-title> empty and put the real name into <movement-title>, so we walk:
1. score-partwise/work/work-title
2. score-partwise/movement-title
3. score-timewise/work/work-title
4. score-timewise/movement-title
and take the first value that is still non-empty after cleaning.

Missing fields NEVER raise - they come back as "" and the ingestion use case swaps in the
placeholders. Only bytes that aren't a parseable score document raise InvalidDocumentError.

Usage:
    from mushee.domain.value_objects.score_metadata import read_score_metadata

    metadata = read_score_metadata(file_bytes)
    metadata.title, metadata.composer, metadata.subtitle
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace

from mushee.domain.exceptions import InvalidDocumentError

# Matches the title/composer column width in the scores table
MAX_METADATA_LENGTH = 200

SCORE_ROOT_TAGS = ("score-partwise", "score-timewise")

TITLE_SEARCH_ORDER: tuple[tuple[str, str], ...] = (
    ("score-partwise", "work/work-title"),
    ("score-partwise", "movement-title"),
    ("score-timewise", "work/work-title"),
    ("score-timewise", "movement-title"),
)

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class ScoreMetadata:
    """Display metadata pulled out of a score document."""

    title: str
    composer: str
    subtitle: str | None = None

    @property
    def has_title(self) -> bool:
        return bool(self.title)

    @property
    def has_composer(self) -> bool:
        return bool(self.composer)

    def with_placeholders(self, title: str, composer: str) -> "ScoreMetadata":
        """Return a copy where empty title/composer are replaced by the given placeholders."""
        return replace(
            self,
            title=self.title or title,
            composer=self.composer or composer,
        )


def clean_and_truncate(value: str | None, max_length: int = MAX_METADATA_LENGTH) -> str:
    """Trim, collapse whitespace runs to a single space and cut to max_length.

    No other inference happens here - "  Moonlight \\n Sonata " becomes "Moonlight Sonata",
    that's it.
    """
    if not value:
        return ""
    cleaned = _WHITESPACE_RUN.sub(" ", value.strip())
    return cleaned[:max_length]


def _local_name(tag: str) -> str:
    # Some exporters put MusicXML into a default namespace ("{ns}score-partwise")
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = _local_name(element.tag)
    return root


def parse_score_document(data: bytes) -> ET.Element:
    """Parse raw bytes into a score document tree.

    Raises:
        InvalidDocumentError: If the bytes are not well-formed XML or the root element is
            not score-partwise / score-timewise.
    """
    if not data or not data.strip():
        raise InvalidDocumentError("Invalid MusicXML format: file is empty")
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise InvalidDocumentError(f"Invalid MusicXML format: {e}") from e

    root = _strip_namespaces(root)
    if root.tag not in SCORE_ROOT_TAGS:
        raise InvalidDocumentError(
            f"Invalid MusicXML format: unexpected root element <{root.tag}>, "
            "expected <score-partwise> or <score-timewise>"
        )
    return root


def _find_text(root: ET.Element, root_tag: str, path: str, max_length: int) -> str:
    if root.tag != root_tag:
        return ""
    element = root.find(path)
    if element is None:
        return ""
    return clean_and_truncate("".join(element.itertext()), max_length)


def extract_title(root: ET.Element, max_length: int = MAX_METADATA_LENGTH) -> str:
    """Return the first non-empty title along TITLE_SEARCH_ORDER, or ""."""
    for root_tag, path in TITLE_SEARCH_ORDER:
        title = _find_text(root, root_tag, path, max_length)
        if title:
            return title
    return ""


def extract_composer(root: ET.Element, max_length: int = MAX_METADATA_LENGTH) -> str:
    """Return the first non-empty <creator type="composer"> value, or "".

    A score can list any number of creators (composer, lyricist, arranger...). We only care
    about the composer ones and take the first that has text.
    """
    for creator in root.findall("identification/creator"):
        if creator.get("type") != "composer":
            continue
        composer = clean_and_truncate("".join(creator.itertext()), max_length)
        if composer:
            return composer
    return ""


def compose_subtitle(
    movement_number: str | None,
    movement_title: str | None,
    max_length: int = MAX_METADATA_LENGTH,
) -> str | None:
    """Join movement number and title with a space, skipping whichever is absent.

    ("I", "Allegro") -> "I Allegro", ("I", None) -> "I", (None, None) -> None.
    """
    parts = [
        part
        for part in (
            clean_and_truncate(movement_number, max_length),
            clean_and_truncate(movement_title, max_length),
        )
        if part
    ]
    if not parts:
        return None
    return clean_and_truncate(" ".join(parts), max_length)


def extract_subtitle(root: ET.Element, max_length: int = MAX_METADATA_LENGTH) -> str | None:
    """Build the subtitle from <movement-number> and <movement-title>."""
    number = root.find("movement-number")
    title = root.find("movement-title")
    return compose_subtitle(
        "".join(number.itertext()) if number is not None else None,
        "".join(title.itertext()) if title is not None else None,
        max_length,
    )


def extract_metadata(root: ET.Element, max_length: int = MAX_METADATA_LENGTH) -> ScoreMetadata:
    """Extract title, composer and subtitle from a parsed score document."""
    return ScoreMetadata(
        title=extract_title(root, max_length),
        composer=extract_composer(root, max_length),
        subtitle=extract_subtitle(root, max_length),
    )


def read_score_metadata(data: bytes, max_length: int = MAX_METADATA_LENGTH) -> ScoreMetadata:
    """Parse raw bytes and extract metadata in one go (the to_thread entry point)."""
    return extract_metadata(parse_score_document(data), max_length)
