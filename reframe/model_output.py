"""
Structured-block extraction for conversational model output.

The model answers in prose and, when it has something machine-readable to
report, embeds it in structured blocks:

- <summary>...</summary>            the finished experience summary
- <ideas>[...]</ideas>              suggested ideas (JSON array)
- <biases>[...]</biases>            bias descriptors (JSON array)
- ```json {...} ```                 an object with summary / suggestedIdeas / biases

parse_model_output() decodes every block it recognises into a
StructuredOutput and returns the remaining prose as clean text for the
transcript. Blocks that fail to decode stay in the prose. Nothing here
raises on bad input.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from json_repair import repair_json


@dataclass(frozen=True)
class BiasDescriptor:
    """A bias as reported by one model response (ids are only locally unique)."""
    id: str
    title: str
    explanation: str = ""
    challenging_ideas: tuple[str, ...] = ()


@dataclass(frozen=True)
class StructuredOutput:
    """Structured fields found in a response. None means never emitted."""
    summary: Optional[str] = None
    suggested_ideas: Optional[list[str]] = None
    biases: Optional[list[BiasDescriptor]] = None

    @property
    def is_empty(self) -> bool:
        return self.summary is None and self.suggested_ideas is None and self.biases is None


@dataclass(frozen=True)
class ParsedOutput:
    """Result of parsing one raw response."""
    structured: StructuredOutput = field(default_factory=StructuredOutput)
    clean_text: str = ""


# ── Block variants ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SummaryBlock:
    text: str


@dataclass(frozen=True)
class IdeasBlock:
    ideas: tuple[str, ...]


@dataclass(frozen=True)
class BiasesBlock:
    # Raw bias dicts; ids are assigned once all blocks are known
    entries: tuple[dict, ...]


Block = Union[SummaryBlock, IdeasBlock, BiasesBlock]


# ── Patterns ─────────────────────────────────────────────────────────────────

TAG_KINDS: dict[str, str] = {
    "summary": "summary",
    "ideas": "ideas",
    "suggested_ideas": "ideas",
    "suggestions": "ideas",
    "biases": "biases",
}

SUMMARY_KEYS = ("summary",)
IDEA_KEYS = ("suggestedIdeas", "suggested_ideas", "ideas")
BIAS_KEYS = ("biases",)

# Field aliases inside a single idea or bias object
IDEA_TEXT_FIELDS = ("idea", "text", "title")
CHALLENGING_IDEA_FIELDS = ("challengingIdeas", "challenging_ideas", "ideas")
EXPLANATION_FIELDS = ("explanation", "description")

_BLOCK_RE = re.compile(
    r"<(?P<tag>summary|suggested_ideas|suggestions|ideas|biases)>(?P<tag_body>.*?)</(?P=tag)>"
    r"|```(?P<lang>[\w+.-]*)[ \t]*\n?(?P<fence_body>.*?)```",
    re.DOTALL | re.IGNORECASE,
)

# Three or more line breaks (blank lines may hold stray spaces)
_BLANK_RUN_RE = re.compile(r"\n(?:[ \t]*\n){2,}")


# ── Decoding ─────────────────────────────────────────────────────────────────

def _load_json(text: str) -> Any:
    """Decode JSON, with one repair attempt for the usual model slips."""
    text = text.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        pass
    try:
        return json.loads(repair_json(text))
    except Exception:
        # Repair is best effort; an undecodable payload is prose
        return None


def _first_str(obj: dict, keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _coerce_ideas(payload: Any) -> Optional[list[str]]:
    """Turn a decoded payload into a list of idea texts (None if not a list)."""
    if isinstance(payload, dict):
        for key in IDEA_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list):
        return None

    ideas: list[str] = []
    for item in payload:
        if isinstance(item, str):
            text = item.strip()
        elif isinstance(item, dict):
            text = _first_str(item, IDEA_TEXT_FIELDS) or ""
        else:
            continue
        if text and text not in ideas:
            ideas.append(text)
    return ideas


def _coerce_bias_entries(payload: Any) -> Optional[list[dict]]:
    if isinstance(payload, dict) and isinstance(payload.get("biases"), list):
        payload = payload["biases"]
    if not isinstance(payload, list):
        return None
    return [item for item in payload if isinstance(item, dict)]


def _decode_tag(tag: str, body: str) -> list[Block]:
    kind = TAG_KINDS[tag.lower()]
    if kind == "summary":
        text = body.strip()
        return [SummaryBlock(text)] if text else []

    payload = _load_json(body)
    if kind == "ideas":
        ideas = _coerce_ideas(payload)
        return [IdeasBlock(tuple(ideas))] if ideas is not None else []

    entries = _coerce_bias_entries(payload)
    return [BiasesBlock(tuple(entries))] if entries is not None else []


def _decode_fence(lang: str, body: str) -> list[Block]:
    # Only untagged or json fences holding an object; other code stays prose
    if lang and lang.lower() != "json":
        return []
    if not body.lstrip().startswith("{"):
        return []

    payload = _load_json(body)
    if not isinstance(payload, dict):
        return []

    blocks: list[Block] = []
    summary = _first_str(payload, SUMMARY_KEYS)
    if summary:
        blocks.append(SummaryBlock(summary))

    for key in IDEA_KEYS:
        if key in payload:
            ideas = _coerce_ideas(payload[key])
            if ideas is not None:
                blocks.append(IdeasBlock(tuple(ideas)))
            break

    for key in BIAS_KEYS:
        if key in payload:
            entries = _coerce_bias_entries(payload[key])
            if entries is not None:
                blocks.append(BiasesBlock(tuple(entries)))
    return blocks


def decode_block(match: re.Match) -> list[Block]:
    """Decode one matched block. An empty list means: treat it as prose."""
    if match.group("tag"):
        return _decode_tag(match.group("tag"), match.group("tag_body"))
    return _decode_fence(match.group("lang"), match.group("fence_body"))


def _build_descriptor(entry: dict, position: int, bias_id_prefix: str) -> Optional[BiasDescriptor]:
    title = _first_str(entry, ("title", "name"))
    if not title:
        return None

    raw_id = entry.get("id")
    if isinstance(raw_id, bool):
        raw_id = None
    if isinstance(raw_id, int):
        raw_id = str(raw_id)
    bias_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else f"{bias_id_prefix}_{position}"

    challenging: list[str] = []
    for key in CHALLENGING_IDEA_FIELDS:
        if isinstance(entry.get(key), list):
            challenging = _coerce_ideas(entry[key]) or []
            break

    return BiasDescriptor(
        id=bias_id,
        title=title,
        explanation=_first_str(entry, EXPLANATION_FIELDS) or "",
        challenging_ideas=tuple(challenging),
    )


def _assemble(blocks: list[Block], bias_id_prefix: str) -> StructuredOutput:
    summary: Optional[str] = None
    ideas: Optional[list[str]] = None
    biases: Optional[list[BiasDescriptor]] = None

    for block in blocks:
        if isinstance(block, SummaryBlock):
            summary = block.text
        elif isinstance(block, IdeasBlock):
            ideas = ideas if ideas is not None else []
            ideas.extend(i for i in block.ideas if i not in ideas)
        elif isinstance(block, BiasesBlock):
            biases = biases if biases is not None else []
            for entry in block.entries:
                descriptor = _build_descriptor(entry, len(biases) + 1, bias_id_prefix)
                if descriptor is not None:
                    biases.append(descriptor)

    return StructuredOutput(summary=summary, suggested_ideas=ideas, biases=biases)


# ── Clean text ───────────────────────────────────────────────────────────────

def _join_segments(segments: list[Optional[str]]) -> str:
    """Join prose segments; None marks where a block was cut out."""
    out = ""
    after_cut = False
    for segment in segments:
        if segment is None:
            out = out.rstrip(" \t")
            after_cut = True
            continue
        if after_cut:
            segment = segment.lstrip(" \t")
            if out and segment and not out.endswith("\n") and not segment.startswith("\n"):
                out += " "
            after_cut = False
        out += segment
    return _BLANK_RUN_RE.sub("\n\n", out).strip()


# ── Public API ───────────────────────────────────────────────────────────────

def parse_model_output(raw_text: str, bias_id_prefix: str = "bias") -> ParsedOutput:
    """
    Split a model response into structured fields and display prose.

    Args:
        raw_text: The response exactly as the model returned it
        bias_id_prefix: Prefix for bias ids the model did not supply;
            the n-th bias becomes "<prefix>_<n>"

    Returns:
        ParsedOutput with the structured fields and the clean text
    """
    if not isinstance(raw_text, str) or not raw_text:
        return ParsedOutput()

    blocks: list[Block] = []
    segments: list[Optional[str]] = []
    cursor = 0

    for match in _BLOCK_RE.finditer(raw_text):
        decoded = decode_block(match)
        if not decoded:
            continue
        segments.append(raw_text[cursor:match.start()])
        segments.append(None)
        cursor = match.end()
        blocks.extend(decoded)

    if not blocks:
        return ParsedOutput(clean_text=raw_text.strip())

    segments.append(raw_text[cursor:])
    return ParsedOutput(
        structured=_assemble(blocks, bias_id_prefix),
        clean_text=_join_segments(segments),
    )


def extract_summary(structured: StructuredOutput) -> Optional[str]:
    return structured.summary or None


def extract_suggested_ideas(structured: StructuredOutput) -> list[str]:
    return list(structured.suggested_ideas or [])


def extract_biases(structured: StructuredOutput) -> list[BiasDescriptor]:
    return list(structured.biases or [])


def display_text(parsed: ParsedOutput, raw_text: str) -> str:
    """Text to show in the transcript: the clean prose, or the raw text when
    the response held nothing but structured blocks."""
    return parsed.clean_text.strip() or (raw_text or "").strip()
