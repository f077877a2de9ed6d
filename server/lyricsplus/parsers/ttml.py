"""Timed-text markup (Apple Music flavored TTML) parsing and serialization."""

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator

from pydantic import ValidationError

from lyricsplus.models.lyrics import (
    Agent,
    LineElement,
    LineTranslation,
    LineTransliteration,
    LyricDocument,
    LyricLine,
    LyricsMetadata,
    Syllable,
)
from lyricsplus.parsers.timing import clock_to_ms, ms_to_clock

logger = logging.getLogger(__name__)

TT_NS = "http://www.w3.org/ns/ttml"
TTS_NS = "http://www.w3.org/ns/ttml#styling"
TTM_NS = "http://www.w3.org/ns/ttml#metadata"
ITUNES_NS = "http://music.apple.com/lyric-ttml-internal"
XML_NS = "http://www.w3.org/XML/1998/namespace"

BACKGROUND_ROLE = "x-bg"
DEFAULT_LEADING_SILENCE = "0.020"

for _prefix, _uri in (("", TT_NS), ("tts", TTS_NS), ("ttm", TTM_NS), ("itunes", ITUNES_NS)):
    ET.register_namespace(_prefix, _uri)


def _q(ns: str, name: str) -> str:
    return f"{{{ns}}}{name}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _attr(el: ET.Element | None, ns: str, name: str) -> str | None:
    if el is None:
        return None
    value = el.get(_q(ns, name))
    return value if value is not None else el.get(name)


def _find_all(el: ET.Element | None, local: str) -> Iterator[ET.Element]:
    if el is None:
        return
    for child in el.iter():
        if child is not el and _local(child.tag) == local:
            yield child


def _find(el: ET.Element | None, local: str) -> ET.Element | None:
    return next(_find_all(el, local), None)


def _text_of(el: ET.Element) -> str:
    return "".join(el.itertext()).strip()


def _voice_alias(agent_id: str) -> str:
    return agent_id.replace("voice", "v")


# ── Parsing ───────────────────────────────────────────────────


def _collect_syllables(parent: ET.Element, offset_ms: int, separate: bool) -> list[Syllable]:
    """Timed spans under ``parent`` in document order.

    A span's tail text (the whitespace or punctuation after it) is appended to
    that span unless ``separate`` is set. Spans inside a ``ttm:role="x-bg"``
    wrapper are background vocals.
    """
    syllables: list[Syllable] = []

    def walk(node: ET.Element, background: bool) -> None:
        for child in node:
            if _local(child.tag) != "span":
                continue
            if _attr(child, TTM_NS, "role") == BACKGROUND_ROLE:
                walk(child, True)
                continue
            begin = child.get("begin")
            if begin is None:
                walk(child, background)
                continue

            tail = child.tail or ""
            text = child.text or ""
            if not separate:
                text += tail
            if not text.strip() and " " not in tail:
                continue

            start = clock_to_ms(begin)
            end = clock_to_ms(child.get("end"))
            try:
                syllables.append(Syllable(
                    start_ms=max(0, start + offset_ms),
                    duration_ms=max(0, end - start),
                    text=text,
                    is_background_vocal=background,
                ))
            except ValidationError as e:
                logger.debug("Skipping malformed span: %s", e)

    walk(parent, False)
    return syllables


def _parse_agents(head: ET.Element | None) -> dict[str, Agent]:
    agents: dict[str, Agent] = {}
    for el in _find_all(head, "agent"):
        agent_id = _attr(el, XML_NS, "id")
        if not agent_id:
            continue
        name_el = _find(el, "name")
        agent_type = el.get("type")
        agents[agent_id] = Agent(
            type="group" if agent_type == "group" else "person",
            name=_text_of(name_el) if name_el is not None else "",
            alias=_voice_alias(agent_id),
        )
    return agents


def _itunes_metadata(head: ET.Element | None) -> ET.Element | None:
    for el in _find_all(head, "iTunesMetadata"):
        return el
    if head is None:
        return None
    return head.find(f".//{_q(ITUNES_NS, 'metadata')}")


def _parse_side_channels(
    itunes_meta: ET.Element | None,
    offset_ms: int,
    separate: bool,
) -> tuple[dict[str, LineTranslation], dict[str, LineTransliteration]]:
    translations: dict[str, LineTranslation] = {}
    transliterations: dict[str, LineTransliteration] = {}

    for translation in _find_all(itunes_meta, "translation"):
        lang = _attr(translation, XML_NS, "lang")
        for text_el in _find_all(translation, "text"):
            line_key = text_el.get("for")
            text = _text_of(text_el)
            if line_key and text:
                translations[line_key] = LineTranslation(lang=lang, text=text)

    for transliteration in _find_all(itunes_meta, "transliteration"):
        lang = _attr(transliteration, XML_NS, "lang")
        for text_el in _find_all(transliteration, "text"):
            line_key = text_el.get("for")
            syllables = _collect_syllables(text_el, offset_ms, separate)
            if line_key and syllables:
                transliterations[line_key] = LineTransliteration(
                    lang=lang,
                    text="".join(s.text for s in syllables).strip(),
                    syllables=syllables,
                )

    return translations, transliterations


def _has_timed_spans(p: ET.Element) -> bool:
    return any(_local(el.tag) == "span" and el.get("begin") for el in p.iter())


def parse_ttml(ttml: str, offset_ms: int = 0, separate: bool = False) -> LyricDocument | None:
    """Parse a TTML document into the canonical form.

    ``itunes:timing`` on the root picks Word (default) or Line sync. Word sync
    paragraphs with timed spans become one syllable per span; paragraphs that
    only carry their own ``begin``/``end`` become a single whole-line syllable.
    Returns None when the markup cannot be parsed.
    """
    if not isinstance(ttml, str) or not ttml.strip():
        return None
    try:
        root = ET.fromstring(ttml)
    except (ET.ParseError, ValueError) as e:
        logger.error("Failed to parse TTML: %s", e)
        return None

    timing = (_attr(root, ITUNES_NS, "timing") or "Word").lower()
    sync_type = "Line" if timing == "line" else "Word"

    head = _find(root, "head")
    itunes_meta = _itunes_metadata(head)
    title_el = _find(head, "title")
    translations, transliterations = _parse_side_channels(itunes_meta, offset_ms, separate)

    body = _find(root, "body")
    lines: list[LyricLine] = []
    for div in _find_all(body if body is not None else root, "div"):
        song_part = _attr(div, ITUNES_NS, "song-part") or _attr(div, ITUNES_NS, "songPart") or ""
        for p in _find_all(div, "p"):
            key = _attr(p, ITUNES_NS, "key") or ""
            element = LineElement(
                key=key,
                song_part=song_part,
                singer_alias=_voice_alias(_attr(p, TTM_NS, "agent") or ""),
            )

            if sync_type == "Word" and _has_timed_spans(p):
                syllables = _collect_syllables(p, offset_ms, separate)
                text = "".join(s.text for s in syllables).strip()
            else:
                begin, end = p.get("begin"), p.get("end")
                text = _text_of(p)
                if begin is None or end is None or not text:
                    continue
                start = clock_to_ms(begin)
                syllables = [Syllable(
                    start_ms=max(0, start + offset_ms),
                    duration_ms=max(0, clock_to_ms(end) - start),
                    text=text,
                )]

            if not syllables:
                continue
            try:
                lines.append(LyricLine(
                    text=text,
                    syllables=syllables,
                    element=element,
                    translation=translations.get(key),
                    transliteration=transliterations.get(key),
                ))
            except ValidationError as e:
                logger.debug("Skipping malformed line %s: %s", key, e)

    title = _text_of(title_el) if title_el is not None else ""
    metadata = LyricsMetadata(
        source="Apple Music",
        title=title or None,
        language=_attr(root, XML_NS, "lang"),
        leading_silence=itunes_meta.get("leadingSilence") if itunes_meta is not None else None,
        songwriters=[_text_of(el) for el in _find_all(itunes_meta, "songwriter") if _text_of(el)],
        agents=_parse_agents(head),
    )
    return LyricDocument(sync_type=sync_type, metadata=metadata, lines=lines)


# ── Serialization ─────────────────────────────────────────────


def _agents_for(document: LyricDocument) -> dict[str, Agent]:
    """Declared agents plus a synthesized one for every undeclared singer.

    Aliases ending in ``000`` (``v1000``) denote groups.
    """
    agents = dict(document.metadata.agents)
    known = {agent.alias for agent in agents.values()}
    for line in document.lines:
        alias = line.element.singer_alias
        if not alias or alias in known:
            continue
        number = alias[1:] if alias.startswith("v") else alias
        is_group = alias.endswith("000")
        agents.setdefault(f"voice{number}", Agent(
            type="group" if is_group else "person",
            name=f"Group {number}" if is_group else f"Singer {number}",
            alias=alias,
        ))
        known.add(alias)
    return agents


def _agent_id(agents: dict[str, Agent], alias: str) -> str:
    if not alias:
        return "voice1"
    for agent_id, agent in agents.items():
        if agent.alias == alias:
            return agent_id
    return f"voice{alias[1:]}" if alias.startswith("v") else alias


def _timed(ns_tag: str, start_ms: int, end_ms: int, **attrs: str) -> ET.Element:
    return ET.Element(ns_tag, {"begin": ms_to_clock(start_ms), "end": ms_to_clock(end_ms), **attrs})


def _append_syllable(parent: ET.Element, syllable: Syllable) -> None:
    text = syllable.text.rstrip()
    span = _timed(_q(TT_NS, "span"), syllable.start_ms, syllable.end_ms)
    span.text = text
    span.tail = syllable.text[len(text):] or None
    parent.append(span)


def _song_part_runs(lines: list[LyricLine]) -> list[list[LyricLine]]:
    runs: list[list[LyricLine]] = []
    for line in lines:
        if runs and runs[-1][0].element.song_part == line.element.song_part:
            runs[-1].append(line)
        else:
            runs.append([line])
    return runs


def _build_head(root: ET.Element, document: LyricDocument, agents: dict[str, Agent]) -> None:
    meta = document.metadata
    head = ET.SubElement(root, _q(TT_NS, "head"))
    metadata = ET.SubElement(head, _q(TT_NS, "metadata"))
    if meta.title:
        ET.SubElement(metadata, _q(TTM_NS, "title")).text = meta.title
    for agent_id, agent in agents.items():
        agent_el = ET.SubElement(metadata, _q(TTM_NS, "agent"), {
            "type": agent.type,
            _q(XML_NS, "id"): agent_id,
        })
        if agent.name:
            ET.SubElement(agent_el, _q(TTM_NS, "name"), {"type": "full"}).text = agent.name

    itunes = ET.SubElement(metadata, _q(ITUNES_NS, "iTunesMetadata"), {
        "leadingSilence": meta.leading_silence or DEFAULT_LEADING_SILENCE,
    })
    if meta.songwriters:
        writers = ET.SubElement(itunes, _q(ITUNES_NS, "songwriters"))
        for name in meta.songwriters:
            ET.SubElement(writers, _q(ITUNES_NS, "songwriter")).text = name

    by_lang: dict[str | None, list[LyricLine]] = {}
    for line in document.lines:
        if line.translation is not None and line.element.key:
            by_lang.setdefault(line.translation.lang, []).append(line)
    if by_lang:
        translations = ET.SubElement(itunes, _q(ITUNES_NS, "translations"))
        for lang, lines in by_lang.items():
            attrs = {_q(XML_NS, "lang"): lang} if lang else {}
            translation = ET.SubElement(translations, _q(ITUNES_NS, "translation"), attrs)
            for line in lines:
                ET.SubElement(translation, _q(ITUNES_NS, "text"), {"for": line.element.key}).text = (
                    line.translation.text
                )


def serialize_ttml(document: LyricDocument) -> str:
    """Render a canonical document as TTML.

    Contiguous lines sharing a song part become one ``div``. Word sync lines
    emit one span per syllable, background syllables first inside their own
    ``x-bg`` wrapper; Line sync lines carry their text directly.
    """
    agents = _agents_for(document)
    root_attrs = {_q(ITUNES_NS, "timing"): document.sync_type}
    if document.metadata.language:
        root_attrs[_q(XML_NS, "lang")] = document.metadata.language
    root = ET.Element(_q(TT_NS, "tt"), root_attrs)
    _build_head(root, document, agents)

    last_end = max((line.end_ms for line in document.lines), default=0)
    body = ET.SubElement(root, _q(TT_NS, "body"), {"dur": ms_to_clock(last_end)})

    for run in _song_part_runs(list(document.lines)):
        div_attrs = {}
        if run[0].element.song_part:
            div_attrs[_q(ITUNES_NS, "song-part")] = run[0].element.song_part
        div = _timed(
            _q(TT_NS, "div"),
            min(line.start_ms for line in run),
            max(line.end_ms for line in run),
            **div_attrs,
        )
        body.append(div)

        for line in run:
            p_attrs = {_q(TTM_NS, "agent"): _agent_id(agents, line.element.singer_alias)}
            if line.element.key:
                p_attrs[_q(ITUNES_NS, "key")] = line.element.key
            p = _timed(_q(TT_NS, "p"), line.start_ms, line.end_ms, **p_attrs)
            div.append(p)

            if document.sync_type == "Line" or not line.syllables:
                p.text = line.text
                continue

            background = [s for s in line.syllables if s.is_background_vocal]
            if background:
                wrapper = ET.SubElement(p, _q(TT_NS, "span"), {_q(TTM_NS, "role"): BACKGROUND_ROLE})
                for syllable in background:
                    _append_syllable(wrapper, syllable)
            for syllable in line.syllables:
                if not syllable.is_background_vocal:
                    _append_syllable(p, syllable)

    return ET.tostring(root, encoding="unicode")
