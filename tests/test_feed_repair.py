"""Tests for the XML feed repair ladder."""

from __future__ import annotations

import codecs

import feedparser
import pytest

from src.extractors import feed_repair
from src.extractors.feed_repair import FeedParseState

BROKEN_FEED = (
    "<rss version=\"2.0\"><channel><title>News & Views</title>"
    "<item><title>Q&A session</title><link>https://example.com/a</link>"
    "<description>Rock & roll</description></item></channel></rss>"
)


def test_detect_encoding_prefers_header_then_declaration():
    payload = '<?xml version="1.0" encoding="ISO-8859-1"?><rss></rss>'.encode("latin-1")
    assert feed_repair.detect_encoding(payload, "text/xml; charset=utf-8") == "utf-8"
    assert feed_repair.detect_encoding(payload, None) == "iso8859-1"


def test_detect_encoding_utf16_bom():
    payload = codecs.BOM_UTF16_LE + "<rss></rss>".encode("utf-16-le")
    assert feed_repair.detect_encoding(payload) == "utf-16"


SPANISH_ITEM = (
    "<rss><channel><title>Noticias de ciencia</title><item>"
    "<title>La investigación sobre el océano avanzó más rápido este año</title>"
    "<description>Científicos de Perú y Chile publicaron un análisis común "
    "sobre la pesquería, la migración y la energía mareomotriz.</description>"
    "</item></channel></rss>"
)

RUSSIAN_ITEM = (
    "<rss><channel><title>Новости науки и техники сегодня</title><item>"
    "<title>Учёные рассказали о новых исследованиях в области физики</title>"
    "<description>Российские исследователи опубликовали результаты работы "
    "над новым материалом, который может изменить производство солнечных "
    "батарей и сделать их значительно дешевле для потребителей.</description>"
    "</item></channel></rss>"
)


def test_detect_encoding_reads_latin1_without_hints():
    payload = SPANISH_ITEM.encode("latin-1")
    text = feed_repair.decode_payload(payload)
    assert "investigación" in text
    assert "Científicos de Perú" in text


def test_detect_encoding_reads_cp1251_without_hints():
    payload = RUSSIAN_ITEM.encode("cp1251")
    text = feed_repair.decode_payload(payload)
    assert "Новости науки" in text
    assert "Учёные" in text


def test_fallback_list_keeps_latin1_last(monkeypatch):
    monkeypatch.setattr(
        feed_repair.chardet, "detect", lambda raw: {"encoding": None, "confidence": 0.0}
    )
    western = "<rss><title>Café</title></rss>".encode("cp1252")
    assert feed_repair.detect_encoding(western) == "cp1252"

    # 0x81 is unassigned in windows-1252
    undefined = b"<rss><title>\x81</title></rss>"
    assert feed_repair.detect_encoding(undefined) == "iso8859-1"


def test_strip_bom_and_leading_garbage():
    assert feed_repair.strip_bom("\ufeff<rss/>") == "<rss/>"
    assert feed_repair.strip_bom("ï»¿<rss/>") == "<rss/>"
    assert feed_repair.strip_leading_garbage("  \x00junk text <rss/>") == "<rss/>"
    assert feed_repair.strip_leading_garbage("<?xml version='1.0'?><rss/>").startswith("<?xml")


def test_escape_bare_ampersands_preserves_entities_cdata_and_comments():
    text = (
        "<a>Q&A &amp; &#169; &#xA9; &lt;</a>"
        "<![CDATA[raw & untouched]]><!-- a & b -->"
    )
    escaped = feed_repair.escape_bare_ampersands(text)
    assert "Q&amp;A" in escaped
    assert "&amp;amp;" not in escaped
    assert "&#169;" in escaped and "&#xA9;" in escaped and "&lt;" in escaped
    assert "<![CDATA[raw & untouched]]>" in escaped
    assert "<!-- a & b -->" in escaped


def test_normalize_declaration_rewrites_encoding():
    text = "<?xml version='1.1' encoding='GBK' standalone='yes'?><rss/>"
    assert feed_repair.normalize_declaration(text) == (
        '<?xml version="1.1" encoding="UTF-8" standalone="yes"?><rss/>'
    )


def test_normalize_declaration_inserts_missing_one():
    normalized = feed_repair.normalize_declaration("<feed></feed>")
    assert normalized.startswith(feed_repair.XML_DECLARATION)
    assert feed_repair.normalize_declaration("<html></html>") == "<html></html>"


def test_preprocess_fixes_bom_ampersands_and_missing_declaration():
    raw = codecs.BOM_UTF8 + BROKEN_FEED.encode("utf-8")
    repaired = feed_repair.preprocess(raw, "application/rss+xml")

    assert repaired.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "News &amp; Views" in repaired
    assert "Q&amp;A session" in repaired

    parsed = feedparser.parse(repaired.encode("utf-8"))
    assert [entry.title for entry in parsed.entries] == ["Q&A session"]


def test_preprocess_is_idempotent():
    once = feed_repair.preprocess(codecs.BOM_UTF8 + BROKEN_FEED.encode("utf-8"))
    assert feed_repair.preprocess(once) == once


def test_repair_levels_strip_progressively():
    raw = '<rss><title>Bad\x07 Café</title></rss>'.encode("utf-8")
    assert "\x07" in feed_repair.repair(raw, 1)
    level_two = feed_repair.repair(raw, 2)
    assert "\x07" not in level_two and "Café" in level_two
    assert "Caf" in feed_repair.repair(raw, 3) and "é" not in feed_repair.repair(raw, 3)
    with pytest.raises(ValueError):
        feed_repair.repair(raw, 4)


def test_is_valid_xml():
    assert feed_repair.is_valid_xml('<?xml version="1.0"?><rss/>')
    assert feed_repair.is_valid_xml("<feed></feed>")
    assert not feed_repair.is_valid_xml("")
    assert not feed_repair.is_valid_xml("plain text")
    assert not feed_repair.is_valid_xml("<html><body/></html>")


def test_parse_state_escalates_until_exhausted():
    state = FeedParseState(raw=BROKEN_FEED.encode("utf-8"), content_type="text/xml")
    levels = []
    while not state.exhausted:
        state.escalate()
        levels.append(state.repair_level)
    assert levels == [1, 2, 3]
    assert state.encoding == "utf-8"
    with pytest.raises(ValueError):
        state.escalate()
