"""
tests/test_encoding_detector.py

Pytest unit tests for the encoding detector.

Coverage
--------
- BOM shortcut (UTF-8, UTF-16LE)
- UTF-8, Shift_JIS and EUC-JP Japanese exports without BOM
- Plain ASCII exports
- Undecodable input falls back with replacement and is flagged as garbled
- Text quality signals (replacement characters, control runs, half-width kana)
- Half-width kana, mostly-ASCII and long exports in UTF-8, Shift_JIS and EUC-JP
"""

from __future__ import annotations

import codecs

import pytest

from app.parsing.encoding_detector import (
    FALLBACK_CONFIDENCE,
    EncodingDetector,
    analyze_text_quality,
    detect_and_convert,
)

JAPANESE_CSV = (
    "注文番号,顧客名,金額,住所\n"
    "A-1001,田中太郎,1200,東京都渋谷区神宮前一丁目\n"
    "A-1002,山田花子,3400,大阪府大阪市北区梅田二丁目\n"
)


@pytest.fixture()
def detector() -> EncodingDetector:
    return EncodingDetector()


# ---------------------------------------------------------------------------
# BOM shortcut
# ---------------------------------------------------------------------------


class TestByteOrderMark:
    def test_utf8_bom_is_trusted_and_stripped(self, detector: EncodingDetector) -> None:
        result = detector.detect_and_convert(codecs.BOM_UTF8 + JAPANESE_CSV.encode("utf-8"))

        assert result.detected_encoding == "utf-8"
        assert result.confidence == 1.0
        assert result.bom_detected is True
        assert result.text == JAPANESE_CSV
        assert result.has_garbled_text is False
        assert result.is_likely_localized_script is True

    def test_utf16le_bom(self, detector: EncodingDetector) -> None:
        buffer = codecs.BOM_UTF16_LE + JAPANESE_CSV.encode("utf-16-le")

        result = detector.detect_and_convert(buffer)

        assert result.detected_encoding == "utf-16-le"
        assert result.bom_detected is True
        assert result.text == JAPANESE_CSV


# ---------------------------------------------------------------------------
# Statistical detection
# ---------------------------------------------------------------------------


class TestCandidateScoring:
    def test_utf8_without_bom(self, detector: EncodingDetector) -> None:
        result = detector.detect_and_convert(JAPANESE_CSV.encode("utf-8"))

        assert result.detected_encoding == "utf-8"
        assert result.confidence >= 0.3
        assert result.text == JAPANESE_CSV
        assert result.has_garbled_text is False
        assert result.is_likely_localized_script is True
        assert result.bom_detected is False

    def test_shift_jis_round_trips(self, detector: EncodingDetector) -> None:
        result = detector.detect_and_convert(JAPANESE_CSV.encode("cp932"))

        assert result.detected_encoding == "shift_jis"
        assert result.confidence >= 0.3
        assert result.text == JAPANESE_CSV
        assert result.has_garbled_text is False

    def test_euc_jp_round_trips(self, detector: EncodingDetector) -> None:
        result = detector.detect_and_convert(JAPANESE_CSV.encode("euc_jp"))

        assert result.detected_encoding == "euc-jp"
        assert result.text == JAPANESE_CSV
        assert result.has_garbled_text is False

    def test_ascii_is_reported_as_utf8(self, detector: EncodingDetector) -> None:
        text = "order_id,customer,amount\nX1,Bob,500\n"

        result = detector.detect_and_convert(text.encode("ascii"))

        assert result.detected_encoding == "utf-8"
        assert result.confidence >= 0.3
        assert result.text == text
        assert result.is_likely_localized_script is False

    def test_attempts_are_recorded(self, detector: EncodingDetector) -> None:
        result = detector.detect_and_convert(JAPANESE_CSV.encode("cp932"))

        labels = [attempt.encoding for attempt in result.encoding_attempts]
        assert labels[0] == "utf-8"
        assert result.encoding_attempts[0].success is False
        assert "shift_jis" in labels

    def test_module_level_wrapper(self) -> None:
        result = detect_and_convert(JAPANESE_CSV.encode("utf-8"))
        assert result.text == JAPANESE_CSV


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------


class TestMalformedInput:
    def test_undecodable_bytes_fall_back_with_replacement(self, detector: EncodingDetector) -> None:
        # Latin-1 "café": 0xE9 followed by a comma is invalid in every candidate.
        buffer = b"name,price\ncaf\xe9,100\n"

        result = detector.detect_and_convert(buffer)

        assert result.detected_encoding == "utf-8"
        assert result.confidence == FALLBACK_CONFIDENCE
        assert result.has_garbled_text is True
        assert "\ufffd" in result.text
        assert all(not attempt.success for attempt in result.encoding_attempts)

    def test_empty_buffer_never_raises(self, detector: EncodingDetector) -> None:
        result = detector.detect_and_convert(b"")

        assert result.text == ""
        assert result.has_garbled_text is False


class TestTextQuality:
    def test_replacement_character_is_garbled(self) -> None:
        assert analyze_text_quality("abc\ufffddef").has_garbled_text is True

    def test_control_character_run_is_garbled(self) -> None:
        assert analyze_text_quality("a,b\n\x01\x02\x03,c").has_garbled_text is True

    def test_tabs_and_newlines_are_not_garbled(self) -> None:
        quality = analyze_text_quality("a\tb\r\nc\td\n")
        assert quality.has_garbled_text is False
        assert quality.has_tabular_header is True

    def test_localized_density(self) -> None:
        quality = analyze_text_quality("注文,ab")
        assert quality.localized_density == pytest.approx(2 / 5)
        assert quality.has_non_ascii is True


# ---------------------------------------------------------------------------
# Realistic export content
# ---------------------------------------------------------------------------


EXPORT_HEADER = "注文番号,顧客名,金額,備考\n"

HALFWIDTH_KANA_CSV = EXPORT_HEADER + "".join(
    f"A{index},ﾀﾅｶ ﾀﾛｳ,1200,ｺﾒﾝﾄ ﾅｼ\n" for index in range(30)
)
MOSTLY_ASCII_CSV = EXPORT_HEADER + "".join(
    f"A{index},Tanaka Taro,1200,gift wrap\n" for index in range(30)
)
LONG_CSV = EXPORT_HEADER + "".join(
    f"A{index},田中太郎,{1000 + index},東京都渋谷区神宮前\n" for index in range(2000)
)


class TestExportContentShapes:
    @pytest.mark.parametrize(
        ("codec", "label"),
        [("utf-8", "utf-8"), ("cp932", "shift_jis"), ("euc_jp", "euc-jp")],
    )
    @pytest.mark.parametrize(
        "text",
        [HALFWIDTH_KANA_CSV, MOSTLY_ASCII_CSV, LONG_CSV],
        ids=["halfwidth-kana", "mostly-ascii", "long"],
    )
    def test_valid_encodings_decode_confidently(
        self, detector: EncodingDetector, text: str, codec: str, label: str
    ) -> None:
        result = detector.detect_and_convert(text.encode(codec))

        assert result.detected_encoding == label
        assert result.text == text
        assert result.confidence >= 0.3
        assert result.has_garbled_text is False

    def test_halfwidth_kana_counts_as_japanese_text(self) -> None:
        quality = analyze_text_quality("ﾀﾅｶ ﾀﾛｳ")

        assert quality.localized_density == 1.0
        assert quality.mojibake_ratio == 0.0

    def test_halfwidth_kana_fused_to_kanji_is_mojibake(self) -> None:
        quality = analyze_text_quality("注文ｱｲ")

        assert quality.mojibake_ratio == pytest.approx(0.25)
