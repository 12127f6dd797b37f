"""
app/parsing/encoding_detector.py

Byte-encoding inference and decoding for Japanese order exports.

Upstream platforms export CSVs as Shift_JIS (Color Me Shop default), UTF-8
(Tabechoku, recent Excel) and occasionally EUC-JP, ISO-2022-JP or UTF-16.
No charset metadata accompanies the upload, so every candidate is decoded
strictly and scored; the best-scoring decode wins.
"""

from __future__ import annotations

import codecs
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

import chardet

from app.domain.order_ingestion import EncodingAttempt, EncodingDetectionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodingCandidate:
    """
    One encoding to try: the user-facing label and the Python codec.
    """

    label: str
    codec: str
    requires_nul: bool = False


# Declaration order is the tie-break order.
DEFAULT_CANDIDATES: tuple[EncodingCandidate, ...] = (
    EncodingCandidate("utf-8", "utf-8"),
    # cp932 is the Windows superset Color Me Shop actually writes (①, ㈱, ...).
    EncodingCandidate("shift_jis", "cp932"),
    EncodingCandidate("euc-jp", "euc_jp"),
    EncodingCandidate("iso-2022-jp", "iso2022_jp"),
    # Without a BOM, UTF-16 is only plausible when the buffer holds NUL bytes
    # (every ASCII delimiter encodes as a byte pair with a zero half).
    EncodingCandidate("utf-16-le", "utf-16-le", requires_nul=True),
    EncodingCandidate("utf-16-be", "utf-16-be", requires_nul=True),
)

_BOMS: tuple[tuple[bytes, EncodingCandidate], ...] = (
    (codecs.BOM_UTF8, EncodingCandidate("utf-8", "utf-8")),
    (codecs.BOM_UTF16_LE, EncodingCandidate("utf-16-le", "utf-16-le")),
    (codecs.BOM_UTF16_BE, EncodingCandidate("utf-16-be", "utf-16-be")),
)

# chardet label -> candidate label
_CHARDET_ALIASES: dict[str, str] = {
    "ascii": "utf-8",
    "utf-8": "utf-8",
    "utf-8-sig": "utf-8",
    "shift-jis": "shift_jis",
    "shift_jis": "shift_jis",
    "cp932": "shift_jis",
    "windows-31j": "shift_jis",
    "euc-jp": "euc-jp",
    "iso-2022-jp": "iso-2022-jp",
    "utf-16le": "utf-16-le",
    "utf-16be": "utf-16-be",
}

_FULLWIDTH_SCRIPT = r"\u3040-\u309F\u30A0-\u30FF\u3400-\u4DBF\u4E00-\u9FFF"
_HALFWIDTH_KANA = r"\uFF61-\uFF9F"

# Half-width katakana is ordinary text in kana names and notes.
_LOCALIZED_CHAR = re.compile(rf"[{_FULLWIDTH_SCRIPT}{_HALFWIDTH_KANA}]")
_MOJIBAKE_CHAR = re.compile(r"[\u0080-\u009F\uE000-\uF8FF]")
# A wrong multi-byte decode fuses half-width kana directly onto full-width
# script; real exports keep the two widths apart.
_FUSED_HALFWIDTH_KANA = re.compile(
    rf"(?<=[{_FULLWIDTH_SCRIPT}])[{_HALFWIDTH_KANA}]|[{_HALFWIDTH_KANA}](?=[{_FULLWIDTH_SCRIPT}])"
)
_REPLACEMENT_CHAR = "\ufffd"
_CONTROL_RUN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]{3,}")
_DELIMITERS = (",", "\t", ";")

FALLBACK_CONFIDENCE = 0.1
LOCALIZED_DENSITY_THRESHOLD = 0.05

_WEIGHT_VALIDITY = 0.45
_WEIGHT_DENSITY = 0.25
_WEIGHT_STRUCTURE = 0.2
_BASE_SCORE = 0.1
_UNCONFIRMED_VALIDITY = 0.3
_MOJIBAKE_PENALTY = 0.5
_GARBLED_PENALTY = 0.3
_NUL_PENALTY = 0.4


@dataclass(frozen=True)
class TextQuality:
    """
    Signals computed from one tentative decode.
    """

    localized_density: float
    mojibake_ratio: float
    has_garbled_text: bool
    has_nul: bool
    has_tabular_header: bool
    has_non_ascii: bool


def analyze_text_quality(text: str) -> TextQuality:
    """
    Measure localized-script density, mojibake markers and garbling.
    """

    visible = [ch for ch in text if not ch.isspace()]
    visible_count = len(visible)
    localized = len(_LOCALIZED_CHAR.findall(text))
    non_ascii = sum(1 for ch in visible if ord(ch) > 0x7F)
    mojibake = len(_MOJIBAKE_CHAR.findall(text)) + len(_FUSED_HALFWIDTH_KANA.findall(text))

    first_line = text.split("\n", 1)[0]
    return TextQuality(
        localized_density=(localized / visible_count) if visible_count else 0.0,
        mojibake_ratio=(mojibake / non_ascii) if non_ascii else 0.0,
        has_garbled_text=_REPLACEMENT_CHAR in text or bool(_CONTROL_RUN.search(text)),
        has_nul="\x00" in text,
        has_tabular_header=any(delimiter in first_line for delimiter in _DELIMITERS),
        has_non_ascii=non_ascii > 0,
    )


class EncodingDetector:
    """
    Infers the byte encoding of an upload and returns decoded text.
    """

    def __init__(
        self,
        *,
        candidates: Sequence[EncodingCandidate] | None = None,
        sample_bytes: int = 256 * 1024,
        sample_chars: int = 64 * 1024,
    ) -> None:
        self._candidates = tuple(candidates or DEFAULT_CANDIDATES)
        self._sample_bytes = max(1024, sample_bytes)
        self._sample_chars = max(1024, sample_chars)

    def detect_and_convert(self, buffer: bytes) -> EncodingDetectionResult:
        """
        Detect the encoding of ``buffer`` and decode it.

        Never raises on malformed byte sequences: undecodable input falls back
        to UTF-8 with replacement characters and is flagged as garbled.
        """

        bom_result = self._decode_with_bom(buffer)
        if bom_result is not None:
            return bom_result

        statistical_label, statistical_confidence = self._statistical_guess(buffer)

        attempts: list[EncodingAttempt] = []
        best: tuple[float, EncodingCandidate, str, TextQuality] | None = None

        for candidate in self._candidates:
            if candidate.requires_nul and b"\x00" not in buffer:
                attempts.append(
                    EncodingAttempt(
                        encoding=candidate.label,
                        success=False,
                        error="skipped: no NUL bytes",
                    )
                )
                continue
            try:
                text = buffer.decode(candidate.codec)
            except UnicodeDecodeError as exc:
                attempts.append(
                    EncodingAttempt(encoding=candidate.label, success=False, error=str(exc)[:200])
                )
                continue

            quality = analyze_text_quality(text[: self._sample_chars])
            score = self._score(
                candidate=candidate,
                quality=quality,
                statistical_label=statistical_label,
                statistical_confidence=statistical_confidence,
            )
            attempts.append(EncodingAttempt(encoding=candidate.label, success=True, score=score))
            if best is None or score > best[0]:
                best = (score, candidate, text, quality)

        if best is None:
            text = buffer.decode("utf-8", errors="replace")
            quality = analyze_text_quality(text[: self._sample_chars])
            logger.warning(
                "No candidate encoding decoded the upload strictly; falling back to utf-8 "
                "with replacement (bytes=%d)",
                len(buffer),
            )
            return EncodingDetectionResult(
                detected_encoding="utf-8",
                confidence=FALLBACK_CONFIDENCE,
                text=text,
                is_likely_localized_script=quality.localized_density >= LOCALIZED_DENSITY_THRESHOLD,
                has_garbled_text=quality.has_garbled_text,
                encoding_attempts=tuple(attempts),
            )

        score, candidate, text, quality = best
        logger.debug(
            "Encoding detected encoding=%s confidence=%.3f statistical=%s(%.2f) density=%.3f",
            candidate.label,
            score,
            statistical_label,
            statistical_confidence,
            quality.localized_density,
        )
        return EncodingDetectionResult(
            detected_encoding=candidate.label,
            confidence=score,
            text=text,
            is_likely_localized_script=quality.localized_density >= LOCALIZED_DENSITY_THRESHOLD,
            has_garbled_text=quality.has_garbled_text,
            encoding_attempts=tuple(attempts),
        )

    def _decode_with_bom(self, buffer: bytes) -> EncodingDetectionResult | None:
        for bom, candidate in _BOMS:
            if not buffer.startswith(bom):
                continue
            text = buffer[len(bom) :].decode(candidate.codec, errors="replace")
            quality = analyze_text_quality(text[: self._sample_chars])
            return EncodingDetectionResult(
                detected_encoding=candidate.label,
                confidence=1.0,
                text=text,
                is_likely_localized_script=quality.localized_density >= LOCALIZED_DENSITY_THRESHOLD,
                has_garbled_text=quality.has_garbled_text,
                bom_detected=True,
                encoding_attempts=(EncodingAttempt(encoding=candidate.label, success=True, score=1.0),),
            )
        return None

    def _statistical_guess(self, buffer: bytes) -> tuple[str | None, float]:
        if not buffer:
            return None, 0.0
        guess = chardet.detect(buffer[: self._sample_bytes])
        raw_label = guess.get("encoding")
        if not raw_label:
            return None, 0.0
        label = _CHARDET_ALIASES.get(raw_label.strip().lower().replace("_", "-"))
        confidence = float(guess.get("confidence") or 0.0)
        return label, confidence

    @staticmethod
    def _score(
        *,
        candidate: EncodingCandidate,
        quality: TextQuality,
        statistical_label: str | None,
        statistical_confidence: float,
    ) -> float:
        if candidate.codec == "utf-8" and quality.has_non_ascii:
            # Random non-UTF-8 bytes almost never form valid multi-byte UTF-8.
            validity = 1.0
        elif candidate.label == statistical_label:
            validity = statistical_confidence
        else:
            validity = _UNCONFIRMED_VALIDITY

        score = _BASE_SCORE
        score += _WEIGHT_VALIDITY * validity
        score += _WEIGHT_DENSITY * min(1.0, quality.localized_density * 4)
        if quality.has_tabular_header:
            score += _WEIGHT_STRUCTURE
        score -= _MOJIBAKE_PENALTY * quality.mojibake_ratio
        if quality.has_garbled_text:
            score -= _GARBLED_PENALTY
        if quality.has_nul:
            score -= _NUL_PENALTY
        return round(max(0.0, min(1.0, score)), 4)


def detect_and_convert(buffer: bytes) -> EncodingDetectionResult:
    """
    Module-level convenience wrapper around a default EncodingDetector.
    """

    return EncodingDetector().detect_and_convert(buffer)
