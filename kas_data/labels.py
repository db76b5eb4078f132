"""
Label and period normalizers used by the table fetchers.

ASKdata publishes labels in Albanian, sometimes in upper case and with
stray whitespace; periods come as ``2024M01`` or ``202401``.  These helpers
turn them into the stable keys and labels the charting code expects.
"""

from __future__ import annotations

import re
import unicodedata
from typing import NamedTuple, Optional


def normalize_whitespace(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", str(text or "")).strip()


def slugify_label(text: str) -> str:
    slug = re.sub(r"[^0-9a-z]+", "_", text.lower().strip())
    slug = re.sub(r"_+", "_", slug).strip("_")
    return slug or "value"


def normalize_ym(code: str) -> str:
    """``202401`` / ``2024M01`` / ``2024M1`` → ``2024-01``; others unchanged."""
    if re.fullmatch(r"\d{6}", code):
        return f"{code[:4]}-{code[4:]}"
    if "M" in code:
        year, _, month = code.partition("M")
        if not month:
            return year
        return f"{year}-{month.zfill(2)}"
    return code


_ROMAN_QUARTERS = {"I": 1, "II": 2, "III": 3, "IV": 4}


def normalize_quarter_code(label: str) -> str:
    """``TM1`` / ``T1`` / ``Q1`` / ``Tremujori I`` → ``Q1``; others unchanged."""
    text = normalize_whitespace(label)
    match = re.search(r"\b(?:TM|T|Q)\s*([1-4])\b", text, flags=re.IGNORECASE)
    if match is None:
        match = re.search(r"(?<!\d)([1-4])(?!\d)", text)
    if match is not None:
        return f"Q{match.group(1)}"
    roman = re.search(r"\b(IV|III|II|I)\b", text.upper())
    if roman is not None:
        return f"Q{_ROMAN_QUARTERS[roman.group(1)]}"
    return text


def normalize_quarter_period(label: str) -> str:
    """``2024 TM1`` / ``2024Q1`` → ``2024-Q1``; labels without a year are unchanged."""
    text = normalize_whitespace(label)
    year = re.search(r"(?<!\d)(\d{4})(?!\d)", text)
    if year is None:
        return text
    rest = f"{text[:year.start()]} {text[year.end():]}"
    quarter = normalize_quarter_code(rest)
    if re.fullmatch(r"Q[1-4]", quarter):
        return f"{year.group(1)}-{quarter}"
    return text


def strip_code_prefix(label: str) -> str:
    """Drop a leading classification code: ``1.1 Materiali`` → ``Materiali``."""
    text = normalize_whitespace(label)
    stripped = re.sub(r"^[A-Z]{0,3}\.?\d+(?:\.\d+)*[A-Za-z]?\s*[.:)\-]?\s+", "", text)
    return stripped or text


def _strip_accents(text: str) -> str:
    return "".join(
        ch for ch in unicodedata.normalize("NFD", text) if unicodedata.category(ch) != "Mn"
    )


def normalize_fuel_field(label: str) -> str:
    """Map a fuel balance row label (English or Albanian) to its metric key."""
    normalized = _strip_accents(label).lower()
    if ("ready" in normalized and "market" in normalized) or (
        "gatshme" in normalized and "treg" in normalized
    ):
        return "ready_for_market"
    if "production" in normalized or "prodhim" in normalized:
        return "production"
    if "import" in normalized:
        return "import"
    if "export" in normalized or "eksport" in normalized:
        return "export"
    if "stock" in normalized or "stok" in normalized:
        return "stock"
    return slugify_label(label)


def normalize_group_label(label: str) -> str:
    """Visitor group: ``Gjithsej`` → total, ``Vendor`` → local, ``Jashtëm`` → external."""
    lowered = normalize_whitespace(label).lower()
    if lowered.startswith("gjith"):
        return "total"
    if lowered.startswith("ven"):
        return "local"
    if "jasht" in lowered:
        return "external"
    return slugify_label(label)


PARTNER_LABEL_OVERRIDES = {
    "CW:": "Kurasao",
    "ME:ME : Montenegro": "Mali i Zi",
    "QU:": "E panjohur (QU)",
    "UE:": "Emiratet e Bashkuara",
    "XC:XC: CEUTA": "Seuta",
    "XL:XL:MELILLA": "Melija",
    "XX:": "E panjohur (XX)",
    "XY:": "E panjohur (XY)",
    "XZ:": "E panjohur (XZ)",
    "XS:SERBIA 06/2005": "Serbia",
    "XS:Serbia 06/2005": "Serbia",
    "Serbia 06/2005": "Serbia",
    "YU:": "Serbia dhe Mali i Zi",
    "ZZ:": "E panjohur (ZZ)",
}


def format_partner_name(partner: str) -> str:
    """Readable trade partner name from a ``CODE:NAME`` label."""
    if not partner:
        return "E panjohur"
    if partner == "Other":
        return "Të tjerët"
    override = PARTNER_LABEL_OVERRIDES.get(partner)
    if override:
        return override
    label = partner
    for sep in (":", "-"):
        idx = label.find(sep)
        if idx >= 0 and idx + 1 < len(label):
            label = label[idx + 1:]
            break
    label = label.replace("_", " ").strip()
    if not label:
        return partner
    titled = re.sub(
        r"(^|[\s,/&-])(\w)",
        lambda m: m.group(1) + m.group(2).upper(),
        label.lower(),
    )
    titled = normalize_whitespace(titled).split(",")[0]
    return titled or partner


# ---------------------------------------------------------------------------
# Trade chapters
# ---------------------------------------------------------------------------

UPPERCASE_WORDS = {"FOB", "CIF", "EU", "USA", "UK", "VAT"}
_MINOR_WORDS = re.compile(r"\b(And|Or|The|Of|With|For|On|In|By|To|At)\b")


class TradeChapterLabel(NamedTuple):
    code: str
    label: str
    description: str
    title: str
    raw: str


def smart_title_case(word: str) -> str:
    trimmed = word.strip()
    if not trimmed:
        return ""
    alpha = re.sub(r"[^A-Za-z]", "", trimmed)
    if alpha and alpha.upper() in UPPERCASE_WORDS:
        return trimmed.replace(alpha, alpha.upper())
    return trimmed[0].upper() + trimmed[1:].lower()


def beautify_chapter_text(text: str) -> str:
    tokens = re.split(r"(\s+|[,;/()-])", normalize_whitespace(text))
    out = []
    for token in tokens:
        if not token.strip() or (len(token) == 1 and re.search(r"[^A-Za-z]", token)):
            out.append(token)
        else:
            out.append(smart_title_case(token))
    joined = re.sub(r"\s{2,}", " ", "".join(out)).strip()
    return _MINOR_WORDS.sub(lambda m: m.group(0).lower(), joined)


def maybe_beautify_chapter_text(text: str) -> str:
    """Title-case a label only when it is mostly upper case."""
    normalized = normalize_whitespace(text)
    letters = re.sub(r"[^A-Za-zÀ-ÖØ-öø-ÿ]", "", normalized)
    if not letters:
        return normalized
    uppercase = re.findall(r"[A-ZÀ-ÖØ-Þ]", normalized)
    if len(uppercase) / len(letters) >= 0.6:
        return beautify_chapter_text(normalized)
    return normalized


def parse_trade_chapter_label(text: str) -> TradeChapterLabel:
    """Split ``"01 - LIVE ANIMALS"`` into a two-digit code and readable labels."""
    raw = normalize_whitespace(text)
    if not raw:
        return TradeChapterLabel("", "", "", "", "")
    remainder = raw
    code = ""
    leading = re.match(r"^(\d{1,2})\s*([:.-])?\s*", remainder)
    if leading:
        code = leading.group(1).zfill(2)
        remainder = remainder[leading.end():].strip()
    if not code:
        number = re.search(r"\b\d{1,2}\b", remainder) or re.search(r"\b\d{1,2}\b", raw)
        if number:
            code = number.group(0).zfill(2)

    parts = [p.strip() for p in re.split(r"\s*[-–—:]\s*", remainder)]
    title = ""
    if len(parts) > 1:
        title = maybe_beautify_chapter_text(parts[0])
        description = maybe_beautify_chapter_text(" - ".join(parts[1:]))
    else:
        description = maybe_beautify_chapter_text(remainder or raw)
    if not title and code:
        title = f"Kapitulli {int(code)}"
    if not title:
        title = description or raw
    if not description:
        description = title
    label = f"{code} · {description}" if code else description
    return TradeChapterLabel(code, label, description, title, raw)
