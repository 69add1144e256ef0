"""텍스트 언어 식별 + 인식 언어 힌트.

문자 체계(Unicode 이름)로 먼저 가르고, 라틴 문자는 불용어 빈도로 나눈다.

  한글          → ko
  가나          → ja (한자가 섞여 있어도 가나가 있으면 일본어)
  한자          → zh-Hans / zh-Hant (간체·번체 전용 글자 수 비교)
  키릴          → ru
  아랍          → ar
  타이          → th
  라틴          → en, fr, de, es, it, pt

반환값은 BCP-47 형식의 짧은 태그다. 판단할 수 없으면 None.
"""

from __future__ import annotations
import re
import unicodedata
from collections import Counter
from typing import Optional


# 인식 힌트가 없을 때 쓰는 우선순위 목록 (한국어 우선)
DEFAULT_RECOGNITION_LANGUAGES = [
    "ko-KR",
    "en-US",
    "ja-JP",
    "zh-Hans",
    "zh-Hant",
    "fr-FR",
    "de-DE",
    "es-ES",
    "it-IT",
    "pt-BR",
    "ru-RU",
    "ar-SA",
    "th-TH",
]

_RECOGNITION_HINTS = {
    "ko": ["ko-KR", "en-US"],
    "ja": ["ja-JP", "en-US"],
    "zh-Hans": ["zh-Hans", "en-US"],
    "zh-Hant": ["zh-Hant", "en-US"],
    "fr": ["fr-FR", "en-US"],
    "de": ["de-DE", "en-US"],
    "es": ["es-ES", "en-US"],
    "it": ["it-IT", "en-US"],
    "pt": ["pt-BR", "en-US"],
    "ru": ["ru-RU", "en-US"],
    "ar": ["ar-SA", "en-US"],
    "th": ["th-TH", "en-US"],
}

# Unicode 문자 이름 접두사 → 문자 체계
_SCRIPT_PREFIXES = (
    ("HANGUL", "hangul"),
    ("HIRAGANA", "kana"),
    ("KATAKANA", "kana"),
    ("CJK UNIFIED IDEOGRAPH", "han"),
    ("CJK COMPATIBILITY IDEOGRAPH", "han"),
    ("CYRILLIC", "cyrillic"),
    ("ARABIC", "arabic"),
    ("THAI", "thai"),
    ("LATIN", "latin"),
)

_SCRIPT_LANGUAGE = {
    "hangul": "ko",
    "cyrillic": "ru",
    "arabic": "ar",
    "thai": "th",
}

# 간체/번체 전용 글자 일부. 흔한 글자 위주.
_SIMPLIFIED_ONLY = set("这个们来时说国对发会经过还从进动为学样电话现后见长门问间关东车认边让气书张应报语读师钱铁")
_TRADITIONAL_ONLY = set("這個們來時說國對發會經過還從進動為學樣電話現後見長門問間關東車認邊讓氣書張應報語讀師錢鐵")

# 라틴 문자 언어 구분용 불용어
_STOPWORDS = {
    "en": {"the", "and", "of", "to", "in", "is", "that", "for", "it", "with",
           "as", "was", "on", "are", "this", "be", "by", "or", "from", "you"},
    "fr": {"le", "la", "les", "et", "des", "est", "une", "un", "du", "que",
           "dans", "pour", "pas", "sur", "qui", "au", "avec", "ce", "sont", "nous"},
    "de": {"der", "die", "und", "das", "ist", "nicht", "ein", "eine", "zu", "den",
           "mit", "von", "sie", "auf", "für", "ich", "sich", "dem", "des", "auch"},
    "es": {"el", "los", "las", "y", "es", "que", "en", "del", "una", "por",
           "con", "para", "se", "al", "como", "pero", "su", "más", "lo", "muy"},
    "it": {"il", "di", "che", "è", "e", "la", "per", "non", "sono", "gli",
           "una", "del", "della", "con", "da", "ma", "come", "anche", "questo", "nel"},
    "pt": {"o", "os", "de", "que", "e", "do", "da", "em", "um", "uma",
           "para", "não", "com", "por", "mais", "dos", "como", "mas", "ao", "são"},
}

# 불용어가 겹칠 때 보조로 쓰는 특징 문자
_MARKER_CHARS = {
    "fr": set("çœàèùêâîôë"),
    "de": set("äöüß"),
    "es": set("ñ¿¡"),
    "it": set("ìò"),
    "pt": set("ãõç"),
}

_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)


def _script_of(ch: str) -> Optional[str]:
    try:
        name = unicodedata.name(ch)
    except ValueError:
        return None
    for prefix, script in _SCRIPT_PREFIXES:
        if name.startswith(prefix):
            return script
    return None


def _classify_han(text: str) -> str:
    simplified = sum(1 for ch in text if ch in _SIMPLIFIED_ONLY)
    traditional = sum(1 for ch in text if ch in _TRADITIONAL_ONLY)
    return "zh-Hant" if traditional > simplified else "zh-Hans"


def _classify_latin(text: str) -> str:
    words = [w.lower() for w in _WORD_RE.findall(text)]
    scores = Counter()
    for lang, stopwords in _STOPWORDS.items():
        scores[lang] = sum(1 for w in words if w in stopwords)

    lowered = text.lower()
    for lang, markers in _MARKER_CHARS.items():
        scores[lang] += sum(2 for ch in lowered if ch in markers)

    if not scores or max(scores.values()) == 0:
        return "en"
    # 동점이면 영어 우선
    best = max(scores.values())
    if scores["en"] == best:
        return "en"
    return scores.most_common(1)[0][0]


def identify_language(text: str) -> Optional[str]:
    """텍스트의 주 언어를 추정한다.

    입력: 인식된 텍스트 (일부 샘플이어도 된다)
    출력: "ko", "ja", "zh-Hans", "zh-Hant", "ru", "ar", "th",
          "en", "fr", "de", "es", "it", "pt" 중 하나. 문자가 없으면 None.
    """
    if not text or not text.strip():
        return None

    counts = Counter()
    for ch in text:
        if ch.isspace():
            continue
        script = _script_of(ch)
        if script:
            counts[script] += 1

    if not counts:
        return None

    script, _ = counts.most_common(1)[0]
    # 한자 위주 텍스트에 가나가 하나라도 섞이면 일본어
    if script in ("han", "kana") and counts["kana"]:
        return "ja"
    if script == "han":
        return _classify_han(text)
    if script == "latin":
        return _classify_latin(text)
    return _SCRIPT_LANGUAGE.get(script)


def recognition_hints(language: Optional[str]) -> list[str]:
    """식별된 언어를 인식 언어 힌트 목록으로 바꾼다.

    지원하지 않는 언어(영어 포함)는 ["en-US"].
    """
    if language is None:
        return ["en-US"]
    return list(_RECOGNITION_HINTS.get(language, ["en-US"]))
