"""
학습 가이드 마크다운 -> 팟캐스트 낭독 스크립트 변환

TTS 입력 한도(4096자)를 넘지 않도록 문장 단위로 청크를 나눕니다.
"""

import re

TTS_MAX_CHARS = 4096
CHUNK_CHARS = 3000

# (UK, US)
_SPELLING_PAIRS = [
    ("colour", "color"),
    ("centre", "center"),
    ("organise", "organize"),
    ("organised", "organized"),
    ("organising", "organizing"),
    ("analyse", "analyze"),
    ("analysed", "analyzed"),
    ("analysing", "analyzing"),
    ("recognise", "recognize"),
    ("realise", "realize"),
    ("theatre", "theater"),
    ("defence", "defense"),
    ("licence", "license"),
    ("practise", "practice"),
]

_MARKDOWN_RULES = [
    (re.compile(r"```[\s\S]+?```"), ""),
    (re.compile(r"^# (.+)$", re.M), r"Main topic: \1."),
    (re.compile(r"^## (.+)$", re.M), r"\nNow, let's talk about: \1.\n"),
    (re.compile(r"^### (.+)$", re.M), r"\nHere's an important point: \1.\n"),
    (re.compile(r"^[-*] (.+)$", re.M), r"Point: \1."),
    (re.compile(r"^(\d+\. .+)$", re.M), r"Number \1"),
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"__(.+?)__"), r"\1"),
    (re.compile(r"\[(.+?)\]\(.+?\)"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),
]

_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def _match_case(source: str, replacement: str) -> str:
    if source.isupper():
        return replacement.upper()
    if source[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def apply_spelling(text: str, spelling: str = "UK") -> str:
    """UK/US 철자 통일"""
    us = spelling.upper() == "US"
    for uk_word, us_word in _SPELLING_PAIRS:
        source, target = (uk_word, us_word) if us else (us_word, uk_word)
        text = re.sub(
            rf"\b{source}\b",
            lambda m, target=target: _match_case(m.group(0), target),
            text,
            flags=re.IGNORECASE,
        )
    return text


def format_for_podcast(content: str, title: str, spelling: str = "UK") -> str:
    """
    마크다운 학습 가이드를 낭독용 스크립트로 변환

    제목/목록은 말로 읽는 전환 문구로 바꾸고, 강조/링크/코드 문법은 제거한다.
    """
    script = f"Welcome to your revision podcast! Today we're covering: {title}.\n\n"
    script += "Let's dive into your study guide.\n\n"

    body = content
    for pattern, replacement in _MARKDOWN_RULES:
        body = pattern.sub(replacement, body)
    script += apply_spelling(body, spelling)

    organise = "organize" if spelling.upper() == "US" else "organise"
    script += (
        f"\n\nThat concludes your revision podcast. Remember to {organise} and review "
        "these key points regularly. Good luck with your studies!"
    )
    return script


def split_into_chunks(text: str, max_length: int = CHUNK_CHARS) -> list[str]:
    """
    문장 경계 기준으로 max_length 이하 청크로 분할

    한 문장이 max_length를 넘으면 그 문장은 단독 청크가 되며, TTS 한도를 넘는
    청크는 enforce_limit()에서 다시 잘린다.
    """
    sentences = [s for s in _SENTENCE.findall(text) if s.strip()] or [text]
    chunks: list[str] = []
    current = ""
    for sentence in sentences:
        if len(current + sentence) > max_length:
            if current.strip():
                chunks.append(current.strip())
            current = sentence
        else:
            current += sentence
    if current.strip():
        chunks.append(current.strip())
    return enforce_limit(chunks)


def enforce_limit(
    chunks: list[str],
    hard_limit: int = TTS_MAX_CHARS,
    split_size: int = CHUNK_CHARS,
) -> list[str]:
    """hard_limit를 넘는 청크를 split_size 단위로 강제 분할"""
    result = []
    for chunk in chunks:
        if len(chunk) <= hard_limit:
            result.append(chunk)
            continue
        result.extend(chunk[i:i + split_size] for i in range(0, len(chunk), split_size))
    return result
