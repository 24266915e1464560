"""
Transcript text analysis (text only, after recognition).

Summarizes a finished transcript: word count, words per minute, filler words,
hesitation rate, average sentence length and a simple Flesch readability score.
Sentiment is a neutral placeholder until a real model is wired in.
"""

import re
from typing import List, Optional

import config

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_SYLLABLE_SUFFIX = re.compile(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$")
_VOWEL_GROUP = re.compile(r"[aeiouy]{1,2}")


def count_syllables(text: str) -> int:
    """Rough English syllable estimate: vowel groups after trimming silent endings."""
    count = 0
    for word in (text or "").lower().split():
        word = _SYLLABLE_SUFFIX.sub("", word)
        if word.startswith("y"):
            word = word[1:]
        count += len(_VOWEL_GROUP.findall(word))
    return count


def find_filler_words(words: List[str], filler_words: List[str]) -> List[str]:
    """
    Return the fillers found in a token list, in order. Multi-word fillers such
    as "you know" match consecutive tokens; longer phrases win over shorter ones.
    """
    phrases = sorted({tuple(f.lower().split()) for f in filler_words if f.strip()}, key=len, reverse=True)
    lowered = [w.lower() for w in words]
    found = []
    i = 0
    while i < len(lowered):
        for phrase in phrases:
            n = len(phrase)
            if tuple(lowered[i:i + n]) == phrase:
                found.append(" ".join(words[i:i + n]))
                i += n
                break
        else:
            i += 1
    return found


def analyze_speech_text(
    transcript: Optional[str],
    start_ms: float,
    end_ms: float,
    filler_words: Optional[List[str]] = None,
) -> dict:
    """
    Analyze a transcript spoken between start_ms and end_ms.

    Filler words match whole tokens; multi-word entries match consecutive tokens.
    """
    cleaned = (transcript or "").strip()
    words = cleaned.split()
    word_count = len(words)
    duration_sec = max(1.0, (end_ms - start_ms) / 1000.0)
    wpm = (word_count / duration_sec) * 60.0

    fillers_found = find_filler_words(words, filler_words or config.FILLER_WORDS)
    hesitation_rate = len(fillers_found) / max(1, word_count)

    sentences = [s for s in _SENTENCE_SPLIT.split(cleaned) if s]
    avg_sentence_length = word_count / len(sentences) if sentences else 0.0

    syllables = count_syllables(cleaned)
    flesch = 206.835 - 1.015 * avg_sentence_length - 84.6 * (syllables / max(1, word_count))

    return {
        "wordCount": word_count,
        "wordsPerMinute": round(wpm, 2),
        "hesitationRate": round(hesitation_rate, 4),
        "fillerWords": fillers_found,
        "averageSentenceLength": round(avg_sentence_length, 2),
        "readabilityScore": max(0.0, min(100.0, flesch)),
        "sentiment": {"label": "neutral", "score": 0.5},
    }
