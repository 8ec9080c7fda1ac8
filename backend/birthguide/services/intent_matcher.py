"""
BirthGuide - Intent Matcher Service

Resolves already-transcribed speech into typed answers. Speech-to-text itself
happens upstream; this service only maps a transcript onto the closed answer
set of a decision or an assessment question.

Architecture:
    - Protocol defines the interface for intent matchers
    - KeywordIntentMatcher: English/Arabic keyword heuristics

Safety Notes:
    - Negations win over affirmations ("not breathing" is "no")
    - Bleeding ignores negation: any severity word ("not heavy") escalates
    - An unrecognised description of what is presenting resolves to
      "other", which escalates; silence or an empty transcript never does
    - None means "could not tell": the caller must ask again
"""

from __future__ import annotations

import logging
import re
from abc import abstractmethod
from typing import Iterable, List, Optional, Protocol, Union, runtime_checkable

from birthguide.core.decisions import get_decision
from birthguide.core.types import (
    Answer,
    BleedingAnswer,
    BreathingAnswer,
    CrowningAnswer,
    DecisionId,
    PlacentaAnswer,
    PresentationAnswer,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol (Interface)
# =============================================================================

@runtime_checkable
class IntentMatcher(Protocol):
    """Protocol for mapping transcripts onto typed answers."""

    @abstractmethod
    def match(self, decision_id: Union[DecisionId, str], transcript: str) -> Optional[Answer]:
        """
        Match a transcript to one of the decision's answers.

        Returns:
            The typed answer, or None if the transcript is inconclusive
        """
        ...

    @property
    @abstractmethod
    def matcher_id(self) -> str:
        """Return matcher version identifier."""
        ...


# =============================================================================
# Keyword Implementation
# =============================================================================

class KeywordIntentMatcher:
    """
    Keyword-based intent matcher.

    Single words are matched against whole tokens so that short words such
    as "no" or "لا" do not match inside longer words; multi-word phrases are
    matched as substrings.
    """

    YES_KEYWORDS = {
        "yes", "yeah", "yep", "yup", "sure", "done", "crying",
        "نعم", "ايوه", "أيوه", "اه", "آه", "صح", "طلعت", "بيبكي",
    }

    NO_KEYWORDS = {
        "no", "not", "nope", "isn't", "isnt", "doesn't", "doesnt", "hasn't",
        "hasnt", "stuck", "nothing",
        "لا", "لأ", "مش", "ما", "عالق", "لسا", "لسه",
    }

    HEAD_KEYWORDS = {"head", "hair", "رأس", "راس", "الرأس", "الراس", "شعر"}

    BREECH_KEYWORDS = {
        "breech", "bottom", "butt", "buttocks", "foot", "feet", "leg", "legs",
        "مؤخرة", "مؤخرته", "قدم", "رجل", "رجلين",
    }

    OTHER_KEYWORDS = {
        "cord", "arm", "hand", "shoulder",
        "حبل", "الحبل", "ذراع", "يد", "إيد", "ايد",
    }

    UNKNOWN_KEYWORDS = {
        "don't know", "dont know", "not sure", "can't see", "cant see",
        "لا أعرف", "لا اعرف", "مش عارفة", "ما بعرف",
    }

    SEVERE_KEYWORDS = {
        "severe", "heavy", "a lot", "lots", "soaking", "gushing", "pouring",
        "شديد", "كثير", "كتير", "غزير",
    }

    LESS_THAN_MINUTE_KEYWORDS = {"less than a minute", "under a minute", "أقل من دقيقة"}
    ONE_OR_TWO_MINUTE_KEYWORDS = {"a minute", "one minute", "two minutes", "دقيقة", "دقيقتين"}
    MORE_THAN_TEN_KEYWORDS = {"more than ten", "more than 10", "أكثر من عشر", "أكثر"}

    ORDINAL_MONTHS = {
        "ninth": 9, "eighth": 8, "seventh": 7, "sixth": 6,
        "التاسع": 9, "تاسع": 9, "الثامن": 8, "ثامن": 8,
        "السابع": 7, "سابع": 7, "السادس": 6, "سادس": 6,
    }

    @property
    def matcher_id(self) -> str:
        return "keyword-intent-v1"

    def match(self, decision_id: Union[DecisionId, str], transcript: str) -> Optional[Answer]:
        decision = get_decision(decision_id)
        text = self._normalize(transcript)
        if not text:
            return None

        tokens = self._tokenize(text)

        if decision.id == DecisionId.PRESENTATION:
            answer = self._match_presentation(text, tokens)
        elif decision.id == DecisionId.BLEEDING:
            # Negation is ignored here; a severity word always escalates
            answer = (
                BleedingAnswer.SEVERE
                if self._find_matches(text, tokens, self.SEVERE_KEYWORDS)
                else BleedingAnswer.NORMAL
            )
        elif decision.id == DecisionId.CROWNING:
            answer = self._match_yes_no(text, tokens, CrowningAnswer.YES, CrowningAnswer.STUCK)
        elif decision.id == DecisionId.BABY_BREATHING:
            answer = self._match_yes_no(text, tokens, BreathingAnswer.YES, BreathingAnswer.NO)
        else:
            answer = self._match_yes_no(text, tokens, PlacentaAnswer.YES, PlacentaAnswer.NO)

        logger.debug(
            "Intent match: decision=%s answer=%s",
            decision.id.value,
            answer.value if answer else None,
        )
        return answer

    def match_assessment_months(self, transcript: str) -> Optional[int]:
        """Months pregnant from a transcript, or None."""
        text = self._normalize(transcript)
        number = self._first_number(text)
        if number is not None and 1 <= number <= 10:
            return number

        for word, months in self.ORDINAL_MONTHS.items():
            if word in self._tokenize(text):
                return months
        return None

    def match_contraction_minutes(self, transcript: str) -> Optional[int]:
        """Minutes between contractions from a transcript, or None."""
        text = self._normalize(transcript)
        tokens = self._tokenize(text)

        if self._find_matches(text, tokens, self.LESS_THAN_MINUTE_KEYWORDS):
            return 1
        if self._find_matches(text, tokens, self.MORE_THAN_TEN_KEYWORDS):
            return 12

        number = self._first_number(text)
        if number is not None:
            return number

        if self._find_matches(text, tokens, self.ONE_OR_TWO_MINUTE_KEYWORDS):
            return 2
        return None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _match_presentation(self, text: str, tokens: List[str]) -> PresentationAnswer:
        if self._find_matches(text, tokens, self.UNKNOWN_KEYWORDS):
            return PresentationAnswer.UNKNOWN
        if self._find_matches(text, tokens, self.OTHER_KEYWORDS):
            return PresentationAnswer.OTHER
        if self._find_matches(text, tokens, self.BREECH_KEYWORDS):
            return PresentationAnswer.BREECH
        if self._find_matches(text, tokens, self.HEAD_KEYWORDS):
            return PresentationAnswer.HEAD
        return PresentationAnswer.OTHER

    def _match_yes_no(self, text: str, tokens: List[str], yes: Answer, no: Answer) -> Optional[Answer]:
        if self._find_matches(text, tokens, self.NO_KEYWORDS):
            return no
        if self._find_matches(text, tokens, self.YES_KEYWORDS):
            return yes
        return None

    @staticmethod
    def _normalize(transcript: str) -> str:
        return " ".join(transcript.lower().split())

    @staticmethod
    def _tokenize(text: str) -> List[str]:
        return re.findall(r"[\w']+", text)

    @staticmethod
    def _first_number(text: str) -> Optional[int]:
        match = re.search(r"\d+", text)
        return int(match.group()) if match else None

    @staticmethod
    def _find_matches(text: str, tokens: List[str], keywords: Iterable[str]) -> List[str]:
        """Find all keyword matches: phrases by substring, words by token."""
        token_set = set(tokens)
        matches = []
        for keyword in keywords:
            if " " in keyword:
                if keyword in text:
                    matches.append(keyword)
            elif keyword in token_set:
                matches.append(keyword)
        return matches
