"""
Concept Memory
Remembers which campaign angles and searches have already been tried.

Built from the workflow state (previous_themes and search_history) so it has
no storage of its own. Used to:
- Steer theme generation away from previously proposed titles
- Keep retrieval runs from re-issuing explored queries
- Flag new themes that repeat an old one
"""

from typing import Any, Dict, Iterable, List, Optional


# Common words that carry no signal when comparing theme titles
STOP_WORDS = {
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to',
    'for', 'of', 'with', 'by', 'from', 'as', 'is', 'was', 'are',
    'were', 'been', 'be', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'must',
    'can', 'what', 'which', 'who', 'this', 'that', 'these', 'those',
    'it', 'its', 'how', 'why', 'when', 'where', 'your', 'you', 'our',
    'we', 'more', 'most', 'not', 'no', 'into', 'through', 'than',
    'new', 'vs', 'via',
}


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace so trivially different queries compare equal."""
    return " ".join(query.lower().split())


class ConceptMemory:
    """
    Read-only view over previously generated themes and searches.

    Repeat detection uses keyword overlap between titles: a new title whose
    keywords overlap an old title's by at least overlap_threshold (Jaccard)
    counts as a repeat.
    """

    def __init__(
        self,
        previous_themes: Optional[Iterable[Dict[str, Any]]] = None,
        search_history: Optional[Iterable[Dict[str, Any]]] = None,
        overlap_threshold: float = 0.6,
    ):
        """
        Initialize the memory view.

        Args:
            previous_themes: Themes from earlier batches, oldest first
            search_history: SearchLogEntry records from earlier retrieval runs
            overlap_threshold: Keyword overlap at which two titles count as the same angle
        """
        self.previous_themes: List[Dict[str, Any]] = list(previous_themes or [])
        self.search_history: List[Dict[str, Any]] = list(search_history or [])
        self.overlap_threshold = overlap_threshold

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "ConceptMemory":
        return cls(state.get("previous_themes", []), state.get("search_history", []))

    @staticmethod
    def fold(previous: List[Dict[str, Any]], batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Append a theme batch to the remembered themes.

        Returns a new list; neither argument is modified.
        """
        return list(previous) + [dict(theme) for theme in batch]

    def avoid_titles(self) -> List[str]:
        """Titles of every previously proposed theme, in the order they were proposed."""
        titles = []
        for theme in self.previous_themes:
            title = theme.get("title")
            if title and title not in titles:
                titles.append(title)
        return titles

    def explored_queries(self) -> List[str]:
        """Normalized queries already issued by earlier retrieval runs."""
        seen = []
        for entry in self.search_history:
            query = normalize_query(entry.get("query", ""))
            if query and query not in seen:
                seen.append(query)
        return seen

    def render_for_prompt(self, max_queries: int = 20) -> str:
        """
        Render an "avoid these" block for generation prompts.

        Returns:
            Prompt text, or an empty string when nothing has been tried yet
        """
        lines = []
        titles = self.avoid_titles()
        if titles:
            lines.append("Previously proposed themes (do NOT repeat these or close variations):")
            lines.extend(f"- {title}" for title in titles)

        queries = self.explored_queries()
        if queries:
            if lines:
                lines.append("")
            lines.append("Searches already explored (look for new angles instead):")
            lines.extend(f"- {query}" for query in queries[-max_queries:])

        return "\n".join(lines)

    def find_repeats(self, themes: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
        """
        Find new themes that repeat a previously proposed one.

        Args:
            themes: Freshly generated themes

        Returns:
            List of {"title", "matches"} pairs, one per repeated theme
        """
        repeats = []
        previous = [(title, self._extract_keywords(title)) for title in self.avoid_titles()]

        for theme in themes:
            title = theme.get("title", "")
            keywords = self._extract_keywords(title)
            for old_title, old_keywords in previous:
                if title.strip().lower() == old_title.strip().lower() or (
                    self._overlap(keywords, old_keywords) >= self.overlap_threshold
                ):
                    repeats.append({"title": title, "matches": old_title})
                    break

        return repeats

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "previous_themes": len(self.previous_themes),
            "unique_titles": len(self.avoid_titles()),
            "searches": len(self.search_history),
            "unique_queries": len(self.explored_queries()),
        }

    @staticmethod
    def _overlap(first: set, second: set) -> float:
        if not first or not second:
            return 0.0
        return len(first & second) / len(first | second)

    def _extract_keywords(self, text: str) -> set:
        """
        Extract keywords from a title for overlap matching.

        Args:
            text: Text to extract keywords from

        Returns:
            Set of lowercase keywords
        """
        words = text.lower().split()
        keywords = {
            word.strip('.,!?;:"\'()[]{}')
            for word in words
            if len(word) > 2 and word.strip('.,!?;:"\'()[]{}') not in STOP_WORDS
        }
        keywords.discard("")
        return keywords
