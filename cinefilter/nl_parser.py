"""
Natural-language filter parsing.
Turns phrases like "action movies from the 90s rated above 7 on netflix" into a
filter patch the store can apply. Regexes cover years, ratings, providers and
regions; genres go through a synonym map with fuzzy matching for typos.
"""

import re  # pattern extraction
from datetime import date  # year bounds become calendar dates
from typing import Any, Dict, List, Optional, Set, Tuple

from rapidfuzz import fuzz, process  # fuzzy genre matching
from loguru import logger  # console logging

from .defaults import normalize_numeric_range
from .models import DateRange


FilterPatch = Dict[str, Any]

# Canonical genre -> (movie genre id, tv genre id); None where the catalog has no tv equivalent
GENRE_IDS: Dict[str, Tuple[int, Optional[int]]] = {
	"action": (28, 10759),
	"adventure": (12, 10759),
	"animation": (16, 16),
	"comedy": (35, 35),
	"crime": (80, 80),
	"documentary": (99, 99),
	"drama": (18, 18),
	"family": (10751, 10751),
	"fantasy": (14, 10765),
	"history": (36, None),
	"horror": (27, None),
	"music": (10402, None),
	"mystery": (9648, 9648),
	"romance": (10749, None),
	"science fiction": (878, 10765),
	"thriller": (53, None),
	"war": (10752, 10768),
	"western": (37, 37),
}

GENRE_SYNONYMS = {
	'sci-fi': 'science fiction',
	'sci fi': 'science fiction',
	'scifi': 'science fiction',
	'sci-fy': 'science fiction',
	'science-fiction': 'science fiction',
	'funny': 'comedy',
	'comedies': 'comedy',
	'romantic': 'romance',
	'animated': 'animation',
	'cartoon': 'animation',
	'documentaries': 'documentary',
	'docs': 'documentary',
	'thrillers': 'thriller',
	'musical': 'music',
	'historical': 'history',
	'scary': 'horror',
	'detective': 'mystery',
	'whodunit': 'mystery',
}

# Streaming provider ids in the catalog
PROVIDER_PATTERNS = (
	(re.compile(r"\bon\s+(netflix)\b", re.I), 8),
	(re.compile(r"\bon\s+(disney\s*\+|disney\s+plus|disney)", re.I), 337),
	(re.compile(r"\bon\s+(amazon\s+prime|prime\s+video|amazon|prime)\b", re.I), 119),
	(re.compile(r"\bon\s+(hbo\s+max|hbo)\b", re.I), 384),
)

REGION_PATTERNS = (
	(re.compile(r"\bin\s+(?:the\s+)?(us|usa|america|united states)\b", re.I), "US"),
	(re.compile(r"\bin\s+(?:the\s+)?(uk|britain|united kingdom)\b", re.I), "GB"),
	(re.compile(r"\bin\s+(india)\b", re.I), "IN"),
	(re.compile(r"\bin\s+(japan)\b", re.I), "JP"),
	(re.compile(r"\bin\s+(?:south\s+)?(korea)\b", re.I), "KR"),
)

LANGUAGE_WORDS = {
	"korean": "ko",
	"japanese": "ja",
	"french": "fr",
	"spanish": "es",
	"german": "de",
	"italian": "it",
	"hindi": "hi",
	"bollywood": "hi",
	"english": "en",
}

STOP_WORDS = {
	"a", "an", "the", "and", "or", "of", "in", "on", "from", "with", "about", "some",
	"movie", "movies", "film", "films", "show", "shows", "series", "tv", "television",
	"rated", "rating", "ratings", "good", "best", "me", "find", "want", "watch", "to",
}

MIN_YEAR = 1900
MAX_YEAR = 2100


class NaturalLanguageFilterParser:
	"""
	Parses free text into a FilterPatch.
	Each matched phrase is removed from the working text before the next pattern
	runs, so one phrase never feeds two facets.
	"""

	RE_TV = re.compile(r"\b(tv\s+shows?|tv|series|television|shows?)\b", re.I)
	RE_MOVIE = re.compile(r"\b(movies?|films?)\b", re.I)

	RE_RATING_MIN = re.compile(r"\brated?\s+(?:above|over|more\s+than|at\s+least|>)\s*(\d+(?:\.\d+)?)", re.I)
	RE_RATING_MAX = re.compile(r"\brated?\s+(?:below|under|less\s+than|<)\s*(\d+(?:\.\d+)?)", re.I)
	RE_RATING_PLUS = re.compile(r"\b(?:rated?\s*)?(10|\d(?:\.\d+)?)\s*\+", re.I)

	RE_RANGE = re.compile(r"\b(19\d{2}|20\d{2})\s*(?:-|–|to)\s*(19\d{2}|20\d{2})\b", re.I)
	RE_BEFORE = re.compile(r"\b(?:before|until)\s+(19\d{2}|20\d{2})\b", re.I)
	RE_AFTER = re.compile(r"\b(?:after|since|from)\s+(19\d{2}|20\d{2})\b(?!s)", re.I)
	RE_CENTURY_DECADE = re.compile(r"\b(?P<prefix>early|mid|late)?\s*(?P<century>(?:19|20)\d0)'?s\b", re.I)
	RE_DECADE = re.compile(r"\b(?P<prefix>early|mid|late)?\s*'?(?P<decade>\d0)'?s\b", re.I)
	RE_YEAR = re.compile(r"\b(?:in\s+)?(19\d{2}|20\d{2})\b", re.I)

	def __init__(self, fuzzy_threshold: int = 88):
		self.fuzzy_threshold = fuzzy_threshold
		self._genre_list = sorted(GENRE_IDS)
		# Word-bounded synonym and canonical matchers, longest first so "sci fi" wins over "fi"
		terms = sorted(set(GENRE_SYNONYMS) | set(GENRE_IDS), key=len, reverse=True)
		self._genre_re = re.compile(r"\b(" + "|".join(re.escape(t) for t in terms) + r")s?\b", re.I)

	def parse(self, text: str, content_type: Optional[str] = None) -> FilterPatch:
		"""Main entry: text -> patch of FilterState fields. Only recognised facets appear."""
		if not text or not text.strip():
			raise ValueError("Query cannot be empty")

		work = " " + text.strip().lower() + " "
		patch: FilterPatch = {}
		logger.debug(f"[NLParser] Input '{text}'")

		detected_type, work = self._extract_content_type(work)
		if detected_type:
			patch["content_type"] = detected_type
		content_type = detected_type or content_type or "movie"

		providers, work = self._extract_providers(work)
		if providers:
			patch["with_watch_providers"] = tuple(providers)

		region, work = self._extract_region(work)
		if region:
			patch["watch_region"] = region

		rating, work = self._extract_rating(work)
		if rating is not None:
			patch["vote_average"] = rating

		years, work = self._extract_year_range(work)
		if years is not None:
			key = "first_air_date" if content_type == "tv" else "primary_release_date"
			patch[key] = years

		language, work = self._extract_language(work)
		if language:
			patch["with_original_language"] = language

		genres, work = self._extract_genres(work, content_type)
		if genres:
			patch["with_genres"] = tuple(genres)

		leftover = self._leftover_terms(work)
		if leftover and not any(k != "content_type" for k in patch):
			patch["search_query"] = " ".join(leftover)

		logger.debug(f"[NLParser] Parsed patch keys={sorted(patch)} leftover={leftover}")
		return patch

	# ----- extractors: each returns (value, text with the match removed) -----

	def _extract_content_type(self, q: str) -> Tuple[Optional[str], str]:
		m = self.RE_TV.search(q)
		if m:
			return "tv", _cut(q, m)
		m = self.RE_MOVIE.search(q)
		if m:
			return "movie", _cut(q, m)
		return None, q

	def _extract_providers(self, q: str) -> Tuple[List[int], str]:
		found: List[int] = []
		for pattern, provider_id in PROVIDER_PATTERNS:
			m = pattern.search(q)
			if m:
				found.append(provider_id)
				q = _cut(q, m)
				logger.debug(f"[NLParser] Provider '{m.group(1)}' -> {provider_id}")
		return found, q

	def _extract_region(self, q: str) -> Tuple[Optional[str], str]:
		for pattern, code in REGION_PATTERNS:
			m = pattern.search(q)
			if m:
				return code, _cut(q, m)
		return None, q

	def _extract_rating(self, q: str):
		low = high = None
		m = self.RE_RATING_MIN.search(q)
		if m:
			low = float(m.group(1))
			q = _cut(q, m)
		m = self.RE_RATING_MAX.search(q)
		if m:
			high = float(m.group(1))
			q = _cut(q, m)
		if low is None:
			m = self.RE_RATING_PLUS.search(q)
			if m:
				low = float(m.group(1))
				q = _cut(q, m)
		if low is None and high is None:
			return None, q
		clamp = lambda v: None if v is None else min(10.0, max(0.0, v))
		rng = normalize_numeric_range("vote_average", clamp(low), clamp(high))
		logger.debug(f"[NLParser] Rating -> {rng}")
		return rng, q

	def _extract_year_range(self, q: str) -> Tuple[Optional[DateRange], str]:
		# 1990-1999 explicit range
		m = self.RE_RANGE.search(q)
		if m:
			start, end = int(m.group(1)), int(m.group(2))
			if start > end:
				start, end = end, start
			return _years(start, end), _cut(q, m)

		# before / after boundaries stay open on the other side
		m = self.RE_BEFORE.search(q)
		if m:
			return _years(None, int(m.group(1)) - 1), _cut(q, m)
		m = self.RE_AFTER.search(q)
		if m:
			return _years(int(m.group(1)), None), _cut(q, m)

		# early/mid/late 2000s
		m = self.RE_CENTURY_DECADE.search(q)
		if m:
			start, end = _prefix_to_range(int(m.group("century")), (m.group("prefix") or "").lower())
			return _years(start, end), _cut(q, m)

		# 90s/80s (00-29 -> 2000s, 30-90 -> 1900s)
		m = self.RE_DECADE.search(q)
		if m:
			dec = int(m.group("decade"))
			base = 1900 if dec >= 30 else 2000
			start, end = _prefix_to_range(base + dec, (m.group("prefix") or "").lower())
			return _years(start, end), _cut(q, m)

		m = self.RE_YEAR.search(q)
		if m:
			y = int(m.group(1))
			return _years(y, y), _cut(q, m)
		return None, q

	def _extract_language(self, q: str) -> Tuple[Optional[str], str]:
		for word, code in LANGUAGE_WORDS.items():
			m = re.search(rf"\b{word}\b", q)
			if m:
				return code, _cut(q, m)
		return None, q

	def _extract_genres(self, q: str, content_type: str) -> Tuple[List[int], str]:
		names: List[str] = []
		for m in list(self._genre_re.finditer(q)):
			term = m.group(1).lower()
			name = GENRE_SYNONYMS.get(term, term)
			if name not in names:
				names.append(name)
				logger.debug(f"[NLParser] Genre match '{term}' -> '{name}'")
		q = self._genre_re.sub(" ", q)

		# Token-level fuzzy pass for typos ("horor", "documentery")
		remaining: List[str] = []
		for token in re.findall(r"[a-z]+", q):
			if len(token) < 4 or token in STOP_WORDS:
				remaining.append(token)
				continue
			match, score, _ = process.extractOne(token, self._genre_list, scorer=fuzz.ratio)
			if score >= self.fuzzy_threshold:
				if match not in names:
					names.append(match)
				logger.debug(f"[NLParser] Genre fuzzy match '{token}' -> '{match}' (score={score:.0f})")
			else:
				remaining.append(token)

		ids: List[int] = []
		for name in names:
			movie_id, tv_id = GENRE_IDS[name]
			genre_id = tv_id if content_type == "tv" else movie_id
			if genre_id is None:
				logger.debug(f"[NLParser] No {content_type} genre for '{name}'")
				continue
			if genre_id not in ids:
				ids.append(genre_id)
		return ids, " " + " ".join(remaining) + " "

	def _leftover_terms(self, q: str) -> List[str]:
		seen: Set[str] = set()
		terms: List[str] = []
		for token in re.findall(r"[a-z0-9']+", q):
			if token in STOP_WORDS or token in seen:
				continue
			seen.add(token)
			terms.append(token)
		return terms


def _cut(q: str, m: "re.Match") -> str:
	"""Remove a match from the working text."""
	return q[:m.start()] + " " + q[m.end():]


def _prefix_to_range(decade_start: int, prefix: str) -> Tuple[int, int]:
	if prefix == "early":
		return (decade_start, decade_start + 4)
	if prefix == "mid":
		return (decade_start + 3, decade_start + 6)
	if prefix == "late":
		return (decade_start + 7, decade_start + 9)
	return (decade_start, decade_start + 9)


def _years(start: Optional[int], end: Optional[int]) -> DateRange:
	start_date = date(max(MIN_YEAR, start), 1, 1) if start is not None else None
	end_date = date(min(MAX_YEAR, end), 12, 31) if end is not None else None
	return DateRange(start=start_date, end=end_date)
