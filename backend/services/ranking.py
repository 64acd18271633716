from dataclasses import dataclass

from models.types import GeocodeCandidate

# Score weights. Relative order matters (earlier queries and the metered
# provider rank higher); the absolute values are tunable.
CONFIDENCE_WEIGHT = 50.0
POSITION_BONUS_MAX = 30.0
POSITION_BONUS_STEP = 5.0
FIRST_QUERY_BONUS = 5.0
COUNTRY_BBOX_BONUS = 20.0
COUNTRY_NAME_BONUS = 15.0
METERED_PROVIDER_BONUS = 10.0

EARLY_EXIT_SCORE = 80.0
EARLY_EXIT_MAX_QUERY_INDEX = 2


@dataclass(frozen=True)
class CountryProfile:
    names: tuple[str, ...]
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.min_lat <= latitude <= self.max_lat and self.min_lng <= longitude <= self.max_lng

    def named_in(self, text: str) -> bool:
        return any(name in text for name in self.names)


def positional_bonus(query_index: int) -> float:
    bonus = max(0.0, POSITION_BONUS_MAX - query_index * POSITION_BONUS_STEP)
    if query_index == 0:
        bonus += FIRST_QUERY_BONUS
    return bonus


def score_candidate(candidate: GeocodeCandidate, country: CountryProfile) -> float:
    score = candidate.confidence * CONFIDENCE_WEIGHT + positional_bonus(candidate.query_index)
    if country.contains(candidate.point.latitude, candidate.point.longitude):
        score += COUNTRY_BBOX_BONUS
    if country.named_in(candidate.formatted_address):
        score += COUNTRY_NAME_BONUS
    if candidate.metered:
        score += METERED_PROVIDER_BONUS
    return score


class GeocodeRanker:
    """Collects candidates across every query/provider attempt of one request and keeps the best."""

    def __init__(self, country: CountryProfile):
        self._country = country
        self._best: tuple[float, GeocodeCandidate] | None = None
        self.candidate_count = 0

    def add(self, candidates: list[GeocodeCandidate]) -> None:
        for candidate in candidates:
            self.candidate_count += 1
            scored = (score_candidate(candidate, self._country), candidate)
            if self._best is None or self._sort_key(scored) > self._sort_key(self._best):
                self._best = scored

    def best(self) -> tuple[float, GeocodeCandidate] | None:
        return self._best

    def is_conclusive(self) -> bool:
        """True once a later query could not be worth its (possibly metered) cost."""
        if self._best is None:
            return False
        score, candidate = self._best
        return score > EARLY_EXIT_SCORE and candidate.query_index <= EARLY_EXIT_MAX_QUERY_INDEX

    @staticmethod
    def _sort_key(scored: tuple[float, GeocodeCandidate]) -> tuple[float, float, int, bool]:
        # Ties: higher confidence, then earlier query, then metered provider
        score, candidate = scored
        return (score, candidate.confidence, -candidate.query_index, candidate.metered)
