"""Synthetic threat feed for the dashboard.

Nothing here is real intelligence: threats are sampled at random so the
dashboard and the analysis prompts have something to work with.
"""

import random
import string
import time
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from threatscope.schemas import (
    THREAT_LEVELS,
    THREAT_TYPES,
    CountryThreatSummary,
    Threat,
    ThreatReport,
    ThreatStats,
    TimelineBucket,
)

MAX_THREATS = 50

_DESCRIPTIONS: Dict[str, Tuple[str, ...]] = {
    "Malware": (
        "New ransomware variant detected targeting {country} infrastructure",
        "Cryptocurrency mining malware spreading in {country}",
        "Advanced persistent threat campaign against {country} government",
    ),
    "Phishing": (
        "Sophisticated phishing campaign targeting {country} financial sector",
        "Fake government website impersonation detected",
        "Business email compromise attacks on {country} corporations",
    ),
    "DDoS": (
        "Large-scale DDoS attack on {country} internet infrastructure",
        "Botnet targeting {country} critical services",
        "Distributed denial of service affecting {country} banking sector",
    ),
    "Data Breach": (
        "Personal data breach affecting {country} citizens",
        "Corporate data leak from {country} technology companies",
        "Government database compromise in {country}",
    ),
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreatGenerator:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._rng = rng or random.Random()
        self._clock = clock

    def generate(self, country_code: str, country_name: Optional[str] = None) -> Threat:
        country_name = country_name or country_code
        threat_type = self._rng.choice(THREAT_TYPES)
        level = self._rng.choice(THREAT_LEVELS)
        template = self._rng.choice(_DESCRIPTIONS[threat_type])
        suffix = "".join(self._rng.choice(_ID_ALPHABET) for _ in range(9))
        return Threat(
            id=f"{country_code}-{int(time.time() * 1000)}-{suffix}",
            country_code=country_code,
            country_name=country_name,
            type=threat_type,
            level=level,
            description=template.format(country=country_name),
            timestamp=self._clock(),
            severity=THREAT_LEVELS.index(level) + 1,
        )

    def generate_for_countries(
        self,
        country_codes: Sequence[str],
        names: Optional[Dict[str, str]] = None,
        per_country: Tuple[int, int] = (2, 4),
    ) -> List[Threat]:
        names = names or {}
        low, high = per_country
        threats: List[Threat] = []
        for code in country_codes:
            for _ in range(self._rng.randint(low, high)):
                threats.append(self.generate(code, names.get(code)))
        return threats

    def add_random(
        self,
        threats: Sequence[Threat],
        country_codes: Sequence[str],
        max_threats: int = MAX_THREATS,
    ) -> List[Threat]:
        """Append one threat (sometimes up to three) for a random country.

        The feed keeps only the newest ``max_threats`` entries.
        """
        if not country_codes:
            return list(threats)
        code = self._rng.choice(list(country_codes))
        count = self._rng.randint(1, 3) if self._rng.random() < 0.2 else 1
        updated = list(threats) + [self.generate(code) for _ in range(count)]
        return updated[-max_threats:]


def compute_stats(threats: Sequence[Threat]) -> ThreatStats:
    levels = Counter(t.level for t in threats)
    types = Counter(t.type for t in threats)
    return ThreatStats(
        total_threats=len(threats),
        critical_threats=levels["Critical"],
        high_threats=levels["High"],
        medium_threats=levels["Medium"],
        low_threats=levels["Low"],
        threat_distribution={name: types[name] for name in THREAT_TYPES},
    )


def summarize_by_country(
    threats: Sequence[Threat], countries: Sequence[Tuple[str, str]]
) -> List[CountryThreatSummary]:
    summaries = []
    for code, name in countries:
        levels = Counter(t.level for t in threats if t.country_code == code)
        summaries.append(
            CountryThreatSummary(
                country_code=code,
                country_name=name,
                total=sum(levels.values()),
                critical=levels["Critical"],
                high=levels["High"],
                medium=levels["Medium"],
                low=levels["Low"],
            )
        )
    return summaries


def _truncate_hour(ts: datetime, tz) -> datetime:
    if tz is not None and ts.tzinfo is not None:
        ts = ts.astimezone(tz)
    return ts.replace(minute=0, second=0, microsecond=0)


def build_timeline(
    threats: Sequence[Threat], now: Optional[datetime] = None, hours: int = 24
) -> List[TimelineBucket]:
    """Hourly threat counts for the ``hours`` hours ending with ``now``."""
    now = (now or _utcnow()).replace(minute=0, second=0, microsecond=0)
    per_hour = Counter(_truncate_hour(t.timestamp, now.tzinfo) for t in threats)
    buckets = []
    for offset in range(hours - 1, -1, -1):
        hour = now - timedelta(hours=offset)
        buckets.append(TimelineBucket(hour=hour, threats=per_hour[hour]))
    return buckets


def build_report(
    threats: Sequence[Threat],
    countries: Sequence[Tuple[str, str]],
    now: Optional[datetime] = None,
) -> ThreatReport:
    return ThreatReport(
        threats=list(threats),
        stats=compute_stats(threats),
        by_country=summarize_by_country(threats, countries),
        timeline=build_timeline(threats, now=now),
    )
