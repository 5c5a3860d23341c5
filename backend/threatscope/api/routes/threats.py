from typing import List, Sequence

from fastapi import APIRouter, Query

from threatscope.api.deps import ThreatGeneratorDep
from threatscope.schemas import ThreatFeedUpdate, ThreatReport
from threatscope.services.threats import build_report

router = APIRouter(prefix="/threats", tags=["threats"])


def _country_codes(countries: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(code.upper() for code in countries))


@router.get("/", response_model=ThreatReport)
async def generate_threats(
    generator: ThreatGeneratorDep,
    countries: List[str] = Query(default=[]),
):
    """
    Generate a fresh synthetic threat feed (2-4 threats per country code)
    together with its aggregate statistics.
    """
    codes = _country_codes(countries)
    threats = generator.generate_for_countries(codes)
    return build_report(threats, [(code, code) for code in codes])


@router.post("/tick", response_model=ThreatReport)
async def advance_threat_feed(update: ThreatFeedUpdate, generator: ThreatGeneratorDep):
    """
    Advance a rolling feed by one tick: append a new threat for one of the
    followed countries and keep the newest 50 entries.
    """
    codes = _country_codes(update.countries)
    threats = generator.add_random(update.threats, codes)
    return build_report(threats, [(code, code) for code in codes])
