from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]
ThreatType = Literal["Malware", "Phishing", "DDoS", "Data Breach"]
ThreatLevel = Literal["Low", "Medium", "High", "Critical"]

THREAT_TYPES: tuple[ThreatType, ...] = ("Malware", "Phishing", "DDoS", "Data Breach")
THREAT_LEVELS: tuple[ThreatLevel, ...] = ("Low", "Medium", "High", "Critical")


# Chat completions (OpenAI compatible subset)
class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class CompletionRequest(BaseModel):
    """Request body sent to the relay. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    model: str
    messages: tuple[ChatMessage, ...]
    stream: bool = True
    temperature: float = 0.7
    max_tokens: int = 1000


class ErrorBody(BaseModel):
    error: str


# Dashboard collaborators
class Continent(BaseModel):
    name: str


class Language(BaseModel):
    name: str


class Country(BaseModel):
    code: str
    name: str
    capital: Optional[str] = None
    continent: Continent
    emoji: Optional[str] = None
    currency: Optional[str] = None
    languages: List[Language] = Field(default_factory=list)


class Threat(BaseModel):
    id: str
    country_code: str
    country_name: str
    type: ThreatType
    level: ThreatLevel
    description: str
    timestamp: datetime
    severity: int = Field(ge=1, le=4)


class ThreatStats(BaseModel):
    total_threats: int = 0
    critical_threats: int = 0
    high_threats: int = 0
    medium_threats: int = 0
    low_threats: int = 0
    threat_distribution: Dict[str, int] = Field(default_factory=dict)


class CountryThreatSummary(BaseModel):
    country_code: str
    country_name: str
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class TimelineBucket(BaseModel):
    hour: datetime
    threats: int = 0


class ThreatReport(BaseModel):
    threats: List[Threat]
    stats: ThreatStats
    by_country: List[CountryThreatSummary]
    timeline: List[TimelineBucket]


class ThreatFeedUpdate(BaseModel):
    """Current feed held by the caller plus the countries it follows."""

    threats: List[Threat] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
