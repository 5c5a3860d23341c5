from typing import Annotated

import httpx
from fastapi import Depends, Request

from threatscope.core.config import Settings
from threatscope.services.countries import CountryDirectory
from threatscope.services.threats import ThreatGenerator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.upstream_client


def get_country_directory(request: Request) -> CountryDirectory:
    return request.app.state.country_directory


def get_threat_generator(request: Request) -> ThreatGenerator:
    return request.app.state.threat_generator


SettingsDep = Annotated[Settings, Depends(get_settings)]
UpstreamClientDep = Annotated[httpx.AsyncClient, Depends(get_upstream_client)]
CountryDirectoryDep = Annotated[CountryDirectory, Depends(get_country_directory)]
ThreatGeneratorDep = Annotated[ThreatGenerator, Depends(get_threat_generator)]
