from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from threatscope.api.deps import CountryDirectoryDep
from threatscope.core.errors import CountryLookupError
from threatscope.schemas import Country

router = APIRouter(prefix="/countries", tags=["countries"])


@router.get("/", response_model=List[Country])
async def list_countries(
    directory: CountryDirectoryDep,
    continent: Optional[str] = Query(default=None, min_length=2, max_length=2),
):
    """
    List countries, optionally filtered by continent code (e.g. ``EU``).
    """
    try:
        return await directory.list_countries(continent.upper() if continent else None)
    except CountryLookupError as e:
        raise HTTPException(status_code=502, detail=e.message)
