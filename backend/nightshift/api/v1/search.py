from fastapi import APIRouter, Depends
from pydantic import BaseModel
from nightshift.services.identity import IdentityResolver, hyphenated_alternative, identity_resolver
from nightshift.services.pipeline import get_registry
from nightshift.services.registry import Registry
from typing import Optional
import re

router = APIRouter()

TERM_SEPARATORS = re.compile(r'[\s,]+')

class SearchRequest(BaseModel):
    query: Optional[str] = None

def split_terms(query: str) -> list:
    """split on commas, spaces, tabs and newlines; terms are uppercased"""
    return [t.strip().upper() for t in TERM_SEPARATORS.split(query or "") if t.strip()]

def lookup_term(registry: Registry, term: str, resolver: IdentityResolver = identity_resolver):
    """
    normalize a free-text term the way ingestion does, then prefix-match cleaned names
    "hhd800.com@FNS-075" -> FNS-075 -> FNS-075.mp4
    """
    search_term = resolver.resolve_identity(term)
    record = registry.find_by_cleaned_prefix(search_term)

    if not record:
        alternate = hyphenated_alternative(search_term)
        if alternate:
            record = registry.find_by_cleaned_prefix(alternate)
    return record

@router.post("/search")
def batch_search(request: SearchRequest, registry: Registry = Depends(get_registry)):
    """check availability of a pasted list of codes or filenames"""
    found = []
    missing = []

    for term in split_terms(request.query):
        record = lookup_term(registry, term)
        if record:
            found.append({"term": term, "matches": record.cleaned_name, "data": record.to_dict()})
        else:
            missing.append(term)

    return {"found": found, "missing": missing}
