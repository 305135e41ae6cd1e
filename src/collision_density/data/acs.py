"""American Community Survey fetch, returned in long form keyed by tract GEOID."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import pandas as pd
from census import Census
from us import states

from collision_density.errors import LoadError

logger = logging.getLogger(__name__)

# B08201: household size by vehicles available (total, no vehicle, 1 vehicle)
DEFAULT_ACS_FIELDS = ("B08201_001E", "B08201_002E", "B08201_003E")

# ACS encodes "not available" as large negative sentinels
_ACS_SENTINEL_MAX = -100000000


def resolve_state_fips(state: str) -> str:
    """Accept a FIPS code, postal abbreviation or state name."""
    if str(state).isdigit():
        return str(state).zfill(2)
    found = states.lookup(str(state))
    if found is None:
        raise ValueError(f"unknown state {state!r}")
    return found.fips


def acs_records_to_long(records: Sequence[dict], fields: Sequence[str]) -> pd.DataFrame:
    """Reshape ACS API records to long form (GEOID, variable, estimate)."""
    df = pd.DataFrame.from_records(list(records))
    if df.empty:
        return pd.DataFrame(columns=["GEOID", "variable", "estimate"])
    df["GEOID"] = (
        df["state"].astype(str).str.zfill(2)
        + df["county"].astype(str).str.zfill(3)
        + df["tract"].astype(str).str.zfill(6)
    )
    present = [f for f in fields if f in df.columns]
    long = df.melt(id_vars="GEOID", value_vars=present, var_name="variable", value_name="estimate")
    long["estimate"] = pd.to_numeric(long["estimate"], errors="coerce")
    long.loc[long["estimate"] <= _ACS_SENTINEL_MAX, "estimate"] = float("nan")
    return long.sort_values(["GEOID", "variable"]).reset_index(drop=True)


def fetch_acs_long(
    fields: Sequence[str] = DEFAULT_ACS_FIELDS,
    *,
    state: str,
    county: str,
    year: int = 2018,
    api_key: Optional[str] = None,
    client=None,
) -> pd.DataFrame:
    """Fetch tract-level ACS 5-year estimates for one county.

    Pass ``client`` (anything with ``acs5.state_county_tract``) to avoid
    building a ``census.Census`` from ``api_key``.
    """
    stage = "fetch census"
    if client is None:
        if not api_key:
            raise LoadError("a Census API key is required to fetch ACS data", stage=stage)
        client = Census(api_key)
    state_fips = resolve_state_fips(state)
    county_fips = str(county).zfill(3)
    logger.info("Fetching %d ACS fields for state=%s county=%s year=%s", len(fields), state_fips, county_fips, year)
    try:
        records = client.acs5.state_county_tract(
            fields=tuple(fields),
            state_fips=state_fips,
            county_fips=county_fips,
            tract=Census.ALL,
            year=year,
        )
    except Exception as exc:
        raise LoadError(f"ACS request failed: {exc}", stage=stage) from exc
    if not records:
        raise LoadError(f"ACS returned no rows for {state_fips}{county_fips}", stage=stage)
    return acs_records_to_long(records, fields)


__all__ = [
    "DEFAULT_ACS_FIELDS",
    "resolve_state_fips",
    "acs_records_to_long",
    "fetch_acs_long",
]
