"""Shared constants for the crosswalk pipeline."""

# All 26 Bronx ZIP codes to process.
BRONX_ZIPS: tuple[str, ...] = (
    "10451", "10452", "10453", "10454", "10455", "10456",
    "10457", "10458", "10459", "10460", "10461", "10462",
    "10463", "10464", "10465", "10466", "10467", "10468",
    "10469", "10470", "10471", "10472", "10473", "10474",
    "10475", "10499",
)

UNASSIGNED_NTA_CODE = "UNASSIGNED"
UNASSIGNED_NTA_NAME = ""

UNKNOWN_NTA_CODE = "UNKNOWN"
UNKNOWN_NTA_NAME = "Unknown"

CONFIDENCE_HIGH = "high"
CONFIDENCE_LOW = "low"

JOIN_METHOD_CENTROID = "centroid"

CACHED_FILES = {
    "hud_zip_tract": "hud_zip_tract.csv",
    "census_tiger": "tl_2020_36_tract.zip",
    "nta_geojson": "nta_2020.geojson",
}

OUTPUT_FILES = {
    "zip_to_tracts_json": "bronx_zip_to_tracts.json",
    "zip_to_tracts_csv": "bronx_zip_to_tracts.csv",
    "neighborhood_clusters_json": "bronx_neighborhood_clusters.json",
    "tract_to_nta_mapping": "bronx_tract_to_nta_mapping.json",
    "validation_report": "bronx_validation_report.json",
    "zip_centroids": "zip_centroids.json",
    "readme": "README.md",
}

# Column order of the tabular crosswalk output.
CROSSWALK_COLUMNS: tuple[str, ...] = (
    "zip",
    "county_fips",
    "state_fips",
    "tract_geoid",
    "tract",
    "weight_res",
    "weight_tot",
    "nta_code",
    "nta_name",
)

PHASE_NAMES: dict[int, str] = {
    1: "Download & Cache Sources",
    2: "ZIP-to-Tract Mapping",
    3: "Spatial Join (Tract -> NTA)",
    4: "Neighborhood Clustering",
    5: "Output Assembly & Validation",
}

README_TEMPLATE = """# Bronx ZIP-to-Tract Crosswalk & NTA Clustering

## Files
- **bronx_zip_to_tracts.json** - Complete ZIP-to-tract mapping with NTA assignment
- **bronx_zip_to_tracts.csv** - Same data in CSV format ({columns})
- **bronx_neighborhood_clusters.json** - NTA-level summary with constituent tracts + ZIPs
- **bronx_tract_to_nta_mapping.json** - Tract-to-NTA spatial join assignments
- **zip_centroids.json** - Weighted ZIP centroids derived from tract centroids
- **bronx_validation_report.json** - Data-quality report for this build

## Data Sources
{sources}

## Scope
- County FIPS: {county_fips}
- ZIP codes: {zip_count}
"""
