"""
Bronx ZIP / Census tract / NTA crosswalk pipeline.
"""
