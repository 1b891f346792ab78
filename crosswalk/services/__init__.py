"""
crosswalk/services package marker.
"""
