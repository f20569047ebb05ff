"""
Template model, variable resolution, legal numbering, diffing and versioning.
"""
