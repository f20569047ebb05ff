"""
PDF composition: fonts, page writer, section layout, member tables,
repeating appendix pages and page extraction.
"""
