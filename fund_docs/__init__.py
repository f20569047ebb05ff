"""
Document composition core for an investment-fund back office.

This package provides functionality to:
1. Version legal document templates and diff them with Korean legal citations
2. Resolve template variables against fund and member facts
3. Compose paginated PDF documents with legal numbering and member tables
4. Generate one repeated page per fund member and record a page map
5. Extract per-member sub-documents from a combined PDF on demand
"""

__version__ = "0.1.0"
