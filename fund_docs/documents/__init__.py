"""
Generated document persistence: combined artifacts, per-member children
and the blob storage behind them.
"""
