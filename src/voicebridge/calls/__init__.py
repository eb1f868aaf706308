"""
Call records: initiation, cancellation and history.
"""
