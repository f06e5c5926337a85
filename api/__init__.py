"""
FastAPI read and correction surface for the reconciliation pipeline.
"""
