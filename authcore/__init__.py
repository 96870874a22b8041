"""
Calendar Auth Core - identity, authorization and delegated calendar credentials.

Run with: uvicorn authcore.main:app --reload
"""
