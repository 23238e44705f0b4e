"""ChatVibes web API (FastAPI)"""
