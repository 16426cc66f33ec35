"""
API server: FastAPI app exposing the serverless endpoints under /api.
"""
