"""
Todo API package.

The FastAPI application lives in ``todo_api.main``; run it with
``uvicorn todo_api.main:app``.
"""
