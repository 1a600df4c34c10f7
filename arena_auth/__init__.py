"""
arena_auth package

Authentication backend for the SQL Arena practice platform.
It includes:

- FastAPI application factory (`main.py`) and routers (`routes/`)
- SQLAlchemy models and database integration (`models.py`, `db.py`)
- Password hashing and JWT logic (`auth.py`)
- Declarative input validation (`validation.py`)
- Fixed-window rate limiting (`rate_limit.py`)
- Registration and login orchestration (`service.py`)
- Error taxonomy and response envelope (`errors.py`, `schemas.py`)
"""

__version__ = "1.0.0"
