"""Branch statistics backend.

Reconciles per-branch daily sales, running orders and complete bills from the POS
sales, bills and orders endpoints. Use it as a library (engine.compute_branch_statistics),
from the command line (python -m branch_recon.cli), or as an API via Uvicorn:

    python -m uvicorn branch_recon.api_app:app --host 127.0.0.1 --port 8000
"""
