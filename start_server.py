#!/usr/bin/env python3
"""Start the API behind a hosting proxy, honouring the PORT environment variable."""

import os
import sys
from pathlib import Path

import uvicorn

SRC_DIR = Path(__file__).resolve().parent / "src"


def _port() -> int:
    raw = os.environ.get("PORT", "8000")
    try:
        return int(raw)
    except ValueError:
        print(f"Warning: Invalid PORT value '{raw}', using default 8000", file=sys.stderr)
        return 8000


def main() -> None:
    if SRC_DIR.is_dir() and str(SRC_DIR) not in sys.path:
        sys.path.insert(0, str(SRC_DIR))
    port = _port()
    print(f"Starting server on port {port}...", file=sys.stderr)
    # Single worker: one import stream per connection, rows processed sequentially.
    uvicorn.run(
        "detailer_crm.main:app",
        host="0.0.0.0",
        port=port,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
