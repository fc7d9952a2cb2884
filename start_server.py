#!/usr/bin/env python3
"""Start the optimizer API, honouring the PORT environment variable."""

import os
import sys
from pathlib import Path

import uvicorn

port = os.environ.get("PORT", "8000")

try:
    port_int = int(port)
except ValueError:
    print(f"Warning: Invalid PORT value '{port}', using default 8000", file=sys.stderr)
    port_int = 8000

src_path = Path(__file__).resolve().parent / "src"
if src_path.is_dir() and str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    print(f"Starting server on port {port_int}...", file=sys.stderr)
    uvicorn.run(
        "transit_optimizer.main:app",
        host="0.0.0.0",
        port=port_int,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
