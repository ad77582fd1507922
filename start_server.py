#!/usr/bin/env python3
"""Start the dispatch API with uvicorn, honouring the PORT environment variable."""

import os
import subprocess
import sys

port = os.environ.get("PORT", "8000")

try:
    port_int = int(port)
except ValueError:
    print(f"Warning: Invalid PORT value '{port}', using default 8000", file=sys.stderr)
    port_int = 8000

# Run from the repository root so that ``src.dispatch`` is importable
root = os.path.dirname(os.path.abspath(__file__))
cmd = [
    sys.executable,
    "-m",
    "uvicorn",
    "src.dispatch.main:app",
    "--host",
    "0.0.0.0",
    "--port",
    str(port_int),
    "--proxy-headers",
    "--forwarded-allow-ips",
    "*",
]

print(f"Starting dispatch API on port {port_int}...", file=sys.stderr)
try:
    sys.exit(subprocess.call(cmd, cwd=root))
except KeyboardInterrupt:
    print("Server interrupted by user", file=sys.stderr)
    sys.exit(0)
