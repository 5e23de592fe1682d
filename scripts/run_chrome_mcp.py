#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[mcp] host={os.environ.get('MCP_CHROME_HOST', '127.0.0.1')} | "
    f"port={os.environ.get('MCP_CHROME_PORT', '9222')} | "
    f"human_delay={os.environ.get('MCP_HUMAN_DELAY', 'true')}",
    file=sys.stderr,
)

from mcp_servers.chrome_devtools.main import main  # noqa: E402

if __name__ == "__main__":
    main()
