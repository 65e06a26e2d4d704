#!/usr/bin/env python3
"""Start the depmend web application.

Host and port come from DEPMEND_HOST and DEPMEND_PORT; set DEPMEND_RELOAD=1
to restart on source changes.
"""

import os

import uvicorn


def main() -> None:
    host = os.environ.get("DEPMEND_HOST", "127.0.0.1")
    port = int(os.environ.get("DEPMEND_PORT", "8000"))
    reload = os.environ.get("DEPMEND_RELOAD", "") == "1"

    print(f"depmend check API at http://{host}:{port}/api/check")
    print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "apps.web.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["apps", "core"] if reload else None,
    )


if __name__ == "__main__":
    main()
