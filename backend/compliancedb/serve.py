"""Entry point for running the compliance API under uvicorn."""

import os
from typing import Any, Dict

import uvicorn

TRUTHY = {"1", "true", "yes", "on"}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in TRUTHY


def server_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "host": os.getenv("COMPLIANCE_HOST", "0.0.0.0"),
        "port": int(os.getenv("COMPLIANCE_PORT", "8000")),
        "reload": _flag("COMPLIANCE_RELOAD"),
        "log_level": os.getenv("LOG_LEVEL", "info").lower(),
        "proxy_headers": _flag("COMPLIANCE_PROXY_HEADERS", "true"),
    }
    # Workers and reload are mutually exclusive in uvicorn.
    workers = os.getenv("COMPLIANCE_WORKERS")
    if workers and not options["reload"]:
        options["workers"] = int(workers)

    certfile = os.getenv("SSL_CERTFILE")
    keyfile = os.getenv("SSL_KEYFILE")
    if certfile and keyfile:
        options["ssl_certfile"] = certfile
        options["ssl_keyfile"] = keyfile
    return options


def main() -> None:
    uvicorn.run("compliancedb.main:app", **server_options())


if __name__ == "__main__":
    main()
