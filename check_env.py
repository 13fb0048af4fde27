#!/usr/bin/env python3
"""Check the .env file and report which customer store the API will use."""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
ENV_TEMPLATE = """# Supabase (leave unset to run against the in-memory customer store)
CRM_SUPABASE_URL=https://your-project-id.supabase.co
CRM_SUPABASE_KEY=your-service-role-key-here
CRM_CUSTOMERS_TABLE=customer_snapshots

# API
CRM_API_PREFIX=/api
# JSON array or comma-separated list
# CRM_FRONTEND_ALLOWED_ORIGINS=http://localhost:3000,http://localhost:5173

# Import pipeline
CRM_DEFAULT_PHONE_REGION=US
CRM_PROGRESS_EVERY=1
CRM_MAX_PROGRESS_FRAMES=500
CRM_MAX_UPLOAD_BYTES=10485760
"""


def _mask(value: str) -> str:
    return value if len(value) <= 20 else f"{value[:12]}...{value[-6:]}"


def main() -> int:
    env_file = PROJECT_ROOT / ".env"
    print("=" * 60)
    print("Detailer CRM environment check")
    print("=" * 60)

    if not env_file.exists():
        env_file.write_text(ENV_TEMPLATE, encoding="utf-8")
        print(f"Created template .env at {env_file}")
        print("Edit it with your Supabase credentials, or delete the CRM_SUPABASE_* lines for local use.")
        return 1

    print(f"Found .env at {env_file}")
    for line in env_file.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() == "CRM_SUPABASE_KEY":
            line = f"{name}={_mask(value.strip())}"
        print(f"  {line}")
    print()

    for name in ("CRM_SUPABASE_URL", "CRM_SUPABASE_KEY"):
        value = os.getenv(name)
        print(f"{name} in process environment: {_mask(value) if value else 'not set'}")

    sys.path.insert(0, str(PROJECT_ROOT / "src"))
    try:
        from detailer_crm.config import settings
    except Exception as exc:
        print(f"Error loading settings: {exc}")
        return 1

    print(f"Default phone region: {settings.default_phone_region}")
    if settings.supabase_url and settings.supabase_key:
        print(f"Customer store: Supabase table '{settings.customers_table}'")
        return 0
    print("Customer store: in-memory (Supabase not configured, data is lost on restart)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
