#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Defaults so settings load without a .env file
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
    os.environ.setdefault("STELLAR_NETWORK", "testnet")

    import ussd.main
    print("Import ussd.main: OK")

    import ussd.queue.jobs
    print("Import ussd.queue.jobs: OK")

    from ussd.settings import settings
    if not settings.STELLAR_SENDER_SECRET:
        print("[WARN] STELLAR_SENDER_SECRET is empty: every transfer will end with a configuration error.")
    if settings.ADMIN_RBAC_ENABLED and not settings.ADMIN_API_KEY:
        print("[WARN] ADMIN_API_KEY is empty: /admin endpoints will reject all requests.")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
