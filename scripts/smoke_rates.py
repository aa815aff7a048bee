import os
import sys
import tempfile
import json
from datetime import datetime, timezone
from fastapi.testclient import TestClient
from fxguard.main import create_app
from fxguard.core.config import Settings

"""Smoke test for the rate pipeline on the static provider.
Runs one acquisition into a temp DB, then reads the current rate and computes
the impact for an order placed now (rate unchanged, so no suggestion).
"""


def run():
    with tempfile.TemporaryDirectory() as d:
        settings = Settings(
            db_path=os.path.join(d, "smoke.db"),
            primary_rate_provider="static",
            fallback_rate_provider="static",
        )
        settings.init_post_load()
        app = create_app(settings_override=settings)
        with TestClient(app) as client:
            record = app.state.services.acquisition.acquire()
            current = client.get("/rates/current", params={"from": "USD", "to": "INR"})
            impact = client.post(
                "/calculate-impact",
                json={
                    "orderAmount": 250,
                    "orderDate": datetime.now(timezone.utc).isoformat(),
                    "fromCurrency": "USD",
                    "toCurrency": "INR",
                    "orderId": "smoke-1",
                    "storeId": "smoke-store",
                },
            )
            orders = client.get("/orders", params={"storeId": "smoke-store"})
            print(
                json.dumps(
                    {
                        "acquired": record.model_dump(by_alias=True),
                        "current": current.json(),
                        "impact": impact.json(),
                        "orders": orders.json(),
                    },
                    indent=2,
                )
            )


if __name__ == "__main__":
    sys.path.append(os.getcwd())
    run()
