"""Example: feed one webhook payload through the service layer (no Flask).

Controllers stay thin; the check-in flow lives in CheckInService and the
attendance ledger.
"""

import importlib
import time

from config import get_settings_module

from src.attendance_verifier.attendance_verifier.container import build_container


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG, settings=settings)

    payload = {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "messages": [
                                {
                                    "id": f"wamid.example.{int(time.time())}",
                                    "from": "919876543210",
                                    "timestamp": str(int(time.time())),
                                    "type": "location",
                                    "location": {"latitude": 28.6150, "longitude": 77.2100},
                                }
                            ]
                        }
                    }
                ]
            }
        ]
    }
    for reply in container.checkin_service.handle_webhook(payload):
        print(reply.to, reply.key, reply.text)


if __name__ == "__main__":
    main()
