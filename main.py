import logging
import os

from config.settings import (
    BudgetConfig,
    EngagementConfig,
    SessionConfig,
    WindowConfig,
    load_service_config,
)
from game.app import GameApp
from game.runtime.paths import app_data_dir, app_data_path
from game.runtime.telemetry_settings import SETTINGS_FILE, load_service_settings


def main() -> None:
    logging.basicConfig(
        level=os.getenv("MTC_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = load_service_settings(app_data_path(SETTINGS_FILE), load_service_config())
    app = GameApp(
        window=WindowConfig(),
        session=SessionConfig(),
        budget=BudgetConfig(),
        engagement=EngagementConfig(),
        services=services,
        data_dir=str(app_data_dir()),
    )
    app.run()


if __name__ == "__main__":
    main()
