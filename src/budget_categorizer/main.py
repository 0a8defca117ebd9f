import os

import uvicorn

from budget_categorizer.app import app
from budget_categorizer.core import settings
from budget_categorizer.logger import get_logging_config


def main() -> None:
    host = os.getenv("HOST", "0.0.0.0")
    port = settings.get_env_int("PORT", 8000, min_value=1)
    uvicorn.run(app, host=host, port=port, log_config=get_logging_config())


if __name__ == "__main__":
    main()
