# sahayak/client/main_tui.py
# Entry points for the educator and learner consoles.
# Allows overriding host/port via env vars (see sahayak/config.py) or CLI args.

import os
import sys

from ..config import Settings
from ..logging_config import configure_logging
from .utils import educator_url


def educator():
    settings = Settings.from_env()

    # Optional CLI override: sahayak-educator 8080
    if len(sys.argv) >= 2: settings.port = int(sys.argv[1])

    configure_logging("educator", "EDUCATOR", settings.log_dir)
    from .educator_tui import EducatorTUI
    EducatorTUI(settings).run()


def learner():
    settings = Settings.from_env()
    host = os.environ.get("SAHAYAK_EDUCATOR_HOST", "localhost")

    # Optional CLI overrides: sahayak-learner 192.168.1.20 8080
    if len(sys.argv) >= 2: host = sys.argv[1]
    if len(sys.argv) >= 3: settings.port = int(sys.argv[2])

    configure_logging("learner", "LEARNER", settings.log_dir)
    from .learner_tui import LearnerTUI
    LearnerTUI(settings, educator_url(host, settings.port)).run()


if __name__ == "__main__":
    learner()
