import os
import toml
from dotenv import load_dotenv


BASE = os.path.join(os.path.dirname(__file__), "..")
load_dotenv(dotenv_path=os.path.join(BASE, "extras", ".env"))


with open(os.path.join(BASE, "config.toml")) as f:
    CONFIG = toml.load(f)

# Environment override for the hardware polling interval
if os.getenv("TELEMETRY_REFRESH_INTERVAL"):
    CONFIG["telemetry"]["refresh_interval"] = float(os.environ["TELEMETRY_REFRESH_INTERVAL"])

assert 0 <= CONFIG["telemetry"]["refresh_interval"] <= 60, "refresh interval must be between 0 and 60"
assert 0 <= CONFIG["telemetry"]["gpu_refresh_interval"] <= 60, "GPU refresh interval must be between 0 and 60"


def is_test_context():
    """Whether automatic polling schedules should stay disabled.
    Read on every call so tests can toggle it with monkeypatch.
    """
    return os.getenv("TELEMETRY_ENV", "production").lower() == "test"
