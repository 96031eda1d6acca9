"""Run one expiry/reclamation pass; meant for an external cron-style scheduler."""
import json
import sys

from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


if __name__ == "__main__":
    try:
        from classifieds.db import Base, engine
        from classifieds.scheduler import check_storage_config, run_cleanup
        import classifieds.models  # noqa: F401
    except Exception as e:
        raise SystemExit(f"Failed to import 'classifieds': {e}")

    try:
        check_storage_config()
    except Exception as e:
        print(json.dumps({"success": False, "error": str(e)}))
        sys.exit(1)

    Base.metadata.create_all(bind=engine)
    try:
        summary = run_cleanup()
    except Exception as e:
        print(json.dumps({"success": False, "error": str(e)}))
        sys.exit(1)

    print(json.dumps({"success": True, **summary.as_dict()}))
