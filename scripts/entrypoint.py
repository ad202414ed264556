import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Exec uvicorn for the ARIS API so it receives container signals directly."""
  port = os.getenv("PORT", "8000")
  logger.info("Starting ARIS engine on port %s (schema is managed outside the service)...", port)
  args = ["uvicorn", "aris.main:app", "--host", "0.0.0.0", "--port", port, "--no-server-header"]
  os.execvp("uvicorn", args)


if __name__ == "__main__":
  main()
