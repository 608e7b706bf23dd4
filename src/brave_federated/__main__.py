"""Entry point for ``python -m brave_federated``."""

from brave_federated.main import run

if __name__ == "__main__":
    run()
