from .app import StartRaceRequest, create_app  # noqa: F401

__all__ = ["StartRaceRequest", "create_app"]
