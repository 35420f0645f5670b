from .session import create_engine, create_session_factory, engine_options

__all__ = ["create_engine", "create_session_factory", "engine_options"]
