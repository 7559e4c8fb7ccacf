from models.survey import Survey

__all__ = ["Survey"]
