from .flow import Flow

__all__ = ["Flow"]
