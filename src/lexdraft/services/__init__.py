from .generation import GenerationService, caller_status

__all__ = ["GenerationService", "caller_status"]
