from .terminal import not_found, root_redirect

__all__ = ["not_found", "root_redirect"]
