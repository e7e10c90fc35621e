from .error_handler import setup_error_handlers
