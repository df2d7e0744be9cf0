from typing import Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    default_user_message = "Ocorreu um erro. Por favor tente novamente mais tarde."
    retryable = False

    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or self.default_user_message
        super().__init__(self.message)

class ValidationError(AppError):
    default_user_message = "Não consegui perceber a sua mensagem. Pode enviá-la novamente?"

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=400, user_message=user_message)

class DependencyTimeout(AppError):
    """An external service did not answer in time. Safe to retry."""
    default_user_message = "O serviço está a demorar mais do que o esperado. Envie uma nova mensagem dentro de momentos para tentarmos novamente."
    retryable = True

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=504, user_message=user_message)

class DependencyRejected(AppError):
    """An external service answered with an error."""
    default_user_message = "Um dos nossos serviços está indisponível neste momento. Por favor tente novamente mais tarde."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=502, user_message=user_message)

class InternalError(AppError):
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=500, user_message=user_message)

class ConfigurationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class ErrorHandler:
    @staticmethod
    def wrap(error: Exception, service: str) -> AppError:
        """Translate a raw provider exception into the app taxonomy."""
        if isinstance(error, AppError):
            return error
        if isinstance(error, asyncio.TimeoutError):
            return DependencyTimeout(f"{service} timed out")
        return DependencyRejected(f"{service} failed: {str(error)}")

    @staticmethod
    def user_message(error: Exception) -> str:
        """User-facing text for an error. Never includes the raw exception text."""
        if isinstance(error, AppError):
            return error.user_message
        return AppError.default_user_message

    @staticmethod
    def handle_conversation_error(error: Exception, phone: str, state: str) -> str:
        logger.error(f"Error handling {state} for {phone}: {str(error)}", exc_info=error)
        return ErrorHandler.user_message(error)

    @staticmethod
    def handle_question_error(error: Exception, phone: str) -> str:
        logger.error(f"Error answering question from {phone}: {str(error)}")
        return "Ocorreu um erro ao responder à sua dúvida. Tente novamente mais tarde."
