"""
Middleware для логирования неуспешных ответов и ошибок API
"""
import logging
from django.core.exceptions import PermissionDenied
from django.http import JsonResponse

from .exceptions import BookingError

logger = logging.getLogger(__name__)


def request_context(request):
    """Кто и куда обращался: для extra в записях лога"""
    user = getattr(request, 'user', None)
    context = {
        'path': request.path,
        'method': request.method,
        'user': getattr(user, 'username', None) or 'anonymous',
    }
    profile = getattr(user, 'staff_profile', None) if getattr(user, 'is_authenticated', False) else None
    if profile is not None:
        context['business_id'] = profile.business_id
    return context


class ErrorLoggingMiddleware:
    """
    Логирует ответы с кодом >= 400 (5xx как ошибки, 4xx как предупреждения)
    и превращает необработанные исключения на /api/ в JSON-ответы.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if response.status_code >= 500:
            logger.error(f"HTTP {response.status_code}: {request.method} {request.path}",
                         extra=request_context(request))
        elif response.status_code >= 400:
            logger.warning(f"HTTP {response.status_code}: {request.method} {request.path}",
                           extra=request_context(request))

        return response

    def process_exception(self, request, exception):
        if not request.path.startswith('/api/'):
            # HTML-страницы (админка) обрабатывает Django
            logger.error(f"Exception in {request.method} {request.path}: {exception}",
                         exc_info=True, extra=request_context(request))
            return None

        if isinstance(exception, BookingError):
            # Отказ в записи: ожидаемый исход, не сбой
            logger.info(f"Booking rejected in {request.path}: {exception.code}", extra=request_context(request))
            return JsonResponse(exception.as_dict(), status=exception.status_code)

        if isinstance(exception, PermissionDenied):
            return JsonResponse({'error': 'Доступ запрещён', 'code': 'forbidden'}, status=403)

        logger.error(f"Unhandled exception in {request.method} {request.path}: {exception}",
                     exc_info=True, extra=request_context(request))
        return JsonResponse({'error': 'Внутренняя ошибка сервера', 'code': 'server_error'}, status=500)
