import sys

from django.conf import settings
from django.http import JsonResponse


def error_404_view(request, exception=None):
    return JsonResponse(
        {
            "error": "Not Found",
            "message": "The requested resource was not found",
            "path": request.path,
        },
        status=404,
    )


def error_500_view(request):
    # Only reveal the exception text while debugging
    exc = sys.exc_info()[1]
    message = str(exc) if (settings.DEBUG and exc) else "Something went wrong"
    return JsonResponse({"error": "Internal Server Error", "message": message}, status=500)
