from django.db import connections
from django.http import JsonResponse

from admission.models import IdentityCounter


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        provisioned = IdentityCounter.objects.exists()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'provisioned': provisioned})
    except Exception as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
