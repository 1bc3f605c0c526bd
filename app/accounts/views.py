from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.models import User
from accounts.permissions import IsAttendanceAdmin
from accounts.serializers import UserSerializer


@api_view(["GET"])
@permission_classes([IsAttendanceAdmin])
def users_api(request):
    role = (request.GET.get("role") or "").strip().upper()
    queryset = User.objects.filter(is_active=True).order_by("full_name", "username")
    if role:
        queryset = queryset.filter(role=role)
    return Response(UserSerializer(queryset, many=True).data)
