from rest_framework import generics, status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView

from apps.utils.throttle import BurstRateThrottle
from .permissions import Action, HasAction
from .serializers import RegisterSerializer, UserSerializer, UserSummarySerializer
from .services import AccountService


class RegisterView(APIView):
    permission_classes = [AllowAny]
    throttle_classes = [BurstRateThrottle]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = AccountService.register_user(
            username=serializer.validated_data['username'],
            name=serializer.validated_data['name'],
            role=serializer.validated_data['role'],
            password=serializer.validated_data['password'],
        )

        # New accounts are logged in straight away
        refresh = RefreshToken.for_user(user)
        return Response({
            "refresh": str(refresh),
            "access": str(refresh.access_token),
            "user": UserSerializer(user).data,
        }, status=status.HTTP_201_CREATED)


class LoginView(TokenObtainPairView):
    throttle_classes = [BurstRateThrottle]


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)


class OperatorListView(generics.ListAPIView):
    """
    Operators for the assignment dropdown.
    """
    serializer_class = UserSummarySerializer
    permission_classes = [IsAuthenticated, HasAction.for_action(Action.ASSIGN_OPERATOR)]
    pagination_class = None

    def get_queryset(self):
        return AccountService.list_operators(self.request.user)
