# bloodbank/views.py
import logging

from rest_framework import viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler

from django.utils import timezone

from .exceptions import BloodBankError
from .models import User, DonorProfile, InventoryLedger, Donation, BloodRequest, Role
from .serializers import (
    UserSerializer, DonorProfileSerializer, PublicInventorySerializer, InventoryLedgerSerializer,
    InventoryAlertSerializer, ThresholdSerializer, DonationSerializer,
    DonationSubmitSerializer, ScreeningSerializer, RejectSerializer,
    BloodRequestSerializer, BloodRequestSubmitSerializer, BloodRequestUpdateSerializer,
    AssignDonationSerializer, ReserveSerializer,
)
from .services import get_services

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    'input': status.HTTP_400_BAD_REQUEST,
    'rule': status.HTTP_422_UNPROCESSABLE_ENTITY,
    'not_found': status.HTTP_404_NOT_FOUND,
    'conflict': status.HTTP_409_CONFLICT,
    'fulfillment': status.HTTP_409_CONFLICT,
    'transient': status.HTTP_503_SERVICE_UNAVAILABLE,
}


def bloodbank_exception_handler(exc, context):
    if isinstance(exc, BloodBankError):
        if exc.category == 'transient':
            logger.warning("Request failed after retries: %s", exc.message)
        return Response(
            {"detail": exc.message, "code": type(exc).__name__},
            status=ERROR_STATUS.get(exc.category, status.HTTP_400_BAD_REQUEST),
        )
    return exception_handler(exc, context)


def is_admin(user):
    return bool(user and user.is_authenticated and (user.is_staff or user.role == Role.ADMIN))


class IsBloodBankAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        return is_admin(request.user)


# ---------- Users ----------

class UserViewSet(viewsets.ModelViewSet):
    queryset = User.objects.all()
    serializer_class = UserSerializer

    def get_permissions(self):
        if self.action == 'create':
            return [permissions.AllowAny()]
        if self.action in ('retrieve', 'profile'):
            return [IsAuthenticated()]
        return [IsBloodBankAdmin()]

    def get_queryset(self):
        user = getattr(self.request, 'user', None)
        if not is_admin(user):
            return User.objects.filter(pk=user.pk) if user and user.is_authenticated else User.objects.none()
        return super().get_queryset()

    @action(detail=False, methods=['get', 'patch'])
    def profile(self, request):
        profile = DonorProfile.objects.filter(user=request.user).first()
        if profile is None:
            return Response({"detail": "Only donors have a donor profile."}, status=status.HTTP_404_NOT_FOUND)
        if request.method == 'PATCH':
            serializer = DonorProfileSerializer(profile, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            serializer.save()
            return Response(serializer.data)
        return Response(DonorProfileSerializer(profile).data)


# ---------- Inventory ----------

class InventoryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = InventoryLedger.objects.all()
    lookup_field = 'blood_type'
    lookup_value_regex = '(A|B|AB|O)[+-]'
    permission_classes = [IsAuthenticated]

    def get_serializer_class(self):
        if is_admin(self.request.user):
            return InventoryLedgerSerializer
        return PublicInventorySerializer

    @action(detail=False, methods=['get'], permission_classes=[IsBloodBankAdmin])
    def alerts(self, request):
        services = get_services()
        now = timezone.now()
        services.donations.expire_stale(now)
        result = services.alerts.active_alerts(now)
        return Response({
            "alerts": InventoryAlertSerializer(result['alerts'], many=True).data,
            "summary": result['summary'],
        })

    @action(detail=False, methods=['get'], permission_classes=[IsBloodBankAdmin])
    def summary(self, request):
        return Response(get_services().ledgers.summary())

    @action(detail=True, methods=['put'], permission_classes=[IsBloodBankAdmin])
    def thresholds(self, request, blood_type=None):
        serializer = ThresholdSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ledger = get_services().ledgers.set_thresholds(blood_type, **serializer.validated_data)
        return Response(InventoryLedgerSerializer(ledger).data)

    @action(detail=False, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def initialize(self, request):
        created = get_services().ledgers.initialize_all()
        return Response({"detail": "Inventory initialized for all blood types", "created": created})

    @action(detail=False, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def maintenance(self, request):
        return Response(get_services().fulfillment.run_maintenance())


# ---------- Donations ----------

class DonationViewSet(viewsets.ModelViewSet):
    queryset = Donation.objects.all()
    serializer_class = DonationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        if is_admin(user):
            return Donation.objects.all().order_by('-donation_date')
        return Donation.objects.filter(donor=user).order_by('-donation_date')

    def create(self, request, *args, **kwargs):
        serializer = DonationSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donation = get_services().donations.submit(donor=request.user, **serializer.validated_data)
        return Response(DonationSerializer(donation).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        donation = self.get_object()
        serializer = DonationSubmitSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        donation = get_services().donations.update(donation.pk, **serializer.validated_data)
        return Response(DonationSerializer(donation).data)

    def destroy(self, request, *args, **kwargs):
        donation = self.get_object()
        get_services().donations.cancel(donation.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def approve(self, request, pk=None):
        serializer = ScreeningSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donation = get_services().donations.approve(pk, serializer.validated_data, approved_by=request.user)
        return Response(DonationSerializer(donation).data)

    @action(detail=True, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def reject(self, request, pk=None):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        donation = get_services().donations.reject(pk, serializer.validated_data['reason'], rejected_by=request.user)
        return Response(DonationSerializer(donation).data)

    @action(detail=False, methods=['get'])
    def eligibility(self, request):
        result = get_services().donations.check_eligibility(request.user)
        return Response({"eligible": result.eligible, "reason": result.reason})


# ---------- Requests ----------

class BloodRequestViewSet(viewsets.ModelViewSet):
    queryset = BloodRequest.objects.all()
    serializer_class = BloodRequestSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        if is_admin(user):
            return get_services().requests.prioritized() if self.request.query_params.get('open') \
                else BloodRequest.objects.all().order_by('-created_at')
        return BloodRequest.objects.filter(recipient=user).order_by('-created_at')

    def create(self, request, *args, **kwargs):
        serializer = BloodRequestSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blood_request = get_services().requests.submit(recipient=request.user, **serializer.validated_data)
        return Response(BloodRequestSerializer(blood_request).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        blood_request = self.get_object()
        serializer = BloodRequestUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blood_request = get_services().requests.update(blood_request.pk, **serializer.to_changes())
        return Response(BloodRequestSerializer(blood_request).data)

    def destroy(self, request, *args, **kwargs):
        blood_request = self.get_object()
        get_services().requests.cancel(blood_request.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def approve(self, request, pk=None):
        blood_request = get_services().requests.approve(pk, approved_by=request.user)
        return Response(BloodRequestSerializer(blood_request).data)

    @action(detail=True, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def reject(self, request, pk=None):
        serializer = RejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blood_request = get_services().requests.reject(pk, serializer.validated_data['reason'], rejected_by=request.user)
        return Response(BloodRequestSerializer(blood_request).data)

    @action(detail=True, methods=['post'], url_path='assign-donation', permission_classes=[IsBloodBankAdmin])
    def assign_donation(self, request, pk=None):
        serializer = AssignDonationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        blood_request = get_services().fulfillment.assign_donation(
            pk, serializer.validated_data['donation_id'], serializer.validated_data['quantity'],
        )
        return Response(BloodRequestSerializer(blood_request).data)

    @action(detail=True, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def reserve(self, request, pk=None):
        serializer = ReserveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = get_services().fulfillment.reserve_stock(pk, serializer.validated_data['quantity'])
        return Response({"detail": "Reserved", "blood_type": entry.ledger.blood_type, "quantity": entry.quantity},
                        status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_classes=[IsBloodBankAdmin])
    def release(self, request, pk=None):
        released = get_services().fulfillment.release_stock(pk)
        return Response({"detail": "Released", "quantity": released})

    @action(detail=True, methods=['get'], url_path='compatible-donations', permission_classes=[IsBloodBankAdmin])
    def compatible_donations(self, request, pk=None):
        donations = get_services().fulfillment.compatible_donations(pk)
        return Response(DonationSerializer(donations, many=True).data)
