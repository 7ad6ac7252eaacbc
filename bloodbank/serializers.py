# bloodbank/serializers.py
from rest_framework import serializers
from django.contrib.auth import get_user_model
from .blood_types import BLOOD_GROUPS
from .models import (
    DonorProfile, InventoryLedger, InventoryAlert, Donation, BloodRequest,
    AssignedDonation, Role, Urgency,
)

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=True, min_length=6)
    role = serializers.ChoiceField(choices=[Role.DONOR, Role.RECIPIENT], default=Role.DONOR)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'first_name', 'last_name', 'password', 'role')

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user


class DonorProfileSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = DonorProfile
        fields = '__all__'
        read_only_fields = ('last_donated',)


# ----------------- Inventory -----------------

class InventoryAlertSerializer(serializers.ModelSerializer):
    blood_type = serializers.CharField(source='ledger.blood_type', read_only=True)

    class Meta:
        model = InventoryAlert
        fields = ('id', 'blood_type', 'kind', 'severity', 'message', 'is_active', 'created_at')


class PublicInventorySerializer(serializers.ModelSerializer):
    stock_status = serializers.CharField(read_only=True)
    stock_percentage = serializers.IntegerField(read_only=True)

    class Meta:
        model = InventoryLedger
        fields = ('blood_type', 'available_units', 'reserved_units', 'total_units',
                  'stock_status', 'stock_percentage', 'last_updated')


class InventoryLedgerSerializer(PublicInventorySerializer):
    statistics = serializers.DictField(read_only=True)
    alerts = serializers.SerializerMethodField()

    class Meta(PublicInventorySerializer.Meta):
        fields = PublicInventorySerializer.Meta.fields + (
            'expired_units', 'min_threshold', 'max_capacity', 'statistics', 'alerts',
        )

    def get_alerts(self, obj):
        return InventoryAlertSerializer(obj.alerts.filter(is_active=True), many=True).data


class ThresholdSerializer(serializers.Serializer):
    min_threshold = serializers.IntegerField(required=False, min_value=1, max_value=100)
    max_capacity = serializers.IntegerField(required=False, min_value=10, max_value=1000)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide min_threshold and/or max_capacity.")
        return attrs


# ----------------- Donations -----------------

class DonationSerializer(serializers.ModelSerializer):
    donor = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Donation
        fields = '__all__'
        read_only_fields = (
            'donor', 'expiry_date', 'status', 'is_available', 'medical_screening',
            'approved_by', 'approval_date', 'rejection_reason',
        )


class DonationSubmitSerializer(serializers.Serializer):
    blood_type = serializers.ChoiceField(choices=BLOOD_GROUPS)
    quantity = serializers.IntegerField(min_value=350, max_value=500, default=450)
    donation_date = serializers.DateTimeField()
    location = serializers.CharField(max_length=200)
    address = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class BloodPressureSerializer(serializers.Serializer):
    systolic = serializers.IntegerField(required=False)
    diastolic = serializers.IntegerField(required=False)


class ScreeningSerializer(serializers.Serializer):
    hemoglobin = serializers.FloatField()
    weight = serializers.FloatField()
    blood_pressure = BloodPressureSerializer(required=False)
    temperature = serializers.FloatField(required=False)
    pulse = serializers.IntegerField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


# ----------------- Requests -----------------

class HospitalSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    contact_number = serializers.RegexField(r'^[0-9]{10,15}$', error_messages={
        'invalid': 'Please provide a valid contact number (10-15 digits).',
    })
    address = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)


class AssignedDonationSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignedDonation
        fields = ('donation', 'quantity', 'assigned_date')


class BloodRequestSerializer(serializers.ModelSerializer):
    recipient = serializers.PrimaryKeyRelatedField(read_only=True)
    assigned_donations = AssignedDonationSerializer(many=True, read_only=True)
    fulfillment_percentage = serializers.IntegerField(read_only=True)

    class Meta:
        model = BloodRequest
        fields = '__all__'
        read_only_fields = (
            'recipient', 'status', 'approved_by', 'approval_date', 'rejection_reason',
            'fulfilled_quantity', 'priority', 'is_active',
        )


class BloodRequestSubmitSerializer(serializers.Serializer):
    blood_type = serializers.ChoiceField(choices=BLOOD_GROUPS)
    quantity = serializers.IntegerField(min_value=1, max_value=10)
    urgency = serializers.ChoiceField(choices=Urgency.choices, default=Urgency.MEDIUM)
    required_by = serializers.DateTimeField()
    reason = serializers.CharField(min_length=10, max_length=500)
    hospital = HospitalSerializer()
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class BloodRequestUpdateSerializer(serializers.Serializer):
    blood_type = serializers.ChoiceField(choices=BLOOD_GROUPS, required=False)
    quantity = serializers.IntegerField(min_value=1, max_value=10, required=False)
    urgency = serializers.ChoiceField(choices=Urgency.choices, required=False)
    required_by = serializers.DateTimeField(required=False)
    reason = serializers.CharField(min_length=10, max_length=500, required=False)
    hospital = HospitalSerializer(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def to_changes(self):
        data = dict(self.validated_data)
        hospital = data.pop('hospital', None)
        if hospital:
            data['hospital_name'] = hospital['name']
            data['hospital_contact'] = hospital['contact_number']
            if 'address' in hospital:
                data['hospital_address'] = hospital['address']
        return data


class AssignDonationSerializer(serializers.Serializer):
    donation_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1)


class ReserveSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1, max_value=10)
